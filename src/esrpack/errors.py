"""Exception taxonomy for the packaging pipeline.

Every fatal error carries the ``stage`` it belongs to so the CLI can say
where the run stopped.  Per-operation failures are *not* exceptions: the
executor reports them as :class:`esrpack.executor.OperationStatus` values.
"""

from __future__ import annotations

from pathlib import Path


class EsrpackError(Exception):
    """Base class for all pipeline errors."""

    stage = "pipeline"


class SetupAcquisitionError(EsrpackError):
    """Download or extraction failed, or produced no installer binary."""

    stage = "acquire"


class ExtractionTimedOut(SetupAcquisitionError):
    """The extraction process did not finish within its timeout."""

    def __init__(self, installer: Path, timeout: float) -> None:
        self.installer = installer
        self.timeout = timeout
        super().__init__(f"Extraction of {installer} timed out after {timeout}s")


class ManifestError(EsrpackError):
    """The manifest is unreadable or structurally invalid."""

    stage = "manifest"


class MalformedDocument(ManifestError):
    """The manifest is not well-formed XML."""


class MissingRoot(ManifestError):
    """The expected ``<modifications>`` root element is absent."""


class IncompleteOperation(ManifestError):
    """A recognized operation element lacks a required child field."""

    def __init__(self, element_index: int, tag: str, field: str) -> None:
        self.element_index = element_index
        self.tag = tag
        self.field = field
        super().__init__(f"<{tag}> element #{element_index} is missing required <{field}>")


class VersionProbeError(EsrpackError):
    """The installer version could not be determined."""

    stage = "version"


class VersionNotFound(VersionProbeError):
    """No file exists at the probed path."""


class NoVersionMetadata(VersionProbeError):
    """The file exists but has no usable version resource."""


class OutputError(EsrpackError):
    """Copying the modified tree into the output directory failed."""

    stage = "output"


class OutputCollisionError(OutputError):
    """The output directory could not be created uniquely."""


class NamingExhausted(OutputCollisionError):
    """Every candidate name up to the retry cap already exists."""


class PublishError(EsrpackError):
    """Copying the package to the content store failed."""

    stage = "publish"


class PublishSkipped(PublishError):
    """The publish destination already exists; nothing was copied."""

    def __init__(self, destination: Path) -> None:
        self.destination = destination
        super().__init__(f"Destination already exists, skipped: {destination}")


class RegistrarError(EsrpackError):
    """Creating the deployable application record failed."""

    stage = "register"
