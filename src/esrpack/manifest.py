"""manifest.py - XML modification manifest loader.

A manifest is a ``<modifications>`` document whose children describe file
operations applied, in document order, onto the extracted installer::

    <modifications>
      <replaceFile>
        <source>files/mozilla.cfg</source>
        <target>core/mozilla.cfg</target>
      </replaceFile>
      <replaceString>
        <file>core/defaults/pref/local-settings.js</file>
        <source>@VERSION@</source>
        <target>#Version#</target>
      </replaceString>
    </modifications>

Unknown child elements are skipped so that newer manifests keep loading
with older tools.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from esrpack.errors import IncompleteOperation, MalformedDocument, ManifestError, MissingRoot

ROOT_TAG = "modifications"
REPLACE_FILE_TAG = "replaceFile"
REPLACE_STRING_TAG = "replaceString"

# Replacement target that stands for the probed product version.
VERSION_PLACEHOLDER = "#Version#"


@dataclass(frozen=True)
class ReplaceFile:
    """Copy ``source_path`` (manifest-relative) over ``target_path`` (tree-relative)."""

    source_path: str
    target_path: str
    index: int = 0

    kind = REPLACE_FILE_TAG

    def describe(self) -> str:
        return f"{self.source_path} -> {self.target_path}"

    def to_dict(self) -> dict[str, str | int]:
        return {
            "kind": self.kind,
            "index": self.index,
            "source": self.source_path,
            "target": self.target_path,
        }


@dataclass(frozen=True)
class ReplaceString:
    """Replace every ``match_text`` in ``file_path`` with ``replacement_text``."""

    file_path: str
    match_text: str
    replacement_text: str
    index: int = 0

    kind = REPLACE_STRING_TAG

    @property
    def uses_version(self) -> bool:
        return self.replacement_text == VERSION_PLACEHOLDER

    def describe(self) -> str:
        return f"{self.file_path}: {self.match_text!r} -> {self.replacement_text!r}"

    def to_dict(self) -> dict[str, str | int]:
        return {
            "kind": self.kind,
            "index": self.index,
            "file": self.file_path,
            "source": self.match_text,
            "target": self.replacement_text,
        }


Operation = Union[ReplaceFile, ReplaceString]


@dataclass(frozen=True)
class Manifest:
    """Ordered, read-only list of operations."""

    operations: tuple[Operation, ...] = ()
    base_dir: Path = field(default_factory=lambda: Path("."))

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self):
        return iter(self.operations)


def _required(elem: ET.Element, index: int, name: str, *, strip: bool) -> str:
    child = elem.find(name)
    if child is None:
        raise IncompleteOperation(index, elem.tag, name)
    text = child.text or ""
    return text.strip() if strip else text


def _parse_replace_file(elem: ET.Element, index: int) -> ReplaceFile:
    return ReplaceFile(
        source_path=_required(elem, index, "source", strip=True),
        target_path=_required(elem, index, "target", strip=True),
        index=index,
    )


def _parse_replace_string(elem: ET.Element, index: int) -> ReplaceString:
    return ReplaceString(
        file_path=_required(elem, index, "file", strip=True),
        match_text=_required(elem, index, "source", strip=False),
        replacement_text=_required(elem, index, "target", strip=False),
        index=index,
    )


_PARSERS = {
    REPLACE_FILE_TAG: _parse_replace_file,
    REPLACE_STRING_TAG: _parse_replace_string,
}


def parse_manifest(document: str | bytes, base_dir: Path | None = None) -> Manifest:
    """Parse manifest text into a :class:`Manifest`.

    Args:
        document: The XML text (or bytes, to honour the XML declaration's encoding).
        base_dir: Directory that ``replaceFile`` sources are relative to.

    Raises:
        MalformedDocument: the text is not well-formed XML.
        MissingRoot: the root element is not ``<modifications>``.
        IncompleteOperation: a recognized element lacks a required child.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise MalformedDocument(f"Manifest is not well-formed XML: {e}") from e

    if root.tag != ROOT_TAG:
        raise MissingRoot(f"Expected <{ROOT_TAG}> root element, found <{root.tag}>")

    operations: list[Operation] = []
    for index, elem in enumerate(root):
        parser = _PARSERS.get(elem.tag) if isinstance(elem.tag, str) else None
        if parser is None:
            continue
        operations.append(parser(elem, index))

    return Manifest(
        operations=tuple(operations),
        base_dir=base_dir if base_dir is not None else Path("."),
    )


def load_manifest(path: Path) -> Manifest:
    """Read and parse the manifest at *path*, resolving sources beside it."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e
    try:
        return parse_manifest(data, base_dir=path.parent)
    except ManifestError as e:
        e.args = (f"{path}: {e}",)
        raise
