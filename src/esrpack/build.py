"""build.py - End-to-end packaging pipeline.

Stages run one after another, each to completion:

1. acquire    download + extract the vendor installer, check the marker binary
2. version    read the product version from the marker binary
3. manifest   load the modification manifest
4. modify     apply every manifest operation (failures are collected, not fatal)
5. output     copy the tree into a uniquely named package directory
6. publish    copy the package to the content store (optional)
7. register   create a Configuration Manager application (optional)

A fatal error in stages 1-3 aborts before the tree is touched.  Later
fatal errors stop the run but leave completed work in place.

Usage:
    esrpack build
    esrpack build --installer "downloads/Firefox Setup 115.3.1esr.exe"
    esrpack build --source-tree tmp/extract --no-publish --json
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from esrpack.acquire import acquire_source, require_marker
from esrpack.cli import ConfigOption, get_config, json_print, warn
from esrpack.config import PackagerConfig
from esrpack.engine import ExecutionOutcome, apply_manifest, print_outcomes
from esrpack.errors import (
    EsrpackError,
    OutputCollisionError,
    OutputError,
    PublishSkipped,
    SetupAcquisitionError,
)
from esrpack.executor import ExecutionContext
from esrpack.manifest import load_manifest
from esrpack.naming import next_available, output_base_name
from esrpack.publish import publish_tree
from esrpack.register import register_application, request_from_config
from esrpack.version import VersionInfo, probe_version

# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------

SUCCEEDED = "succeeded"
PARTIAL = "partial"  # succeeded with operation failures
ABORTED = "aborted"  # stopped before any modification
FAILED = "failed"  # stopped after modifications began

EXIT_CODES: dict[str, int] = {
    SUCCEEDED: 0,
    FAILED: 1,
    ABORTED: 2,
    PARTIAL: 3,
}


@dataclass
class RunReport:
    """Everything a pipeline run produced, including how far it got."""

    state: str = SUCCEEDED
    version: VersionInfo | None = None
    outcomes: list[ExecutionOutcome] = field(default_factory=list)
    output_dir: Path | None = None
    published_to: Path | None = None
    registered: bool = False
    warnings: list[str] = field(default_factory=list)
    error: str = ""
    error_stage: str = ""

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.state]

    def fail(self, err: EsrpackError, state: str) -> RunReport:
        self.state = state
        self.error = str(err)
        self.error_stage = err.stage
        return self

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "state": self.state,
            "version": self.version.to_dict() if self.version else None,
            "operations": [o.to_dict() for o in self.outcomes],
            "failed_operations": self.failure_count,
            "output_dir": str(self.output_dir) if self.output_dir else None,
            "published_to": str(self.published_to) if self.published_to else None,
            "registered": self.registered,
            "warnings": list(self.warnings),
        }
        if self.error:
            d["error"] = {"stage": self.error_stage, "message": self.error}
        return d


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class PackagingPipeline:
    """Drive one packaging run for a :class:`PackagerConfig`.

    The external collaborators (``acquire``, ``publish``, ``register``) and
    the existence check used for output naming can be replaced, which is how
    the tests run the pipeline without network, 7-Zip or PowerShell.
    """

    def __init__(
        self,
        cfg: PackagerConfig,
        *,
        installer: Path | None = None,
        source_tree: Path | None = None,
        publish: bool = True,
        register: bool | None = None,
        today: date | None = None,
        acquire: Callable[..., Path] = acquire_source,
        publisher: Callable[[Path, Path], Path] = publish_tree,
        registrar: Callable[..., None] = register_application,
        exists: Callable[[Path], bool] = Path.exists,
        on_stage: Callable[[str], None] | None = None,
    ) -> None:
        self.cfg = cfg
        self.installer = installer
        self.source_tree = source_tree
        self.publish = publish and cfg.content_store is not None
        self.register = cfg.deploy_enabled if register is None else register
        self.today = today or date.today()
        self._acquire = acquire
        self._publisher = publisher
        self._registrar = registrar
        self._exists = exists
        self._on_stage = on_stage or (lambda stage: None)

    # --- stages -----------------------------------------------------------

    def acquire(self) -> Path:
        """Return an extracted installer tree that contains the marker binary."""
        cfg = self.cfg
        if cfg.toolkit_layout and not cfg.toolkit_template.is_dir():
            raise SetupAcquisitionError(f"Toolkit template not found: {cfg.toolkit_template}")
        if self.source_tree is not None:
            require_marker(self.source_tree, cfg.marker)
            return self.source_tree
        return self._acquire(
            url=cfg.download_url,
            work_dir=cfg.temp_root,
            marker=cfg.marker,
            method=cfg.extractor,
            sevenzip=cfg.sevenzip,
            download_timeout=cfg.download_timeout,
            extract_timeout=cfg.extract_timeout,
            installer=self.installer,
        )

    def copy_out(self, tree: Path, version: VersionInfo) -> Path:
        """Copy *tree* into a fresh, uniquely named directory under the output root."""
        cfg = self.cfg
        base = output_base_name(cfg.family, version.product_version, self.today)
        dest = next_available(cfg.output_root, base, self._exists)
        try:
            cfg.output_root.mkdir(parents=True, exist_ok=True)
            if cfg.toolkit_layout:
                shutil.copytree(cfg.toolkit_template, dest)
                shutil.copytree(tree, dest / "Files", dirs_exist_ok=True)
            else:
                shutil.copytree(tree, dest)
        except FileExistsError as e:
            raise OutputCollisionError(f"Output directory appeared concurrently: {dest}") from e
        except OSError as e:
            raise OutputError(f"Cannot copy {tree} to {dest}: {e}") from e
        return dest

    # --- driver -----------------------------------------------------------

    def run(self) -> RunReport:
        """Run every stage and report the result; fatal errors end up in the report."""
        cfg = self.cfg
        report = RunReport()

        try:
            self._on_stage("acquire")
            tree = self.acquire()
            self._on_stage("version")
            report.version = probe_version(tree / cfg.marker)
            self._on_stage("manifest")
            manifest = load_manifest(cfg.manifest)
        except EsrpackError as e:
            return report.fail(e, ABORTED)

        self._on_stage("modify")
        ctx = ExecutionContext(
            source_tree=tree,
            manifest_dir=manifest.base_dir,
            product_version=report.version.product_version,
        )
        report.outcomes = apply_manifest(manifest, ctx)

        try:
            self._on_stage("output")
            report.output_dir = self.copy_out(tree, report.version)
        except EsrpackError as e:
            return report.fail(e, FAILED)

        content_location = report.output_dir
        if self.publish:
            self._on_stage("publish")
            try:
                report.published_to = self._publisher(report.output_dir, cfg.content_store)
                content_location = report.published_to
            except PublishSkipped as e:
                report.warnings.append(str(e))
                content_location = e.destination
            except EsrpackError as e:
                return report.fail(e, FAILED)

        if self.register:
            self._on_stage("register")
            try:
                request = request_from_config(
                    cfg, report.version.product_version, str(content_location)
                )
                self._registrar(request, powershell=cfg.powershell, timeout=cfg.register_timeout)
                report.registered = True
            except EsrpackError as e:
                return report.fail(e, FAILED)

        report.state = PARTIAL if report.failure_count else SUCCEEDED
        return report


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

_EPILOG = """\
[bold]Examples:[/bold]

esrpack build                                   Download, modify, package

esrpack build --installer setup.exe             Use a local installer

esrpack build --source-tree tmp/extract         Skip download and extraction

esrpack build --no-publish --no-register        Only build the package

esrpack build --json                            Machine-readable report

[bold]Exit codes:[/bold]

0  all operations succeeded

1  a stage failed after modifications began

2  aborted before any modification

3  package built, but some operations failed"""

_STAGE_LABELS = {
    "acquire": "Acquiring installer",
    "version": "Reading version",
    "manifest": "Loading manifest",
    "modify": "Applying modifications",
    "output": "Creating package directory",
    "publish": "Publishing to content store",
    "register": "Registering application",
}

app = typer.Typer(
    help="Build a customized Firefox ESR package.",
    rich_markup_mode="rich",
    epilog=_EPILOG,
)

console = Console(stderr=True)


def _print_report(report: RunReport) -> None:
    if report.outcomes:
        print_outcomes(report.outcomes, console)
    for w in report.warnings:
        warn(w)
    if report.error:
        console.print(
            f"[red bold]error:[/red bold] \\[{report.error_stage}] {escape(report.error)}",
            highlight=False,
        )
    if report.version:
        console.print(f"Version: {report.version.product_version} ({report.version.file_version_str})")
    if report.output_dir:
        console.print(f"Package: {escape(str(report.output_dir))}")
    if report.published_to:
        console.print(f"Published: {escape(str(report.published_to))}")
    if report.registered:
        console.print("Registered application")

    if report.state == SUCCEEDED:
        console.print("[green bold]Build succeeded[/]")
    elif report.state == PARTIAL:
        console.print(
            f"[yellow bold]Build succeeded with {report.failure_count} operation failure(s)[/]"
        )
    elif report.state == ABORTED:
        console.print("[red bold]Build aborted before modifications began[/]")
    else:
        console.print("[red bold]Build failed[/]")


@app.command()
def main(
    installer: Path | None = typer.Option(
        None, "--installer", help="Local installer to extract instead of downloading"
    ),
    source_tree: Path | None = typer.Option(
        None, "--source-tree", help="Already-extracted installer tree (modified in place)"
    ),
    publish: bool = typer.Option(True, "--publish/--no-publish", help="Copy to the content store"),
    no_register: bool = typer.Option(
        False, "--no-register", help="Skip application registration even if enabled in config"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output the run report as JSON"),
    config: Path | None = ConfigOption,
) -> None:
    """Build a package from esrpack.toml."""
    cfg = get_config(config)

    def _stage(stage: str) -> None:
        if not json_output:
            console.print(f"[bold]{_STAGE_LABELS[stage]}...[/bold]")

    pipeline = PackagingPipeline(
        cfg,
        installer=installer,
        source_tree=source_tree,
        publish=publish,
        register=False if no_register else None,
        on_stage=_stage,
    )
    report = pipeline.run()

    if json_output:
        json_print(report.to_dict())
    else:
        _print_report(report)

    if report.exit_code:
        raise typer.Exit(code=report.exit_code)


def main_entry() -> None:
    app()


if __name__ == "__main__":
    main_entry()
