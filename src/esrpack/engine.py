"""engine.py - Apply a whole manifest onto an extracted installer tree.

Operations run strictly in manifest order and a failing operation never
stops the ones after it: the caller always gets one outcome per operation.

Usage:
    esrpack apply modifications.xml tmp/extract --version 115.3.1
    esrpack apply modifications.xml tmp/extract --binary tmp/extract/core/firefox.exe
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from esrpack.cli import error_exit, json_print
from esrpack.errors import ManifestError, VersionProbeError
from esrpack.executor import ExecutionContext, OperationStatus, execute_operation
from esrpack.manifest import Manifest, Operation, load_manifest


@dataclass(frozen=True)
class ExecutionOutcome:
    """One operation paired with how its execution went."""

    operation: Operation
    status: OperationStatus

    @property
    def ok(self) -> bool:
        return self.status.ok

    def to_dict(self) -> dict[str, Any]:
        return {**self.operation.to_dict(), **self.status.to_dict()}


@dataclass
class ModificationReport:
    """Aggregated outcomes of one manifest run."""

    outcomes: list[ExecutionOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def failures(self) -> list[ExecutionOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total": len(self.outcomes),
                "succeeded": self.success_count,
                "failed": self.failure_count,
            },
            "operations": [o.to_dict() for o in self.outcomes],
        }


def apply_manifest(manifest: Manifest, ctx: ExecutionContext) -> list[ExecutionOutcome]:
    """Execute every operation of *manifest* in order, collecting outcomes."""
    return [ExecutionOutcome(op, execute_operation(op, ctx)) for op in manifest.operations]


def summarize(outcomes: list[ExecutionOutcome]) -> ModificationReport:
    return ModificationReport(outcomes=list(outcomes))


def print_outcomes(outcomes: list[ExecutionOutcome], console: Console) -> None:
    """Render the per-operation outcome table."""
    tbl = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    tbl.add_column("#", justify="right", style="dim")
    tbl.add_column("Kind")
    tbl.add_column("Operation")
    tbl.add_column("Result")
    for o in outcomes:
        if o.ok:
            result = "[green]ok[/]"
        else:
            result = f"[red]{o.status.error}[/]: {escape(o.status.reason)}"
        tbl.add_row(str(o.operation.index), o.operation.kind, escape(o.operation.describe()), result)
    console.print(tbl)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

_EPILOG = """\
[bold]Examples:[/bold]

esrpack apply modifications.xml tmp/extract --version 115.3.1

esrpack apply modifications.xml tmp/extract --binary tmp/extract/core/firefox.exe

esrpack apply modifications.xml tmp/extract --version 115.3.1 --json

[dim]Modifies TREE in place.  Exit code 3 means some operations failed;
the remaining operations were still applied.[/dim]"""

app = typer.Typer(
    help="Apply a modification manifest to an extracted installer tree.",
    rich_markup_mode="rich",
    epilog=_EPILOG,
)

console = Console(stderr=True)


@app.command()
def main(
    manifest_path: Path = typer.Argument(..., help="Manifest XML file"),
    tree: Path = typer.Argument(..., help="Extracted installer tree to modify"),
    version: str | None = typer.Option(
        None, "--version", help="Product version substituted for #Version#"
    ),
    binary: Path | None = typer.Option(
        None, "--binary", help="Read the product version from this PE binary"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
) -> None:
    """Apply MANIFEST_PATH onto TREE."""
    if not tree.is_dir():
        error_exit(f"Installer tree not found: {tree}", json_mode=json_output, code=2)

    if version is None:
        if binary is None:
            error_exit("Pass --version or --binary", json_mode=json_output, code=2)
        from esrpack.version import probe_version

        try:
            version = probe_version(binary).product_version
        except VersionProbeError as e:
            error_exit(str(e), json_mode=json_output, code=2)

    try:
        manifest = load_manifest(manifest_path)
    except ManifestError as e:
        error_exit(str(e), json_mode=json_output, code=2)

    ctx = ExecutionContext(
        source_tree=tree, manifest_dir=manifest.base_dir, product_version=version
    )
    report = summarize(apply_manifest(manifest, ctx))

    if json_output:
        json_print(report.to_dict())
    else:
        print_outcomes(report.outcomes, console)
        console.print(
            f"{report.success_count} succeeded, {report.failure_count} failed "
            f"({len(report.outcomes)} operations)"
        )

    if report.failure_count:
        raise typer.Exit(code=3)


def main_entry() -> None:
    app()


if __name__ == "__main__":
    main_entry()
