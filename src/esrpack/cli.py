"""Shared CLI utilities for esrpack commands.

Provides the common ``--config`` option, config-loading helper and
standardised output / error helpers so every command reports errors the
same way.

Usage in a command::

    import typer
    from esrpack.cli import ConfigOption, get_config, error_exit, json_print

    app = typer.Typer()

    @app.command()
    def main(config: Path | None = ConfigOption) -> None:
        cfg = get_config(config)
        ...
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from esrpack.config import PackagerConfig, load_config

# Re-usable Typer option for --config
ConfigOption: Path | None = typer.Option(
    None,
    "--config",
    "-c",
    help="Directory containing esrpack.toml (default: search upward from cwd).",
)


def get_config(root: Path | None = None) -> PackagerConfig:
    """Load the packager config, exiting with a clean message on failure."""
    try:
        return load_config(root)
    except (FileNotFoundError, ValueError) as e:
        error_exit(str(e))


# ---------------------------------------------------------------------------
# Standardised output helpers
# ---------------------------------------------------------------------------

_err_console = Console(stderr=True)


def error_exit(msg: str, *, json_mode: bool = False, code: int = 1) -> NoReturn:
    """Print *msg* as an error and ``raise typer.Exit(code)``."""
    if json_mode:
        print(json.dumps({"error": msg}, indent=2))
    else:
        _err_console.print(f"[red bold]error:[/red bold] {escape(msg)}", highlight=False)
    raise typer.Exit(code=code)


def warn(msg: str) -> None:
    """Print a warning line to stderr."""
    _err_console.print(f"[yellow]Warning: {escape(msg)}[/yellow]", highlight=False)


def json_print(data: dict[str, Any] | list[Any]) -> None:
    """Print *data* as pretty-printed JSON to stdout."""
    print(json.dumps(data, indent=2))
