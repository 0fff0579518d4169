"""main.py – Umbrella CLI entry point for esrpack.

Lazily imports and registers every subcommand module so that a missing
optional dependency in one command doesn't prevent the rest of the CLI
from loading.  All commands are single-command modules registered as flat
``app.command()`` entries.
"""

import importlib
import sys
from collections.abc import Callable

import typer

app = typer.Typer(
    help="Build customized, silently deployable Firefox ESR packages.",
    rich_markup_mode="rich",
    epilog="""\
[bold]Typical workflow:[/bold]
  esrpack init                 Create esrpack.toml and modifications.xml
  esrpack build                Download, modify and package the installer
  esrpack apply m.xml tree/    Apply a manifest to an extracted tree
  esrpack probe firefox.exe    Show the version resource of a binary
  esrpack register DIR         Create the Configuration Manager application

[dim]Commands read settings from esrpack.toml, searched upward from the
current directory.[/dim]""",
)

_COMMANDS: list[tuple[str, str, str]] = [
    ("init", "esrpack.init", "Initialize a new esrpack project."),
    ("build", "esrpack.build", "Build a customized package end to end."),
    ("apply", "esrpack.engine", "Apply a manifest to an extracted installer tree."),
    ("probe", "esrpack.version", "Print the version resource of a binary."),
    ("register", "esrpack.register", "Register a package as a deployable application."),
]


def _make_stub_cmd(mod_name: str, err: ImportError) -> Callable[[], None]:
    """Create a stub command function that reports a missing dependency."""

    def _stub() -> None:
        print(f"Error: could not load '{mod_name}': {err}", file=sys.stderr)
        raise typer.Exit(code=1)

    return _stub


for _name, _module, _help in _COMMANDS:
    try:
        _mod = importlib.import_module(_module)
        _epilog = getattr(_mod.app.info, "epilog", None)
        if not isinstance(_epilog, str):
            _epilog = None
        app.command(name=_name, help=_help, epilog=_epilog)(_mod.main)
    except ImportError as _exc:
        app.command(name=_name, help=f"[unavailable] {_help}")(_make_stub_cmd(_module, _exc))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
