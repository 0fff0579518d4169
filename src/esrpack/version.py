"""Read version metadata from a PE binary's version resource.

Usage:
    esrpack probe tmp/extract/core/firefox.exe
    esrpack probe tmp/extract/core/firefox.exe --json
"""

from dataclasses import dataclass
from pathlib import Path

import pefile
import typer

from esrpack.cli import error_exit, json_print
from esrpack.errors import NoVersionMetadata, VersionNotFound, VersionProbeError

_RESOURCE_DIR = pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_RESOURCE"]


@dataclass(frozen=True)
class VersionInfo:
    """Version of the vendor installer binary."""

    file_version: tuple[int, int, int, int]
    product_version: str

    @property
    def file_version_str(self) -> str:
        return ".".join(str(part) for part in self.file_version)

    def to_dict(self) -> dict[str, str]:
        return {
            "file_version": self.file_version_str,
            "product_version": self.product_version,
        }


def _string_entries(pe: pefile.PE) -> dict[str, str]:
    """Collect StringFileInfo key/value pairs (first value wins)."""
    result: dict[str, str] = {}
    for file_info in getattr(pe, "FileInfo", None) or []:
        # pefile >= 2019 nests FileInfo one level deeper
        entries = file_info if isinstance(file_info, list) else [file_info]
        for entry in entries:
            if getattr(entry, "Key", b"") != b"StringFileInfo":
                continue
            for table in getattr(entry, "StringTable", []):
                for key, value in table.entries.items():
                    k = key.decode("utf-8", errors="replace") if isinstance(key, bytes) else key
                    v = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value
                    result.setdefault(k, v)
    return result


def probe_version(binary_path: Path) -> VersionInfo:
    """Return the fixed file version and product version string of *binary_path*.

    The four file-version components come straight from ``VS_FIXEDFILEINFO``;
    the product version is the vendor's ``ProductVersion`` string, unchanged.

    Raises:
        VersionNotFound: nothing exists at *binary_path*.
        NoVersionMetadata: the file is not a PE image or has no version resource.
    """
    binary_path = Path(binary_path)
    if not binary_path.is_file():
        raise VersionNotFound(f"Binary not found: {binary_path}")

    try:
        pe = pefile.PE(str(binary_path), fast_load=True)
    except pefile.PEFormatError as e:
        raise NoVersionMetadata(f"Not a PE image: {binary_path} ({e})") from e
    except OSError as e:
        raise VersionProbeError(f"Cannot read {binary_path}: {e}") from e

    try:
        pe.parse_data_directories(directories=[_RESOURCE_DIR])
        fixed = getattr(pe, "VS_FIXEDFILEINFO", None)
        if not fixed:
            raise NoVersionMetadata(f"No version resource in {binary_path}")
        if isinstance(fixed, list):
            fixed = fixed[0]
        file_version = (
            fixed.FileVersionMS >> 16,
            fixed.FileVersionMS & 0xFFFF,
            fixed.FileVersionLS >> 16,
            fixed.FileVersionLS & 0xFFFF,
        )
        product_version = _string_entries(pe).get("ProductVersion")
    finally:
        pe.close()

    if not product_version:
        raise NoVersionMetadata(f"No ProductVersion string in {binary_path}")

    return VersionInfo(file_version=file_version, product_version=product_version)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="Print the version resource of an installer binary.",
    rich_markup_mode="rich",
    epilog="""\
[bold]Examples:[/bold]

esrpack probe tmp/extract/core/firefox.exe           File + product version

esrpack probe tmp/extract/core/firefox.exe --json    JSON output""",
)


@app.command()
def main(
    binary: Path = typer.Argument(..., help="PE binary to inspect"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Print the file and product version of BINARY."""
    try:
        info = probe_version(binary)
    except VersionProbeError as e:
        error_exit(str(e), json_mode=json_output)

    if json_output:
        json_print(info.to_dict())
    else:
        print(f"File version:    {info.file_version_str}")
        print(f"Product version: {info.product_version}")


def main_entry() -> None:
    app()


if __name__ == "__main__":
    main_entry()
