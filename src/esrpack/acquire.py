"""acquire.py - Obtain an extracted vendor installer tree.

Downloads the installer (``requests``), unpacks it with a single blocking
subprocess call bounded by a timeout, and refuses to continue unless the
expected marker binary is present afterwards.

Two extraction methods are supported:

- ``7z``: ``7z x -y -o<dest> <installer>`` (the Firefox setup is a 7-Zip SFX)
- ``self``: ``<installer> /ExtractDir=<dest>`` (the installer unpacks itself)
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import requests

from esrpack.errors import ExtractionTimedOut, SetupAcquisitionError

_CHUNK_SIZE = 1 << 16


def download_installer(url: str, dest: Path, *, timeout: int = 300) -> Path:
    """Stream *url* to *dest*, replacing any previous file.

    Raises:
        SetupAcquisitionError: on any network or HTTP error.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_suffix(dest.suffix + ".part")
    try:
        with requests.get(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in r.iter_content(chunk_size=_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
        partial.replace(dest)
    except requests.RequestException as e:
        partial.unlink(missing_ok=True)
        raise SetupAcquisitionError(f"Download of {url} failed: {e}") from e
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise SetupAcquisitionError(f"Cannot write {dest}: {e}") from e
    return dest


def extraction_command(installer: Path, dest: Path, method: str, sevenzip: str = "7z") -> list[str]:
    """Build the argv that unpacks *installer* into *dest*."""
    if method == "7z":
        return [sevenzip, "x", "-y", f"-o{dest}", str(installer)]
    if method == "self":
        return [str(installer), f"/ExtractDir={dest}"]
    raise ValueError(f"Unknown extraction method: {method!r}")


def extract_installer(
    installer: Path,
    dest: Path,
    *,
    method: str = "7z",
    sevenzip: str = "7z",
    timeout: int = 600,
) -> Path:
    """Unpack *installer* into a fresh *dest* directory.

    Raises:
        SetupAcquisitionError: the installer is missing or the extractor failed.
        ExtractionTimedOut: the extractor ran longer than *timeout* seconds.
    """
    installer = Path(installer)
    dest = Path(dest)
    if not installer.is_file():
        raise SetupAcquisitionError(f"Installer not found: {installer}")

    try:
        if dest.is_dir() and not dest.is_symlink():
            shutil.rmtree(dest)
        elif dest.exists() or dest.is_symlink():
            dest.unlink()
        dest.mkdir(parents=True)
    except OSError as e:
        raise SetupAcquisitionError(f"Cannot prepare {dest}: {e}") from e

    cmd = extraction_command(installer, dest, method, sevenzip)
    try:
        r = subprocess.run(cmd, capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ExtractionTimedOut(installer, timeout) from e
    except OSError as e:
        raise SetupAcquisitionError(f"Failed to run {cmd[0]}: {e}") from e

    if r.returncode != 0:
        err = (r.stdout + r.stderr).decode("utf-8", errors="replace").strip()[:400]
        raise SetupAcquisitionError(
            f"Extraction of {installer} failed (exit {r.returncode}): {err}"
        )
    return dest


def require_marker(tree: Path, marker: str) -> Path:
    """Return ``tree / marker``, failing if the extraction did not produce it."""
    path = Path(tree) / marker
    if not path.is_file():
        raise SetupAcquisitionError(f"Expected installer binary not found: {path}")
    return path


def acquire_source(
    *,
    url: str,
    work_dir: Path,
    marker: str,
    method: str = "7z",
    sevenzip: str = "7z",
    download_timeout: int = 300,
    extract_timeout: int = 600,
    installer: Path | None = None,
) -> Path:
    """Download (unless *installer* is given) and extract into ``work_dir/extract``.

    Returns the extracted tree root, guaranteed to contain *marker*.
    """
    work_dir = Path(work_dir)
    if installer is None:
        installer = download_installer(
            url, work_dir / "setup.exe", timeout=download_timeout
        )
    tree = extract_installer(
        installer,
        work_dir / "extract",
        method=method,
        sevenzip=sevenzip,
        timeout=extract_timeout,
    )
    require_marker(tree, marker)
    return tree
