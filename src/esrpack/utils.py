"""Shared utilities for esrpack."""

import contextlib
import os
import shutil
from pathlib import Path


def atomic_write_text(filepath: Path, text: str, encoding: str = "utf-8") -> None:
    """Write text to a file atomically to prevent corruption on crash.

    Line endings are written exactly as given in *text*.  An existing file
    keeps its permission bits.
    """
    tmp_path = filepath.with_suffix(filepath.suffix + ".tmp")
    try:
        with open(tmp_path, "w", encoding=encoding, newline="") as f:
            f.write(text)
        if filepath.exists():
            shutil.copymode(filepath, tmp_path)
        os.replace(tmp_path, filepath)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise


def resolve_path(root: Path, rel: str | None) -> Path | None:
    """Resolve *rel* against *root* unless it is already absolute."""
    if rel is None:
        return None
    p = Path(rel)
    if p.is_absolute():
        return p
    return root / p
