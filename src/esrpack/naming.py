"""naming.py - Collision-free output directory names.

Package directories are named ``<family>_<productVersion>esr_<YYMMDD>``;
when that exists a numeric suffix starting at ``_2`` is appended.  The
existence check and the later creation are not atomic, so two concurrent
runs writing to the same output root can still collide.
"""

from collections.abc import Callable
from datetime import date
from pathlib import Path

from esrpack.errors import NamingExhausted

MAX_CANDIDATES = 10_000


def output_base_name(family: str, product_version: str, stamp: date) -> str:
    """Return ``<family>_<productVersion>esr_<YYMMDD>``."""
    return f"{family}_{product_version}esr_{stamp:%y%m%d}"


def next_available(
    root: Path,
    base_name: str,
    exists: Callable[[Path], bool],
    max_candidates: int = MAX_CANDIDATES,
) -> Path:
    """Return the first of ``root/base``, ``root/base_2``, ... for which *exists* is False.

    Raises:
        NamingExhausted: all *max_candidates* names are taken.
    """
    candidate = root / base_name
    if not exists(candidate):
        return candidate
    for n in range(2, max_candidates + 1):
        candidate = root / f"{base_name}_{n}"
        if not exists(candidate):
            return candidate
    raise NamingExhausted(
        f"No free name for {root / base_name} after {max_candidates} candidates"
    )
