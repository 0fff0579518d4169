"""Copy a finished package directory to the shared content store."""

import shutil
from pathlib import Path

from esrpack.errors import PublishError, PublishSkipped


def publish_tree(src: Path, store: Path) -> Path:
    """Copy *src* to ``store / src.name`` and return the destination.

    An existing destination is never overwritten.

    Raises:
        PublishSkipped: the destination already exists.
        PublishError: the copy itself failed.
    """
    src = Path(src)
    dest = Path(store) / src.name
    if dest.exists():
        raise PublishSkipped(dest)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(src, dest)
    except OSError as e:
        raise PublishError(f"Cannot publish {src} to {dest}: {e}") from e
    return dest
