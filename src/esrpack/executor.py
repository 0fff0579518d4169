"""executor.py - Apply a single manifest operation to an installer tree.

:func:`execute_operation` never raises: every failure is returned as an
:class:`OperationStatus` so the engine can keep going and report each
operation individually.
"""

from __future__ import annotations

import contextlib
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from esrpack.manifest import Operation, ReplaceFile, ReplaceString
from esrpack.utils import atomic_write_text

SUCCESS = "success"
FAILED = "failed"

# Failure kinds
COPY_ERROR = "CopyError"
FILE_NOT_FOUND = "FileNotFound"
IO_ERROR = "IOError"
INVALID_OPERATION = "InvalidOperation"


@dataclass(frozen=True)
class ExecutionContext:
    """Everything an operation needs besides the operation itself."""

    source_tree: Path
    manifest_dir: Path
    product_version: str


@dataclass(frozen=True)
class OperationStatus:
    """Result of executing one operation."""

    status: str  # "success" or "failed"
    error: str = ""  # failure kind, e.g. "CopyError"
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    @classmethod
    def success(cls) -> OperationStatus:
        return cls(status=SUCCESS)

    @classmethod
    def failed(cls, error: str, reason: str) -> OperationStatus:
        return cls(status=FAILED, error=error, reason=reason)

    def to_dict(self) -> dict[str, str]:
        d = {"status": self.status}
        if not self.ok:
            d["error"] = self.error
            d["reason"] = self.reason
        return d


def _copy_onto(src: Path, dst: Path) -> None:
    """Copy a file or directory subtree over *dst*, overwriting what is there."""
    if src.is_dir():
        if dst.exists() and not dst.is_dir():
            dst.unlink()
        shutil.copytree(src, dst, dirs_exist_ok=True)
        return
    if not src.exists():
        raise FileNotFoundError(f"No such file or directory: '{src}'")
    if dst.is_dir():
        # The directory is only removed once the new file is fully written.
        staged = dst.with_name(dst.name + ".tmp")
        try:
            shutil.copy2(src, staged)
            shutil.rmtree(dst)
            os.replace(staged, dst)
        except BaseException:
            with contextlib.suppress(OSError):
                staged.unlink()
            raise
        return
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)


def replace_file(op: ReplaceFile, ctx: ExecutionContext) -> OperationStatus:
    src = ctx.manifest_dir / op.source_path
    dst = ctx.source_tree / op.target_path
    try:
        _copy_onto(src, dst)
    except OSError as e:
        return OperationStatus.failed(COPY_ERROR, f"{src} -> {dst}: {e}")
    return OperationStatus.success()


def replace_string(op: ReplaceString, ctx: ExecutionContext) -> OperationStatus:
    path = ctx.source_tree / op.file_path
    if not op.match_text:
        return OperationStatus.failed(INVALID_OPERATION, f"{path}: empty match text")
    if not path.is_file():
        return OperationStatus.failed(FILE_NOT_FOUND, f"File not found: {path}")

    replacement = ctx.product_version if op.uses_version else op.replacement_text

    try:
        # Decode strictly so non-text files fail instead of being mangled.
        text = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        return OperationStatus.failed(IO_ERROR, f"{path} is not UTF-8 text: {e}")
    except OSError as e:
        return OperationStatus.failed(IO_ERROR, f"Cannot read {path}: {e}")

    new_text = text.replace(op.match_text, replacement)
    if new_text == text:
        return OperationStatus.success()

    try:
        atomic_write_text(path, new_text)
    except OSError as e:
        return OperationStatus.failed(IO_ERROR, f"Cannot write {path}: {e}")
    return OperationStatus.success()


def execute_operation(op: Operation, ctx: ExecutionContext) -> OperationStatus:
    """Apply *op* inside ``ctx.source_tree`` and report how it went."""
    if isinstance(op, ReplaceFile):
        return replace_file(op, ctx)
    if isinstance(op, ReplaceString):
        return replace_string(op, ctx)
    return OperationStatus.failed(INVALID_OPERATION, f"Unsupported operation: {op!r}")
