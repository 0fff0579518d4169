"""Tests for esrpack.utils."""

import os
from pathlib import Path

import pytest

from esrpack.utils import atomic_write_text, resolve_path


def test_atomic_write_text_success(tmp_path: Path) -> None:
    f = tmp_path / "test.txt"
    atomic_write_text(f, "hello world")
    assert f.read_text() == "hello world"
    assert not f.with_suffix(".txt.tmp").exists()


def test_atomic_write_text_keeps_line_endings(tmp_path: Path) -> None:
    f = tmp_path / "prefs.js"
    atomic_write_text(f, "a\r\nb\n")
    assert f.read_bytes() == b"a\r\nb\n"


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_atomic_write_text_keeps_mode(tmp_path: Path) -> None:
    f = tmp_path / "run.sh"
    f.write_text("echo old\n")
    f.chmod(0o750)
    atomic_write_text(f, "echo new\n")
    assert f.read_text() == "echo new\n"
    assert f.stat().st_mode & 0o777 == 0o750


def test_atomic_write_text_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    f = tmp_path / "test.txt"
    f.write_text("old")

    def mock_replace(*args, **kwargs):
        raise OSError("Simulated crash")

    monkeypatch.setattr(os, "replace", mock_replace)

    with pytest.raises(OSError, match="Simulated crash"):
        atomic_write_text(f, "bad")

    assert f.read_text() == "old"
    assert not f.with_suffix(".txt.tmp").exists()


def test_resolve_path(tmp_path: Path) -> None:
    assert resolve_path(tmp_path, "a/b") == tmp_path / "a" / "b"
    assert resolve_path(tmp_path, "/abs") == Path("/abs")
    assert resolve_path(tmp_path, None) is None
