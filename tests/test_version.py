"""Tests for PE version probing."""

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from typer.testing import CliRunner

from esrpack.errors import NoVersionMetadata, VersionNotFound, VersionProbeError
from esrpack.version import VersionInfo, app, probe_version

runner = CliRunner()


def _fixed(major: int, minor: int, build: int, private: int) -> SimpleNamespace:
    return SimpleNamespace(
        FileVersionMS=(major << 16) | minor,
        FileVersionLS=(build << 16) | private,
    )


def _fake_pe(fixed: Any = None, strings: dict[bytes, bytes] | None = None, nested: bool = True):
    """Build a stand-in for ``pefile.PE`` with the given version resource."""

    class _FakePE:
        closed = False

        def __init__(self, name: str, fast_load: bool = False) -> None:
            if fixed is not None:
                self.VS_FIXEDFILEINFO = [fixed]
            if strings is not None:
                entry = SimpleNamespace(
                    Key=b"StringFileInfo",
                    StringTable=[SimpleNamespace(entries=strings)],
                )
                var = SimpleNamespace(Key=b"VarFileInfo")
                self.FileInfo = [[var, entry]] if nested else [var, entry]

        def parse_data_directories(self, directories=None) -> None:
            pass

        def close(self) -> None:
            type(self).closed = True

    return _FakePE


@pytest.fixture()
def binary(tmp_path: Path) -> Path:
    p = tmp_path / "firefox.exe"
    p.write_bytes(b"MZ")
    return p


class TestProbeVersion:
    def test_reads_fixed_and_product_version(
        self, binary: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fake = _fake_pe(_fixed(115, 3, 1, 8555), {b"ProductVersion": b"115.3.1"})
        monkeypatch.setattr("esrpack.version.pefile.PE", fake)
        info = probe_version(binary)
        assert info == VersionInfo((115, 3, 1, 8555), "115.3.1")
        assert fake.closed

    def test_flat_file_info_layout(self, binary: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = _fake_pe(_fixed(102, 0, 0, 0), {b"ProductVersion": b"102.0"}, nested=False)
        monkeypatch.setattr("esrpack.version.pefile.PE", fake)
        assert probe_version(binary).product_version == "102.0"

    def test_product_version_verbatim(self, binary: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = _fake_pe(_fixed(1, 2, 3, 4), {b"ProductVersion": b" 1.2 beta "})
        monkeypatch.setattr("esrpack.version.pefile.PE", fake)
        info = probe_version(binary)
        assert info.product_version == " 1.2 beta "
        assert info.file_version_str == "1.2.3.4"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(VersionNotFound):
            probe_version(tmp_path / "missing.exe")

    def test_not_a_pe(self, tmp_path: Path) -> None:
        p = tmp_path / "notes.txt"
        p.write_bytes(b"this is not a portable executable")
        with pytest.raises(NoVersionMetadata):
            probe_version(p)

    def test_no_fixed_file_info(self, binary: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("esrpack.version.pefile.PE", _fake_pe(None, {b"ProductVersion": b"1"}))
        with pytest.raises(NoVersionMetadata):
            probe_version(binary)

    def test_no_product_version(self, binary: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "esrpack.version.pefile.PE", _fake_pe(_fixed(1, 0, 0, 0), {b"FileVersion": b"1.0"})
        )
        with pytest.raises(NoVersionMetadata, match="ProductVersion"):
            probe_version(binary)

    def test_errors_share_base(self) -> None:
        assert issubclass(VersionNotFound, VersionProbeError)
        assert issubclass(NoVersionMetadata, VersionProbeError)


class TestProbeCommand:
    def test_json(self, binary: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = _fake_pe(_fixed(115, 3, 1, 0), {b"ProductVersion": b"115.3.1"})
        monkeypatch.setattr("esrpack.version.pefile.PE", fake)
        result = runner.invoke(app, [str(binary), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "file_version": "115.3.1.0",
            "product_version": "115.3.1",
        }

    def test_missing_binary(self, tmp_path: Path) -> None:
        result = runner.invoke(app, [str(tmp_path / "x.exe")])
        assert result.exit_code == 1
