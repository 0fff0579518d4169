"""Tests for the XML manifest loader."""

from pathlib import Path

import pytest

from esrpack.errors import IncompleteOperation, MalformedDocument, ManifestError, MissingRoot
from esrpack.manifest import (
    VERSION_PLACEHOLDER,
    Manifest,
    ReplaceFile,
    ReplaceString,
    load_manifest,
    parse_manifest,
)

_MIXED = """<?xml version="1.0" encoding="utf-8"?>
<modifications>
  <replaceFile>
    <source>files/mozilla.cfg</source>
    <target>core/mozilla.cfg</target>
  </replaceFile>
  <replaceString>
    <file>core/defaults/pref/local-settings.js</file>
    <source>@VERSION@</source>
    <target>#Version#</target>
  </replaceString>
  <replaceFile>
    <source>files/distribution</source>
    <target>core/distribution</target>
  </replaceFile>
</modifications>
"""


# ---------------------------------------------------------------------------
# parse_manifest()
# ---------------------------------------------------------------------------


class TestParseManifest:
    def test_document_order_across_kinds(self) -> None:
        m = parse_manifest(_MIXED)
        assert [op.kind for op in m] == ["replaceFile", "replaceString", "replaceFile"]
        assert len(m) == 3

    def test_replace_file_fields(self) -> None:
        op = parse_manifest(_MIXED).operations[0]
        assert op == ReplaceFile("files/mozilla.cfg", "core/mozilla.cfg", index=0)

    def test_replace_string_fields(self) -> None:
        op = parse_manifest(_MIXED).operations[1]
        assert isinstance(op, ReplaceString)
        assert op.file_path == "core/defaults/pref/local-settings.js"
        assert op.match_text == "@VERSION@"
        assert op.replacement_text == VERSION_PLACEHOLDER
        assert op.uses_version

    def test_accepts_bytes(self) -> None:
        m = parse_manifest(_MIXED.encode("utf-8"))
        assert len(m) == 3

    def test_unknown_elements_ignored(self) -> None:
        doc = (
            "<modifications>"
            "<deleteFile><target>core/x</target></deleteFile>"
            "<replaceFile><source>a</source><target>b</target></replaceFile>"
            "<!-- a comment -->"
            "</modifications>"
        )
        m = parse_manifest(doc)
        assert len(m) == 1
        assert m.operations[0] == ReplaceFile("a", "b", index=1)

    def test_whole_file_only_manifest_is_valid(self) -> None:
        doc = "<modifications><replaceFile><source>a</source><target>b</target></replaceFile></modifications>"
        assert len(parse_manifest(doc)) == 1

    def test_empty_root(self) -> None:
        assert len(parse_manifest("<modifications/>")) == 0

    def test_paths_are_stripped(self) -> None:
        doc = (
            "<modifications><replaceFile>\n"
            "  <source>\n    files/a.cfg\n  </source>\n"
            "  <target> core/a.cfg </target>\n"
            "</replaceFile></modifications>"
        )
        op = parse_manifest(doc).operations[0]
        assert op.source_path == "files/a.cfg"
        assert op.target_path == "core/a.cfg"

    def test_match_text_kept_verbatim(self) -> None:
        doc = (
            "<modifications><replaceString>"
            "<file>f.js</file><source> a = 1; </source><target/>"
            "</replaceString></modifications>"
        )
        op = parse_manifest(doc).operations[0]
        assert op.match_text == " a = 1; "
        assert op.replacement_text == ""

    def test_base_dir_default_and_explicit(self, tmp_path: Path) -> None:
        assert parse_manifest("<modifications/>").base_dir == Path(".")
        assert parse_manifest("<modifications/>", base_dir=tmp_path).base_dir == tmp_path

    def test_operations_are_immutable(self) -> None:
        op = parse_manifest(_MIXED).operations[0]
        with pytest.raises(AttributeError):
            op.target_path = "elsewhere"  # type: ignore[misc]


class TestParseErrors:
    def test_malformed(self) -> None:
        with pytest.raises(MalformedDocument):
            parse_manifest("<modifications><replaceFile></modifications>")

    def test_empty_document_is_malformed(self) -> None:
        with pytest.raises(MalformedDocument):
            parse_manifest("")

    def test_missing_root(self) -> None:
        with pytest.raises(MissingRoot):
            parse_manifest("<changes><replaceFile/></changes>")

    def test_replace_string_without_file(self) -> None:
        doc = (
            "<modifications>"
            "<replaceFile><source>a</source><target>b</target></replaceFile>"
            "<replaceString><source>x</source><target>y</target></replaceString>"
            "</modifications>"
        )
        with pytest.raises(IncompleteOperation) as exc_info:
            parse_manifest(doc)
        assert exc_info.value.element_index == 1
        assert exc_info.value.field == "file"
        assert exc_info.value.tag == "replaceString"

    def test_replace_file_without_target(self) -> None:
        doc = "<modifications><replaceFile><source>a</source></replaceFile></modifications>"
        with pytest.raises(IncompleteOperation, match="target"):
            parse_manifest(doc)

    def test_errors_are_manifest_errors(self) -> None:
        for exc in (MalformedDocument, MissingRoot, IncompleteOperation):
            assert issubclass(exc, ManifestError)


# ---------------------------------------------------------------------------
# load_manifest()
# ---------------------------------------------------------------------------


class TestLoadManifest:
    def test_base_dir_is_manifest_parent(self, tmp_path: Path) -> None:
        path = tmp_path / "conf" / "modifications.xml"
        path.parent.mkdir()
        path.write_text(_MIXED, encoding="utf-8")
        m = load_manifest(path)
        assert isinstance(m, Manifest)
        assert m.base_dir == path.parent
        assert len(m) == 3

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="Cannot read manifest"):
            load_manifest(tmp_path / "nope.xml")

    def test_error_message_names_path(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.xml"
        path.write_text("<oops", encoding="utf-8")
        with pytest.raises(MalformedDocument, match="bad.xml"):
            load_manifest(path)
