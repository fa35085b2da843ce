"""
Test suite for SnapshotStore
测试本地快照的读写与格式
"""

import pytest

from simpleconfig.cache.snapshot_store import SnapshotStore, dumps, escape, loads, unescape
from simpleconfig.errors import SnapshotUnavailable


class TestFormat:
    """Test escaping and parsing of key=value lines"""

    @pytest.mark.parametrize("text", [
        "",
        "plain",
        "with spaces inside",
        " leading and trailing ",
        "a=b:c#d!e",
        "back\\slash\\",
        "line\nbreak\r\ntab\tform\f",
        "\\u0041 is not an escape here",
        "unicode: 配置 ✓ é",
        "control\x01\x1f\x7f\x85",
        "separators  ",
        "#starts-with-hash",
        "!starts-with-bang",
    ])
    def test_round_trip(self, text):
        entries = {text: text, "k": text}
        assert loads(dumps(entries)) == entries

    def test_escape_rules(self):
        assert escape("a b", is_key=True) == "a\\ b"
        assert escape("a b") == "a b"
        assert escape(" a") == "\\ a"
        assert escape("x=y") == "x\\=y"
        assert escape("\x00") == "\\u0000"

    def test_unescape_rejects_dangling_backslash(self):
        with pytest.raises(ValueError):
            unescape("abc\\")

    def test_unescape_rejects_short_unicode_escape(self):
        with pytest.raises(ValueError):
            unescape("\\u12")

    def test_loads_accepts_hand_written_files(self):
        text = (
            "# comment\n"
            "! another comment\n"
            "\n"
            "   indented = value with spaces  \n"
            "colon: separated\n"
            "bare\n"
            "windows=line\r\n"
        )
        assert loads(text) == {
            "indented": "value with spaces  ",
            "colon": "separated",
            "bare": "",
            "windows": "line",
        }

    def test_dumps_writes_header_and_sorted_lines(self):
        lines = dumps({"b": "2", "a": "1"}).splitlines()

        assert lines[0] == "#Client-side property cache"
        assert lines[1].startswith("#")
        assert lines[2:] == ["a=1", "b=2"]


class TestSnapshotStore:
    """Test per-namespace snapshot files"""

    def test_save_and_load(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("billing", {"currency": "EUR", "vat": "0.2"})

        assert store.load("billing") == {"currency": "EUR", "vat": "0.2"}

    def test_save_replaces_previous_content(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("ns", {"old": "1"})
        store.save("ns", {"new": "2"})

        assert store.load("ns") == {"new": "2"}

    def test_save_creates_directory(self, tmp_path):
        store = SnapshotStore(tmp_path / "nested" / "dir")
        store.save("ns", {"k": "v"})

        assert store.load("ns") == {"k": "v"}

    def test_no_temp_files_left_behind(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("ns", {"k": "v"})
        store.save("ns", {"k": "w"})

        assert [p.name for p in tmp_path.iterdir()] == ["ns.properties"]

    def test_missing_snapshot_is_unavailable(self, tmp_path):
        with pytest.raises(SnapshotUnavailable) as exc_info:
            SnapshotStore(tmp_path).load("nothing")

        assert exc_info.value.namespace == "nothing"

    def test_undecodable_snapshot_is_unavailable(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.path_for("ns").write_bytes(b"k=\xff\xfe\n")

        with pytest.raises(SnapshotUnavailable):
            store.load("ns")

    def test_file_name_is_derived_from_namespace(self, tmp_path):
        store = SnapshotStore(tmp_path)

        assert store.path_for("com.example.App") == tmp_path / "com.example.App.properties"
        # Path separators never escape the snapshot directory
        assert store.path_for("../etc/passwd").parent == tmp_path

    def test_namespaces_and_delete(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("a/b", {"k": "v"})
        store.save("plain", {"k": "v"})

        assert store.namespaces() == ["a/b", "plain"]
        assert store.delete("plain") is True
        assert store.delete("plain") is False
        assert store.namespaces() == ["a/b"]

    def test_namespaces_of_missing_directory(self, tmp_path):
        assert SnapshotStore(tmp_path / "absent").namespaces() == []
