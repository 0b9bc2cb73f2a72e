"""Tests for JsonFileStore."""

import pytest

from threadboard.core.exceptions import StorageError
from threadboard.core.key_value_store import JsonFileStore


class TestJsonFileStore:
    def test_get_absent_key_returns_none(self, tmp_dir):
        store = JsonFileStore(tmp_dir / "kv")
        assert store.get("missing") is None

    def test_set_then_get(self, tmp_dir):
        store = JsonFileStore(tmp_dir / "kv")
        store.set("teamboard_embedded_comments_doc-1", '[{"a": 1}]')
        assert store.get("teamboard_embedded_comments_doc-1") == '[{"a": 1}]'

    def test_set_overwrites(self, tmp_dir):
        store = JsonFileStore(tmp_dir)
        store.set("k", "one")
        store.set("k", "two")
        assert store.get("k") == "two"

    def test_keys_with_path_characters_are_safe(self, tmp_dir):
        store = JsonFileStore(tmp_dir / "kv")
        store.set("prefix_../../etc/passwd", "x")
        assert store.get("prefix_../../etc/passwd") == "x"
        assert [p.name for p in (tmp_dir / "kv").iterdir()] == ["prefix_..%2F..%2Fetc%2Fpasswd.json"]

    def test_unicode_values(self, tmp_dir):
        store = JsonFileStore(tmp_dir)
        store.set("k", "회의록 ✓")
        assert store.get("k") == "회의록 ✓"

    def test_no_temp_files_left_behind(self, tmp_dir):
        store = JsonFileStore(tmp_dir)
        store.set("k", "v")
        assert [p.name for p in tmp_dir.iterdir()] == ["k.json"]

    def test_unreadable_value_raises_storage_error(self, tmp_dir):
        store = JsonFileStore(tmp_dir)
        (tmp_dir / "k.json").write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(StorageError):
            store.get("k")

    def test_unwritable_directory_raises_storage_error(self, tmp_dir):
        blocker = tmp_dir / "file"
        blocker.write_text("not a directory")
        store = JsonFileStore(blocker / "kv")
        with pytest.raises(StorageError):
            store.set("k", "v")
