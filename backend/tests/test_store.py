"""
Unit tests for the document and log stores.

Tests verify:
- In-memory stores isolate callers from internal state
- File stores survive missing and corrupt files
- Write failures return False instead of raising
- Writes leave no temporary files behind
"""
import json

import pytest

from ewrouter.core.metrics import store_failures_total
from ewrouter.core.store import (
    InMemoryDocumentStore,
    InMemoryLogStore,
    JsonFileStore,
    JsonlFileStore,
    atomic_write_text,
)


class TestInMemoryStores:
    """Test in-memory store implementations."""

    def test_document_put_get(self):
        store = InMemoryDocumentStore()
        assert store.get("missing") is None
        assert store.put("k", {"v": 1}) is True
        assert store.get("k") == {"v": 1}

    def test_document_load_returns_copy(self):
        """Test that mutating a loaded document does not change the store."""
        store = InMemoryDocumentStore({"k": {"v": 1}})
        document = store.load()
        document["k"]["v"] = 2
        assert store.get("k") == {"v": 1}

    def test_log_append_and_tail(self):
        store = InMemoryLogStore()
        for i in range(5):
            store.append({"i": i})
        assert [r["i"] for r in store.tail(2)] == [3, 4]
        assert store.tail(0) == []
        assert len(store.read()) == 5


class TestJsonFileStore:
    """Test JSON document file store."""

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileStore(tmp_path / "cache.json")
        assert store.load() == {}

    def test_roundtrip(self, tmp_path):
        path = tmp_path / "nested" / "cache.json"
        store = JsonFileStore(path)
        assert store.put("sig", {"hit_count": 1}) is True
        assert json.loads(path.read_text()) == {"sig": {"hit_count": 1}}
        assert JsonFileStore(path).get("sig") == {"hit_count": 1}

    def test_corrupt_file_is_empty(self, tmp_path):
        """Test that a corrupt document degrades to empty."""
        path = tmp_path / "cache.json"
        path.write_text("{not json")
        before = store_failures_total.labels(store="pattern_cache", operation="read")._value.get()

        assert JsonFileStore(path).load() == {}

        after = store_failures_total.labels(store="pattern_cache", operation="read")._value.get()
        assert after == before + 1

    def test_non_object_document_is_empty(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("[1, 2, 3]")
        assert JsonFileStore(path).load() == {}

    def test_write_failure_returns_false(self, tmp_path):
        """Test that an unwritable location is reported, not raised."""
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = JsonFileStore(blocker / "cache.json")

        assert store.replace({"k": 1}) is False
        assert store.load() == {}

    def test_no_temporary_files_left(self, tmp_path):
        store = JsonFileStore(tmp_path / "cache.json")
        store.put("a", 1)
        store.put("b", 2)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["cache.json"]


class TestJsonlFileStore:
    """Test JSONL log file store."""

    def test_append_and_read(self, tmp_path):
        store = JsonlFileStore(tmp_path / "history.jsonl")
        assert store.append({"i": 1}) is True
        assert store.append({"i": 2}) is True
        assert store.read() == [{"i": 1}, {"i": 2}]
        assert store.tail(1) == [{"i": 2}]

    def test_corrupt_lines_are_skipped(self, tmp_path):
        path = tmp_path / "history.jsonl"
        path.write_text('{"i": 1}\nnot json\n[1]\n{"i": 2}\n')
        assert JsonlFileStore(path).read() == [{"i": 1}, {"i": 2}]

    def test_unreadable_log_is_not_truncated(self, tmp_path):
        """Test that an append after a failed read leaves the existing log intact."""
        path = tmp_path / "history.jsonl"
        original = b'{"i": 1}\n\xff\xfe broken\n{"i": 2}\n'
        path.write_bytes(original)
        store = JsonlFileStore(path)

        assert store.read() == []
        assert store.append({"i": 3}) is False
        assert path.read_bytes() == original

    def test_write_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        store = JsonlFileStore(blocker / "history.jsonl")
        assert store.append({"i": 1}) is False
        assert store.read() == []


def test_atomic_write_replaces_content(tmp_path):
    path = tmp_path / "file.txt"
    atomic_write_text(path, "first")
    atomic_write_text(path, "second")
    assert path.read_text() == "second"


def test_atomic_write_raises_on_bad_directory(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(OSError):
        atomic_write_text(blocker / "file.txt", "data")
