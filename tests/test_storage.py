"""
contribround/tests/test_storage.py

Unit tests for storage backends and the journaled StateStore.
"""

import json
import pytest

from contribround.errors import StorageError
from contribround.protocol.storage import (
    FileBackend,
    MemoryBackend,
    StateStore,
)


@pytest.fixture
def file_backend(tmp_path):
    return FileBackend(tmp_path / "state")


class TestMemoryBackend:
    """Test MemoryBackend."""

    def test_put_get(self):
        backend = MemoryBackend()
        backend.put("round:1", {"name": "r1"})
        assert backend.get("round:1") == {"name": "r1"}

    def test_get_missing(self):
        assert MemoryBackend().get("nothing") is None

    def test_values_are_detached(self):
        backend = MemoryBackend()
        value = {"members": ["a"]}
        backend.put("k", value)
        value["members"].append("b")
        assert backend.get("k") == {"members": ["a"]}

    def test_delete(self):
        backend = MemoryBackend()
        backend.put("k", 1)
        assert backend.delete("k") is True
        assert backend.delete("k") is False
        assert backend.get("k") is None

    def test_list_keys_prefix(self):
        backend = MemoryBackend()
        backend.put("member:a", "admin")
        backend.put("member:b", "contributor")
        backend.put("round:1", {})
        assert sorted(backend.list_keys("member:")) == ["member:a", "member:b"]


class TestFileBackend:
    """Test FileBackend."""

    def test_put_get(self, file_backend):
        file_backend.put("member:alice", "admin")
        assert file_backend.get("member:alice") == "admin"

    def test_survives_reopen(self, tmp_path):
        FileBackend(tmp_path).put("meta:round_id", 3)
        reopened = FileBackend(tmp_path)
        assert reopened.get("meta:round_id") == 3
        assert reopened.list_keys("meta:") == ["meta:round_id"]

    def test_delete(self, file_backend):
        file_backend.put("k", [1, 2])
        assert file_backend.delete("k") is True
        assert file_backend.get("k") is None
        assert file_backend.delete("k") is False

    def test_special_characters_in_key(self, file_backend):
        key = "member:../../etc/passwd"
        file_backend.put(key, "contributor")
        assert file_backend.get(key) == "contributor"

    def test_metadata_written(self, tmp_path):
        FileBackend(tmp_path).put("k", 1)
        metadata = json.loads((tmp_path / "metadata.json").read_text())
        assert "k" in metadata

    def test_corrupt_metadata_raises(self, tmp_path):
        (tmp_path / "metadata.json").write_text("{not json")
        with pytest.raises(StorageError):
            FileBackend(tmp_path)


class TestStateStore:
    """Test StateStore journaling."""

    def test_write_through_without_transaction(self):
        backend = MemoryBackend()
        store = StateStore(backend)
        store.insert("k", 1)
        assert backend.get("k") == 1

    def test_get_default(self):
        assert StateStore().get("missing", []) == []

    def test_commit_applies_journal(self):
        backend = MemoryBackend()
        backend.put("old", 1)
        store = StateStore(backend)

        store.begin()
        store.insert("new", 2)
        store.remove("old")
        assert backend.get("new") is None
        assert store.get("new") == 2
        assert store.contains("old") is False

        store.commit()
        assert backend.get("new") == 2
        assert backend.get("old") is None
        assert store.in_transaction is False

    def test_rollback_discards_journal(self):
        backend = MemoryBackend()
        backend.put("k", 1)
        store = StateStore(backend)

        store.begin()
        store.insert("k", 99)
        store.insert("other", 5)
        store.rollback()

        assert store.get("k") == 1
        assert store.contains("other") is False

    def test_keys_merge_journal(self):
        store = StateStore()
        store.insert("member:a", "admin")
        store.insert("member:b", "contributor")

        store.begin()
        store.insert("member:c", "contributor")
        store.remove("member:a")
        assert store.keys("member:") == ["member:b", "member:c"]
        store.rollback()

        assert store.keys("member:") == ["member:a", "member:b"]

    def test_remove_reports_existence(self):
        store = StateStore()
        store.insert("k", 1)
        assert store.remove("k") is True
        assert store.remove("k") is False

    def test_journal_values_are_copies(self):
        store = StateStore()
        store.begin()
        members = ["a"]
        store.insert("set", members)
        members.append("b")
        assert store.get("set") == ["a"]
        store.get("set").append("c")
        assert store.get("set") == ["a"]

    def test_nested_begin_rejected(self):
        store = StateStore()
        store.begin()
        with pytest.raises(StorageError):
            store.begin()

    def test_commit_without_begin_rejected(self):
        with pytest.raises(StorageError):
            StateStore().commit()


class FailingBackend(MemoryBackend):
    """MemoryBackend whose put() fails for one key while armed."""

    def __init__(self, fail_key):
        super().__init__()
        self.fail_key = fail_key
        self.armed = True

    def put(self, key, value):
        if self.armed and key == self.fail_key:
            raise StorageError(f"disk full writing {key}")
        super().put(key, value)


class TestStateStoreCommitFailure:
    """A failed commit leaves the backend as it was before the commit."""

    def test_partial_commit_restored(self):
        backend = FailingBackend("contributor:bob")
        backend.put("contributor:alice", {"votes": 0})
        store = StateStore(backend)

        store.begin()
        store.insert("contributor:alice", {"votes": 3})
        store.insert("contributor:carol", {"votes": 1})
        store.insert("contributor:bob", {"reputation": 4})
        with pytest.raises(StorageError):
            store.commit()

        assert backend.get("contributor:alice") == {"votes": 0}
        assert backend.get("contributor:carol") is None
        assert backend.get("contributor:bob") is None
        assert store.in_transaction is False

    def test_deleted_key_restored(self):
        backend = FailingBackend("b")
        backend.put("a", 1)
        store = StateStore(backend)

        store.begin()
        store.remove("a")
        store.insert("b", 2)
        with pytest.raises(StorageError):
            store.commit()

        assert backend.get("a") == 1
