"""
Key/value storage backends and the database singleton.
File store persistence across instances; Mongo store against a mocked collection.
"""
import json
from unittest.mock import MagicMock

import pytest
from pymongo.errors import PyMongoError

from database import Database
from services.storage_adapter import (
    InMemoryKeyValueStore,
    JSONFileKeyValueStore,
    MongoKeyValueStore,
    StorageError,
    StorageQuotaExceededError,
)


class TestInMemoryStore:

    def test_get_set_delete(self):
        store = InMemoryKeyValueStore()
        assert store.get("k") is None
        store.set("k", "v")
        assert store.get("k") == "v"
        store.delete("k")
        assert store.get("k") is None

    def test_delete_missing_is_noop(self):
        InMemoryKeyValueStore().delete("missing")

    def test_quota(self):
        store = InMemoryKeyValueStore(max_bytes=10)
        store.set("a", "12345")
        with pytest.raises(StorageQuotaExceededError):
            store.set("b", "123456789")
        assert store.get("b") is None

    def test_overwrite_counts_new_size_only(self):
        store = InMemoryKeyValueStore(max_bytes=10)
        store.set("a", "123456789")
        store.set("a", "987654321")
        assert store.get("a") == "987654321"

    def test_quota_error_is_storage_error(self):
        assert issubclass(StorageQuotaExceededError, StorageError)


class TestJSONFileStore:

    def test_values_survive_reload(self, tmp_path):
        path = tmp_path / "store.json"
        JSONFileKeyValueStore(str(path)).set("k", "v")
        assert JSONFileKeyValueStore(str(path)).get("k") == "v"

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "store.json"
        JSONFileKeyValueStore(str(path)).set("k", "v")
        assert json.loads(path.read_text()) == {"k": "v"}

    def test_delete_persists(self, tmp_path):
        path = tmp_path / "store.json"
        store = JSONFileKeyValueStore(str(path))
        store.set("a", "1")
        store.set("b", "2")
        store.delete("a")
        assert JSONFileKeyValueStore(str(path)).keys() == ["b"]

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{broken")
        store = JSONFileKeyValueStore(str(path))
        assert store.keys() == []
        store.set("k", "v")
        assert json.loads(path.read_text()) == {"k": "v"}

    def test_non_object_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[1, 2]")
        assert JSONFileKeyValueStore(str(path)).keys() == []

    def test_write_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JSONFileKeyValueStore(str(blocker / "store.json"))
        with pytest.raises(StorageError):
            store.set("k", "v")
        assert store.get("k") is None


class TestMongoStore:

    def test_get_returns_value(self):
        collection = MagicMock()
        collection.find_one.return_value = {"value": "v"}
        store = MongoKeyValueStore(collection)
        assert store.get("k") == "v"
        collection.find_one.assert_called_once_with({"key": "k"}, {"_id": 0, "value": 1})

    def test_get_missing(self):
        collection = MagicMock()
        collection.find_one.return_value = None
        assert MongoKeyValueStore(collection).get("k") is None

    def test_set_upserts(self):
        collection = MagicMock()
        MongoKeyValueStore(collection).set("k", "v")
        collection.update_one.assert_called_once_with(
            {"key": "k"}, {"$set": {"key": "k", "value": "v"}}, upsert=True
        )

    def test_delete(self):
        collection = MagicMock()
        MongoKeyValueStore(collection).delete("k")
        collection.delete_one.assert_called_once_with({"key": "k"})

    def test_keys(self):
        collection = MagicMock()
        collection.find.return_value = [{"key": "a"}, {"key": "b"}]
        assert MongoKeyValueStore(collection).keys() == ["a", "b"]

    def test_driver_errors_become_storage_errors(self):
        collection = MagicMock()
        collection.update_one.side_effect = PyMongoError("down")
        collection.find_one.side_effect = PyMongoError("down")
        store = MongoKeyValueStore(collection)
        with pytest.raises(StorageError):
            store.set("k", "v")
        with pytest.raises(StorageError):
            store.get("k")

    def test_close_closes_client(self):
        client = MagicMock()
        MongoKeyValueStore(MagicMock(), client=client).close()
        client.close.assert_called_once()


class TestDatabase:

    def test_memory_backend(self):
        db = Database()
        assert isinstance(db.connect("memory"), InMemoryKeyValueStore)

    def test_file_backend_uses_storage_path(self, tmp_path, monkeypatch):
        path = tmp_path / "kv.json"
        monkeypatch.setenv("STORAGE_PATH", str(path))
        db = Database()
        store = db.connect("file")
        assert isinstance(store, JSONFileKeyValueStore)
        assert store.path == path

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            Database().connect("redis")

    def test_get_store_connects_lazily(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        db = Database()
        assert isinstance(db.get_store(), InMemoryKeyValueStore)

    def test_use_and_close(self):
        db = Database()
        store = InMemoryKeyValueStore()
        assert db.use(store) is store
        assert db.get_store() is store
        db.close()
        assert db.store is None


class TestJSONFileStoreCleanup:

    def test_failed_replace_removes_temp_file(self, tmp_path, monkeypatch):
        from services import storage_adapter

        def failing_replace(src, dst):
            raise OSError("disk full")

        store = JSONFileKeyValueStore(str(tmp_path / "store.json"))
        monkeypatch.setattr(storage_adapter.os, "replace", failing_replace)
        with pytest.raises(StorageError):
            store.set("k", "v")
        assert list(tmp_path.glob("*.tmp")) == []
        assert not (tmp_path / "store.json").exists()
        assert store.get("k") is None
