"""
Storage Adapter - synchronous key/value storage with pluggable backends.
Holds the persisted trial record, the display-cache mirror, the milestone set
and the analytics event log as serialized strings.

Backends:
- InMemoryKeyValueStore: process-local dict (tests, ephemeral runs)
- JSONFileKeyValueStore: single JSON document on local disk, survives restarts
- MongoKeyValueStore: one document per key in a MongoDB collection
"""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageQuotaExceededError(StorageError):
    """Write rejected because the store is full."""
    pass


class KeyValueStore(ABC):
    """Abstract base class for key/value storage implementations."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is missing."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a string under key, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Missing keys are ignored."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List all stored keys."""
        pass

    def close(self) -> None:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """
    Dict-backed store. An optional max_bytes limit makes writes fail the way
    a full browser storage quota does.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None, max_bytes: Optional[int] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self.max_bytes = max_bytes

    def _size_with(self, key: str, value: str) -> int:
        total = len(key) + len(value)
        for k, v in self._data.items():
            if k != key:
                total += len(k) + len(v)
        return total

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.max_bytes is not None and self._size_with(key, value) > self.max_bytes:
            raise StorageQuotaExceededError(
                f"Writing '{key}' would exceed storage quota of {self.max_bytes} bytes"
            )
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class JSONFileKeyValueStore(KeyValueStore):
    """
    Whole store kept in one JSON object on disk.
    Every mutation rewrites the file through a temp file + rename.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                loaded = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read storage file {self.path}, starting empty: {e}")
            return {}
        if not isinstance(loaded, dict):
            logger.warning(f"Storage file {self.path} is not a JSON object, starting empty")
            return {}
        return {str(k): v for k, v in loaded.items() if isinstance(v, str)}

    def _flush(self, data: Dict[str, str]) -> None:
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Failed to write storage file {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            updated = dict(self._data)
            updated[key] = value
            self._flush(updated)
            self._data = updated

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            updated = dict(self._data)
            del updated[key]
            self._flush(updated)
            self._data = updated

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())


class MongoKeyValueStore(KeyValueStore):
    """
    MongoDB-backed store. Documents look like {"key": ..., "value": ...}.
    """

    def __init__(self, collection, client=None):
        self.collection = collection
        self._client = client

    def get(self, key: str) -> Optional[str]:
        try:
            doc = self.collection.find_one({"key": key}, {"_id": 0, "value": 1})
        except PyMongoError as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e
        if not doc:
            return None
        return doc.get("value")

    def set(self, key: str, value: str) -> None:
        try:
            self.collection.update_one(
                {"key": key},
                {"$set": {"key": key, "value": value}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.collection.delete_one({"key": key})
        except PyMongoError as e:
            raise StorageError(f"Failed to delete '{key}': {e}") from e

    def keys(self) -> List[str]:
        try:
            return [doc["key"] for doc in self.collection.find({}, {"_id": 0, "key": 1})]
        except PyMongoError as e:
            raise StorageError(f"Failed to list keys: {e}") from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB storage connection closed")
