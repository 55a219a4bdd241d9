"""User-scoped storage on top of the key/value store.

Keys are namespaced as `user_<id>_<key>` for signed-in users and
`anonymous_<key>` otherwise. Values are JSON encoded.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from services.storage_adapter import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

ANONYMOUS_PREFIX = "anonymous_"


def user_prefix(user_id: str) -> str:
    return f"user_{user_id}_"


def scoped_key(key: str, user_id: Optional[str] = None) -> str:
    if user_id:
        return f"{user_prefix(user_id)}{key}"
    return f"{ANONYMOUS_PREFIX}{key}"


class UserScopedStore:
    """JSON values stored under keys scoped to one user (or anonymous)."""

    def __init__(self, store: KeyValueStore, user_id: Optional[str] = None):
        self.store = store
        self.user_id = user_id

    def get(self, key: str, default: Any = None) -> Any:
        try:
            stored = self.store.get(scoped_key(key, self.user_id))
            return json.loads(stored) if stored else default
        except (StorageError, ValueError):
            return default

    def set(self, key: str, value: Any) -> None:
        try:
            self.store.set(scoped_key(key, self.user_id), json.dumps(value))
        except StorageError as e:
            logger.warning(f"Failed to store value for {key}: {e}")


def migrate_anonymous_data(store: KeyValueStore, user_id: str) -> List[str]:
    """
    Move anonymous keys into the user's scope.
    Existing user data wins; anonymous copies are removed either way.
    Returns the anonymous keys that were processed.
    """
    anonymous_keys = [k for k in store.keys() if k.startswith(ANONYMOUS_PREFIX)]
    migrated = []

    for key in anonymous_keys:
        try:
            data = store.get(key)
            if data:
                new_key = key.replace(ANONYMOUS_PREFIX, user_prefix(user_id), 1)
                if not store.get(new_key):
                    store.set(new_key, data)
                store.delete(key)
                migrated.append(key)
        except StorageError as e:
            logger.warning(f"Failed to migrate data for key {key}: {e}")

    if migrated:
        logger.info(f"Migrated {len(migrated)} anonymous keys to user {user_id}")
    return migrated


def get_user_data_keys(store: KeyValueStore, user_id: str) -> List[str]:
    prefix = user_prefix(user_id)
    return [k for k in store.keys() if k.startswith(prefix)]


def delete_user_data(store: KeyValueStore, user_id: str) -> int:
    keys = get_user_data_keys(store, user_id)
    for key in keys:
        store.delete(key)
    return len(keys)


def export_user_data(store: KeyValueStore, user_id: str) -> Dict[str, Any]:
    """All of a user's values keyed by their unscoped names."""
    prefix = user_prefix(user_id)
    user_data: Dict[str, Any] = {}

    for key in get_user_data_keys(store, user_id):
        try:
            data = store.get(key)
            if data:
                user_data[key[len(prefix):]] = json.loads(data)
        except (StorageError, ValueError) as e:
            logger.warning(f"Failed to export data for key {key}: {e}")

    return user_data
