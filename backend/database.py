from pymongo import MongoClient
from dotenv import load_dotenv
import os
import logging
from pathlib import Path

from services.storage_adapter import (
    KeyValueStore,
    InMemoryKeyValueStore,
    JSONFileKeyValueStore,
    MongoKeyValueStore,
)

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_PATH = ROOT_DIR / "data" / "docsmart_store.json"


class Database:
    store: KeyValueStore = None

    def connect(self, backend: str = None) -> KeyValueStore:
        backend = (backend or os.environ.get("STORAGE_BACKEND", "file")).lower()
        try:
            if backend == "memory":
                self.store = InMemoryKeyValueStore()
            elif backend == "file":
                path = os.environ.get("STORAGE_PATH", str(DEFAULT_STORAGE_PATH))
                self.store = JSONFileKeyValueStore(path)
            elif backend == "mongo":
                mongo_url = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
                db_name = os.environ.get("DB_NAME", "docsmart")
                collection_name = os.environ.get("STORAGE_COLLECTION", "kv_store")
                client = MongoClient(mongo_url)
                collection = client[db_name][collection_name]
                collection.create_index("key", unique=True)
                self.store = MongoKeyValueStore(collection, client=client)
            else:
                raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
            logger.info(f"Storage backend ready: {backend}")
        except Exception as e:
            logger.error(f"Failed to initialise storage backend {backend}: {e}")
            raise
        return self.store

    def close(self):
        if self.store is not None:
            self.store.close()
            logger.info("Storage backend closed")
        self.store = None

    def get_store(self) -> KeyValueStore:
        if self.store is None:
            self.connect()
        return self.store

    def use(self, store: KeyValueStore) -> KeyValueStore:
        """Swap in an already-built store (tests, embedding)."""
        self.store = store
        return store


database = Database()
