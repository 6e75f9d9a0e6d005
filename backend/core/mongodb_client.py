from pymongo import MongoClient
from typing import Optional
import logging
from datetime import datetime
from backend.config import Config
from .errors import HydrationError
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

class MongoDBClient(KeyValueStorage):
    """
    MongoDB-backed local storage.

    Each storage key is one document {"key": ..., "value": ..., "updated_at": ...}
    in Config.STORAGE_COLLECTION, so a deployment can keep quiz state off the
    local disk while the session code stays unchanged.
    """
    def __init__(self, client: Optional[MongoClient] = None):
        self.client = client or MongoClient(Config.MONGODB_URI)
        self.db = self.client[Config.DATABASE_NAME]
        self.collection = self.db[Config.STORAGE_COLLECTION]
        self._ensure_key_index()

    def _ensure_key_index(self):
        """Ensure a unique index exists on the storage key"""
        try:
            self.collection.create_index("key", unique=True)
        except Exception as e:
            logger.warning(f"Could not create key index: {e}")

    def get_item(self, key: str) -> Optional[str]:
        """
        Fetch the stored string for a key.

        Args:
            key (str): Storage key

        Returns:
            Optional[str]: Stored value, or None if the key was never saved

        Raises:
            HydrationError: the collection could not be read
        """
        try:
            document = self.collection.find_one({"key": key}, {"_id": 0})
            if not document:
                return None
            return document.get("value")
        except Exception as e:
            logger.error(f"Error fetching storage key {key}: {e}")
            raise HydrationError(f"Could not read storage key {key}: {e}") from e

    def set_item(self, key: str, value: str) -> bool:
        """Save or replace the stored string for a key."""
        try:
            self.collection.update_one(
                {"key": key},
                {"$set": {"value": value, "updated_at": datetime.now()}},
                upsert=True
            )
            logger.info(f"Saved storage key: {key}")
            return True
        except Exception as e:
            logger.error(f"Error saving storage key {key}: {e}")
            return False

    def close(self):
        self.client.close()
