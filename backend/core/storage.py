import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .errors import HydrationError
from backend.config import Config

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """String key/value store with the shape of browser local storage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Stored string, None if never saved. Raises HydrationError when unreadable."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> bool:
        """Save the string, returning False if the write failed."""

    def close(self) -> None:
        pass


class InMemoryStorage(KeyValueStorage):
    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> bool:
        self.items[key] = value
        return True


class LocalStorage(KeyValueStorage):
    """
    Local storage kept in a single JSON file on disk.

    The file holds one object mapping keys to serialized strings. It is re-read on
    every access, so several processes pointed at the same path see each other's writes.
    """

    def __init__(self, path: str = Config.LOCAL_STORAGE_PATH):
        self.path = os.path.expanduser(path)

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise HydrationError(f"Could not read local storage file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise HydrationError(f"Local storage file {self.path} does not hold an object")
        return data

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        if value is not None and not isinstance(value, str):
            raise HydrationError(f"Local storage key {key} does not hold a string")
        return value

    def set_item(self, key: str, value: str) -> bool:
        try:
            data = self._read()
        except HydrationError as e:
            logger.warning(f"Overwriting unreadable local storage: {e}")
            data = {}
        data[key] = value

        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            logger.error(f"Error writing local storage key {key}: {e}")
            return False


def create_storage() -> KeyValueStorage:
    """Storage backend selected by Config.STORAGE_BACKEND"""
    if Config.STORAGE_BACKEND == "mongodb":
        from .mongodb_client import MongoDBClient
        return MongoDBClient()
    return LocalStorage(Config.LOCAL_STORAGE_PATH)
