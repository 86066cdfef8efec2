"""
Storage areas for ReWatchKit.

A storage area is a flat key/value store with the read/write contract of a
browser extension's local storage: ``get`` returns copies, ``set`` merges
items, ``remove`` deletes keys. Values must be JSON-serializable.
"""

import copy
import json
import logging
import os
import shutil
import time
from typing import Any, Dict, Iterable, Optional, Union

logger = logging.getLogger(__name__)

Keys = Optional[Union[str, Iterable[str]]]


def _key_list(keys: Keys) -> Optional[list]:
    if keys is None:
        return None
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class StorageArea:
    """Base storage interface."""

    def get(self, keys: Keys = None) -> Dict[str, Any]:
        """
        Read items.

        Args:
            keys: One key, several keys, or None for everything

        Returns:
            Mapping of the requested keys that exist to copies of their values
        """
        raise NotImplementedError

    def set(self, items: Dict[str, Any]) -> None:
        raise NotImplementedError

    def remove(self, keys: Union[str, Iterable[str]]) -> None:
        raise NotImplementedError


class MemoryStorage(StorageArea):
    """Storage held in a dictionary, for tests and short-lived sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._items: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, keys: Keys = None) -> Dict[str, Any]:
        wanted = _key_list(keys)
        if wanted is None:
            return copy.deepcopy(self._items)
        return {key: copy.deepcopy(self._items[key]) for key in wanted if key in self._items}

    def set(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            self._items[key] = copy.deepcopy(value)

    def remove(self, keys: Union[str, Iterable[str]]) -> None:
        for key in _key_list(keys) or []:
            self._items.pop(key, None)


class JsonFileStorage(StorageArea):
    """
    Storage persisted to a single JSON file.

    Writes go to a temporary file that replaces the target atomically, and
    the previous good file is kept as ``<path>.bak``. A corrupt or missing
    file falls back to the backup, then to an empty store.

    Args:
        path: JSON file location (parent directories are created)

    Raises:
        ValueError: If path is empty or points at a directory
    """

    def __init__(self, path: str):
        if not path:
            raise ValueError("Storage path must not be empty")
        if os.path.isdir(path):
            raise ValueError(f"Storage path is a directory: {path}")
        self.path = path
        self.backup_path = f"{path}.bak"
        self._items = self._load()

    def _read_file(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read storage file {path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {path}: top-level value is not an object")
            return None
        return data

    def _load(self) -> Dict[str, Any]:
        data = self._read_file(self.path)
        if data is not None:
            return data
        backup = self._read_file(self.backup_path)
        if backup is not None:
            logger.warning(f"Restored progress store from backup {self.backup_path}")
            return backup
        return {}

    def _flush(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        if os.path.exists(self.path):
            try:
                shutil.copy2(self.path, self.backup_path)
            except OSError as e:
                logger.warning(f"Failed to update storage backup: {e}")

        tmp_path = os.path.join(
            directory, f".{os.path.basename(self.path)}.{os.getpid()}.{int(time.time() * 1000)}.tmp"
        )
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._items, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write storage file {self.path}: {str(e)}")
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, keys: Keys = None) -> Dict[str, Any]:
        wanted = _key_list(keys)
        if wanted is None:
            return copy.deepcopy(self._items)
        return {key: copy.deepcopy(self._items[key]) for key in wanted if key in self._items}

    def set(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            self._items[key] = copy.deepcopy(value)
        self._flush()

    def remove(self, keys: Union[str, Iterable[str]]) -> None:
        removed = False
        for key in _key_list(keys) or []:
            if key in self._items:
                del self._items[key]
                removed = True
        if removed:
            self._flush()
