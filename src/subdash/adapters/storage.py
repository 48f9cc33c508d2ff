"""ABOUTME: Local key/value storage for client side state
ABOUTME: JSON file storage with an in-memory fallback when the file location is not writable"""

import abc
import json
import os
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)


class KeyValueStorage(abc.ABC):
    @abc.abstractmethod
    def get_item(self, key: str) -> str | None:
        raise NotImplementedError

    @abc.abstractmethod
    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    def __init__(self, items: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(items) if items else {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


class FileStorage(KeyValueStorage):
    """All keys in one JSON object on disk, rewritten atomically on every change."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open(encoding="utf-8") as fp:
            data = json.load(fp)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        # a leftover tmp file would keep its old mode through O_CREAT
        tmp_path.unlink(missing_ok=True)
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            json.dump(data, fp, indent=2, sort_keys=True)
        tmp_path.replace(self.path)

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def clear(self) -> None:
        self._save({})


class SafeStorage(KeyValueStorage):
    """File storage that degrades to memory if the file cannot be written."""

    def __init__(self, path: Path) -> None:
        self._file = FileStorage(path)
        self._memory = MemoryStorage()
        self.is_persistent = self._check_file_storage()

    def _check_file_storage(self) -> bool:
        test_key = "__storage_test__"
        try:
            self._file.set_item(test_key, "test")
            self._file.remove_item(test_key)
        except (OSError, ValueError) as error:
            logger.warning("file storage not available, using in-memory storage", path=str(self._file.path), error=str(error))
            return False
        return True

    @property
    def _backend(self) -> KeyValueStorage:
        return self._file if self.is_persistent else self._memory

    def get_item(self, key: str) -> str | None:
        return self._backend.get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self._backend.set_item(key, value)

    def remove_item(self, key: str) -> None:
        self._backend.remove_item(key)

    def clear(self) -> None:
        self._backend.clear()
