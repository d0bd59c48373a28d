"""
Local Key/Value Storage

Python stand-ins for the browser's localStorage: synchronous, string-valued
and capacity-limited. Two implementations:

- InMemoryLocalStorage: process memory only (tests, ephemeral sessions)
- FileLocalStorage: one JSON document in a directory, replaced atomically

Both count capacity as the UTF-8 size of every key plus its value and raise
StorageQuotaExceededError instead of silently dropping data.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

from src.services.storage.interface import (
    LocalStorageInterface,
    StorageError,
    StorageQuotaExceededError,
)


logger = structlog.get_logger(__name__)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
STORAGE_FILE_NAME = "local_storage.json"


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class InMemoryLocalStorage(LocalStorageInterface):
    """Dictionary-backed local storage with a byte quota."""

    def __init__(self, quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES):
        self._items: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    @property
    def used_bytes(self) -> int:
        return sum(_entry_size(k, v) for k, v in self._items.items())

    def _check_quota(self, key: str, value: str) -> None:
        if self._quota_bytes is None:
            return
        current = self._items.get(key)
        required = self.used_bytes + _entry_size(key, value)
        if current is not None:
            required -= _entry_size(key, current)
        if required > self._quota_bytes:
            raise StorageQuotaExceededError(key, required, self._quota_bytes)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileLocalStorage(InMemoryLocalStorage):
    """
    File-backed local storage.

    The whole key space lives in one JSON object so a write either fully
    lands or not at all (temp file + os.replace).
    """

    def __init__(
        self,
        directory: Union[str, Path],
        quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES,
    ):
        super().__init__(quota_bytes=quota_bytes)
        self._directory = Path(directory)
        self._path = self._directory / STORAGE_FILE_NAME
        self._items = self._read_file()

    @property
    def path(self) -> Path:
        return self._path

    def _read_file(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            # A corrupt file behaves like an empty browser profile.
            logger.warning("local_storage_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            logger.warning("local_storage_unexpected_shape", path=str(self._path))
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _write_file(self, items: dict[str, str]) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(items, handle, ensure_ascii=False)
                os.replace(tmp_path, self._path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write local storage file {self._path}: {e}")

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        updated = dict(self._items)
        updated[key] = value
        self._write_file(updated)
        self._items = updated

    def remove_item(self, key: str) -> None:
        if key not in self._items:
            return
        updated = dict(self._items)
        del updated[key]
        self._write_file(updated)
        self._items = updated
