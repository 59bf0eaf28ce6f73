"""
Durable key-value stores.

Values are opaque bytes overwritten wholesale on every set.
"""

import logging
import os
import re
from pathlib import Path
from typing import Protocol

from hrv_snapshot.utils.exceptions import StorageError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class InMemoryStore:
    """Process-local store, mainly for tests and dry runs."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class FileKeyValueStore:
    """
    Directory-backed store keeping one file per key.

    Writes go to a temporary file that then replaces the previous value,
    so readers never see a partially written entry.
    """

    def __init__(self, directory: str | Path) -> None:
        """
        Initialize the store.

        Args:
            directory: Directory holding the key files. Created if missing.
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid store key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> bytes | None:
        """
        Read the value stored under key.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        path = self._path_for(key)
        if not path.exists():
            return None

        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        """
        Overwrite the value stored under key.

        Raises:
            StorageError: If the value cannot be written.
        """
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")

        try:
            with open(tmp_path, "wb") as f:
                f.write(value)
            os.replace(tmp_path, path)
            logger.debug(f"Wrote {len(value)} bytes to {path}")
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e
