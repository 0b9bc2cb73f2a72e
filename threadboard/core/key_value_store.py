"""Scoped key-value persistence used by the local annotation cache."""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from threadboard.core.exceptions import StorageError

logger = logging.getLogger("threadboard")


class KeyValueStore(ABC):
    """Abstract read/write-by-key string storage owned by one client."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent.

        Raises:
            StorageError: Storage exists but cannot be read.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value.

        Raises:
            StorageError: Storage cannot be written.
        """
        ...


class JsonFileStore(KeyValueStore):
    """One UTF-8 file per key inside a directory.

    Keys are percent-encoded into file names so any context id is safe.
    Writes go to a temp file first and are moved into place with
    os.replace, so a crash never leaves a half-written value.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Path):
        self._dir = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self._dir / (quote(key, safe="") + self.SUFFIX)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read key '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            logger.debug(f"Stored key '{key}' ({len(value)} chars)")
        except OSError as e:
            raise StorageError(f"Failed to write key '{key}': {e}") from e
