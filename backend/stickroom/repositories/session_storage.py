# stickroom/repositories/session_storage.py

import logging
import os
from pathlib import Path
from typing import Dict, Optional

from stickroom.errors import StorageError

logger = logging.getLogger(__name__)

SESSION_KEY = "userSession"
BACKUP_KEY = "userSession_backup"


class MemorySessionStorage:
    """String slots kept in a dict; used by tests and throwaway clients."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.slots: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.slots.get(key)

    def set(self, key: str, value: str) -> None:
        self.slots[key] = value

    def remove(self, key: str) -> None:
        self.slots.pop(key, None)


class FileSessionStorage:
    """One file per slot under `directory`."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"failed to write {path}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"failed to remove {key}: {e}") from e
