"""Key-value stores used to persist the run record."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Protocol

from trail.data import config

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    """Minimal get/set/remove contract over string blobs."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStore:
    """In-process store; last write wins."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStore:
    """Stores each key as a JSON text file under a directory."""

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else config.get_save_dir()

    def get_item(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Unable to read save file %s", path, exc_info=True)
            return None

    def set_item(self, key: str, value: str) -> None:
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._path_for(key).write_text(value, encoding="utf-8")

    def remove_item(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            return

    def _path_for(self, key: str) -> Path:
        if not key:
            raise ValueError("Storage key must not be empty.")
        return self._base_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"
