"""Definition loading, per-user settings and save storage."""

from .config import TrailSettings, load_settings, save_settings
from .errors import DataError, DataLoadError, DataReferenceError, DataValidationError
from .paths import get_definitions_path, get_repo_root
from .storage import FileStore, KeyValueStore, MemoryStore

__all__ = [
    "DataError",
    "DataLoadError",
    "DataReferenceError",
    "DataValidationError",
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "TrailSettings",
    "get_definitions_path",
    "get_repo_root",
    "load_settings",
    "save_settings",
]
