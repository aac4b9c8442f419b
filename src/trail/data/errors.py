"""Exceptions raised while loading definition content."""
from __future__ import annotations

from pathlib import Path


class DataError(Exception):
    """Base exception for the data layer; ``path`` names the offending file when known."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class DataLoadError(DataError):
    """A definition file is missing, unreadable or not valid JSON."""


class DataValidationError(DataError):
    """A definition file parsed but its content has the wrong shape."""


class DataReferenceError(DataError):
    """A definition points at an id that does not exist."""
