"""JSON file helpers shared by the definition repositories."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from .errors import DataLoadError, DataValidationError


def load_json(path: Path) -> Any:
    """Read and decode a JSON file; any read or decode failure is a DataLoadError."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise DataLoadError(f"Definition file not found: {path}", path) from exc
    except json.JSONDecodeError as exc:
        raise DataLoadError(f"Invalid JSON in {path} at line {exc.lineno}: {exc.msg}", path) from exc
    except OSError as exc:
        raise DataLoadError(f"Unable to read definition file: {path}", path) from exc


def load_json_object(path: Path) -> Dict[str, Any]:
    """Like load_json, but the document root must be an object."""
    raw = load_json(path)
    if not isinstance(raw, dict):
        raise DataValidationError(f"Expected top-level object in {path}", path)
    return raw
