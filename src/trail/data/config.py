"""Per-user settings and storage locations."""
from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

DEFAULT_STORAGE_KEY = "canadian-trail-save"
DEFAULT_LOG_LIMIT = 40


@dataclass(slots=True)
class TrailSettings:
    """Tunables that are not part of the run record."""

    storage_key: str = DEFAULT_STORAGE_KEY
    log_limit: int = DEFAULT_LOG_LIMIT


def get_user_data_dir() -> Path:
    """Return the per-user data directory."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "CanadianTrail"
        return Path.home() / "CanadianTrail"
    return Path.home() / ".config" / "canadian_trail"


def get_default_settings_path() -> Path:
    return get_user_data_dir() / "settings.json"


def get_save_dir() -> Path:
    """Return the per-user save directory."""
    return get_user_data_dir() / "saves"


def _normalize(raw: dict) -> TrailSettings:
    storage_key = raw.get("storage_key")
    if not isinstance(storage_key, str) or not storage_key.strip():
        storage_key = DEFAULT_STORAGE_KEY
    log_limit = raw.get("log_limit")
    if isinstance(log_limit, bool) or not isinstance(log_limit, int) or log_limit < 1:
        log_limit = DEFAULT_LOG_LIMIT
    return TrailSettings(storage_key=storage_key.strip(), log_limit=log_limit)


def load_settings(path: Path | None = None) -> TrailSettings:
    """Load settings from disk or return defaults."""
    settings_path = path or get_default_settings_path()
    try:
        raw = json.loads(settings_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return TrailSettings()
    except (OSError, ValueError):
        return TrailSettings()
    if not isinstance(raw, dict):
        return TrailSettings()
    return _normalize(raw)


def save_settings(settings: TrailSettings, path: Path | None = None) -> None:
    """Persist settings to disk."""
    settings_path = path or get_default_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    payload = asdict(_normalize(asdict(settings)))
    settings_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
