"""Resolution of the definition directory and files inside it."""
from __future__ import annotations

from pathlib import Path

DEFINITIONS_DIRNAME = "definitions"


def get_repo_root() -> Path:
    """Return the checkout root (``src/trail/data`` sits three levels below it)."""
    return Path(__file__).resolve().parents[3]


def get_definitions_path(base_path: Path | str | None = None) -> Path:
    """Return ``base_path`` when given, else the bundled ``data/definitions``."""
    if base_path is not None:
        return Path(base_path)
    return get_repo_root() / "data" / DEFINITIONS_DIRNAME


def get_definition_file(filename: str, base_path: Path | str | None = None) -> Path:
    return get_definitions_path(base_path) / filename
