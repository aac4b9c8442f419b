"""Vehicle catalog definitions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(slots=True)
class VehicleDef:
    """Starting stats double as the resource ceiling for a run."""

    id: str
    name: str
    description: str
    stats: Dict[str, int]
    traits: Tuple[str, ...] = ()
    efficiency: float = 1.0
