"""World skeleton definitions consumed by the generator."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(slots=True)
class CheckpointDef:
    """Fixed stop on the main route; the generator fills the road between them."""

    id: str
    name: str
    x: float
    y: float
    region: str = "Canada"
    short_name: str | None = None
    actions: Tuple[str, ...] | None = None
    services: Dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class WorldConfigDef:
    world_version: int
    checkpoints: Tuple[CheckpointDef, ...]


@dataclass(slots=True)
class LegacyConnectionDef:
    to_id: str
    distance: float = 1.0
    rough: bool = False
    roughness: float | None = None
    hazard: float | None = None
    label: str | None = None


@dataclass(slots=True)
class LegacyNodeDef:
    """Hand-authored node from the static pre-procedural map."""

    id: str
    name: str
    x: float
    y: float
    region: str = "Canada"
    kind: str = "checkpoint"
    actions: Tuple[str, ...] = ()
    connections: Tuple[LegacyConnectionDef, ...] = ()


@dataclass(slots=True)
class LegacyGraphDef:
    start: str
    nodes: Tuple[LegacyNodeDef, ...]
