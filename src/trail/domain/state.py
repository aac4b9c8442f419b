"""Domain-level run state tracking."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from trail.domain.buffs import Buff

STATE_VERSION = 3
TIME_SEGMENTS_PER_DAY = 4


@dataclass(slots=True)
class VehicleInfo:
    id: str
    name: str
    traits: List[str] = field(default_factory=list)
    efficiency: float = 1.0
    description: str = ""


@dataclass(slots=True)
class PartyMember:
    name: str
    role: str
    health: int = 5
    status: str = "Ready"
    profile: Dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class ExitHint:
    hazard: float | None = None


@dataclass(slots=True)
class NodeKnowledge:
    seen: bool = False
    exits: Dict[str, ExitHint] = field(default_factory=dict)


@dataclass(slots=True)
class CooldownRecord:
    day: int


@dataclass(slots=True)
class EncounterState:
    flags: Dict[str, object] = field(default_factory=dict)
    cooldowns: Dict[str, CooldownRecord] = field(default_factory=dict)
    buffs: List[Buff] = field(default_factory=list)


@dataclass(slots=True)
class WorldDescriptor:
    """Records which graph source a run was created with."""

    seed: int
    version: int
    world_type: str = "procedural"


@dataclass(slots=True)
class RunState:
    """The persisted run record."""

    seed: int
    rng_state: int
    vehicle: VehicleInfo
    resources: Dict[str, int]
    max_resources: Dict[str, int]
    location: str
    world: WorldDescriptor
    version: int = STATE_VERSION
    day: int = 1
    time_segment: int = 0
    party: List[PartyMember] = field(default_factory=list)
    log: List[str] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)
    knowledge: Dict[str, NodeKnowledge] = field(default_factory=dict)
    action_history: Dict[str, Dict[str, int]] = field(default_factory=dict)
    flags: Dict[str, object] = field(default_factory=lambda: {"gameOver": False})
    encounters: EncounterState = field(default_factory=EncounterState)

    @property
    def game_over(self) -> bool:
        return bool(self.flags.get("gameOver", False))

    def action_usage(self, node_id: str, action_id: str) -> int:
        return self.action_history.get(node_id, {}).get(action_id, 0)
