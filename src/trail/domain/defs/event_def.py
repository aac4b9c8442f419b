"""Event library definitions.

Effects are a closed set of variants, one dataclass per effect type. Entries
whose type is unknown or whose payload is unusable become ``NoopEffect`` so a
single bad entry never aborts a stage.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple, Union


@dataclass(slots=True)
class ResourcesEffect:
    changes: Dict[str, int]
    message: str | None = None


@dataclass(slots=True)
class LogEffect:
    message: str


@dataclass(slots=True)
class DayShiftEffect:
    days: int
    message: str | None = None


@dataclass(slots=True)
class RevealNeighborsEffect:
    target: str | None = None
    hazard_hints: bool = False
    max_hazard: float | None = None
    message: str | None = None


@dataclass(slots=True)
class RevealHazardsEffect:
    target: str | None = None
    message: str | None = None


@dataclass(slots=True)
class SetFlagEffect:
    flag: str
    value: object = True
    message: str | None = None


@dataclass(slots=True)
class ClearFlagEffect:
    flag: str
    message: str | None = None


@dataclass(slots=True)
class AddBuffEffect:
    kind: str = "generic"
    buff_id: str | None = None
    amount: float = 0
    remaining: int | None = None
    duration: int | None = None
    tick: str | None = None
    label: str | None = None
    meta: Dict[str, object] = field(default_factory=dict)
    message: str | None = None


@dataclass(slots=True)
class ClearBuffEffect:
    buff_id: str | None = None
    kind: str | None = None
    message: str | None = None


@dataclass(slots=True)
class TeleportEffect:
    target_id: str | None = None
    origin: str | None = None
    mode: str | None = None
    day_shift: int = 0
    reveal_neighbors: bool = False
    hazard_hints: bool = False
    log: str | None = None
    message: str | None = None


@dataclass(slots=True)
class NoopEffect:
    """Recognized placeholder for unknown or malformed entries."""

    raw_type: str | None = None


EffectDef = Union[
    ResourcesEffect,
    LogEffect,
    DayShiftEffect,
    RevealNeighborsEffect,
    RevealHazardsEffect,
    SetFlagEffect,
    ClearFlagEffect,
    AddBuffEffect,
    ClearBuffEffect,
    TeleportEffect,
    NoopEffect,
]


@dataclass(slots=True)
class EventBranchDef:
    """Success or failure arm of a choice roll."""

    outcome: str | None = None
    effects: Tuple[EffectDef, ...] = ()


@dataclass(slots=True)
class EventRollDef:
    chance: float = 0.5
    success: EventBranchDef | None = None
    failure: EventBranchDef | None = None


@dataclass(slots=True)
class EventChoiceDef:
    id: str
    label: str
    outcome: str | None = None
    log: str | None = None
    effects: Tuple[EffectDef, ...] = ()
    roll: EventRollDef | None = None
    set_flags: Dict[str, object] = field(default_factory=dict)
    clear_flags: Tuple[str, ...] = ()
    next_stage: str | None = None


@dataclass(slots=True)
class EventStageDef:
    id: str
    text: str
    choices: Tuple[EventChoiceDef, ...] = ()
    title: str | None = None


@dataclass(slots=True)
class EventRequirementsDef:
    min_day: int | None = None
    max_day: int | None = None
    regions: Tuple[str, ...] = ()
    not_regions: Tuple[str, ...] = ()
    flags: Tuple[str, ...] = ()
    not_flags: Tuple[str, ...] = ()
    context_tags: Tuple[str, ...] = ()


@dataclass(slots=True)
class EventDef:
    """Fully normalized event with its stages indexed by id."""

    id: str
    hook: str = "arrival"
    title: str | None = None
    summary: str | None = None
    rarity: str = "common"
    weight: float | None = None
    cooldown: int = 0
    entry_stage: str | None = None
    requires: EventRequirementsDef = field(default_factory=EventRequirementsDef)
    stages: Tuple[EventStageDef, ...] = ()
    stage_map: Dict[str, EventStageDef] = field(default_factory=dict)
