"""Domain definition exports."""

from .event_def import (
    AddBuffEffect,
    ClearBuffEffect,
    ClearFlagEffect,
    DayShiftEffect,
    EffectDef,
    EventBranchDef,
    EventChoiceDef,
    EventDef,
    EventRequirementsDef,
    EventRollDef,
    EventStageDef,
    LogEffect,
    NoopEffect,
    ResourcesEffect,
    RevealHazardsEffect,
    RevealNeighborsEffect,
    SetFlagEffect,
    TeleportEffect,
)
from .party_member_def import PartyMemberDef
from .vehicle_def import VehicleDef
from .world_def import (
    CheckpointDef,
    LegacyConnectionDef,
    LegacyGraphDef,
    LegacyNodeDef,
    WorldConfigDef,
)

__all__ = [
    "AddBuffEffect",
    "CheckpointDef",
    "ClearBuffEffect",
    "ClearFlagEffect",
    "DayShiftEffect",
    "EffectDef",
    "EventBranchDef",
    "EventChoiceDef",
    "EventDef",
    "EventRequirementsDef",
    "EventRollDef",
    "EventStageDef",
    "LegacyConnectionDef",
    "LegacyGraphDef",
    "LegacyNodeDef",
    "LogEffect",
    "NoopEffect",
    "PartyMemberDef",
    "ResourcesEffect",
    "RevealHazardsEffect",
    "RevealNeighborsEffect",
    "SetFlagEffect",
    "TeleportEffect",
    "VehicleDef",
    "WorldConfigDef",
]
