"""Service layer exports."""

from .errors import (
    EventResolutionError,
    SaveLoadError,
    UnknownChoiceError,
    UnknownEventError,
    UnknownStageError,
    WorldNotReadyError,
)
from .event_engine import ChoiceResolution, EncounterContext, EventEngine, RollRecord, TriggeredEvent
from .game_state import ActionOption, ActionResult, GameState, TravelResult
from .save_service import SaveService
from .travel import TravelEstimate
from .world_generator import WorldGenerator, WorldGraphCache

__all__ = [
    "ActionOption",
    "ActionResult",
    "ChoiceResolution",
    "EncounterContext",
    "EventEngine",
    "EventResolutionError",
    "GameState",
    "RollRecord",
    "SaveLoadError",
    "SaveService",
    "TravelEstimate",
    "TravelResult",
    "TriggeredEvent",
    "UnknownChoiceError",
    "UnknownEventError",
    "UnknownStageError",
    "WorldGenerator",
    "WorldGraphCache",
    "WorldNotReadyError",
]
