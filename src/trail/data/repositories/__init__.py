"""Repository exports."""

from .events_repo import EventsRepository
from .legacy_graph_repo import LegacyGraphRepository
from .party_repo import PartyRepository
from .vehicles_repo import VehiclesRepository
from .world_repo import WorldConfigRepository

__all__ = [
    "EventsRepository",
    "LegacyGraphRepository",
    "PartyRepository",
    "VehiclesRepository",
    "WorldConfigRepository",
]
