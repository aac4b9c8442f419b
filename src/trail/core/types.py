"""Shared type aliases for the core and domain layers."""
from typing import Literal

NodeKind = Literal["checkpoint", "gas", "forest", "mechanic", "town", "ferry", "ghost", "vista"]
ResourceKey = Literal["gas", "snacks", "ride", "money"]
BuffKind = Literal["hazard", "skip-hazard", "travel-gas", "travel-snacks", "preview-tight", "generic"]
Hook = Literal["travel", "arrival"]
WorldType = Literal["procedural", "legacy"]

RESOURCE_KEYS: tuple[ResourceKey, ...] = ("gas", "snacks", "ride", "money")
NODE_KINDS: tuple[NodeKind, ...] = (
    "checkpoint",
    "gas",
    "forest",
    "mechanic",
    "town",
    "ferry",
    "ghost",
    "vista",
)

__all__ = [
    "BuffKind",
    "Hook",
    "NODE_KINDS",
    "NodeKind",
    "RESOURCE_KEYS",
    "ResourceKey",
    "WorldType",
]
