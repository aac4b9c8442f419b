"""Default party roster definitions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(slots=True)
class PartyMemberDef:
    name: str
    role: str
    health: int = 5
    status: str = "Ready"
    profile: Dict[str, object] = field(default_factory=dict)
