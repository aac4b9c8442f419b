"""Repository for the default travelling party."""
from __future__ import annotations

from typing import Dict, List

from trail.data.repositories.base import RepositoryBase
from trail.domain.defs import PartyMemberDef


class PartyRepository(RepositoryBase[PartyMemberDef]):
    """Loads ``party.json``; roster order is preserved."""

    def __init__(self, base_path=None) -> None:
        super().__init__("party.json", base_path)

    def roster(self) -> List[PartyMemberDef]:
        return list(self._ensure_loaded().values())

    def _build(self, raw: dict[str, object]) -> Dict[str, PartyMemberDef]:
        members: Dict[str, PartyMemberDef] = {}
        for index, entry in enumerate(self._require_list(raw.get("members"), "party.json members")):
            context = f"party.json members[{index}]"
            mapping = self._require_mapping(entry, context)
            name = self._require_str(mapping.get("name"), f"{context}.name")
            members[name] = PartyMemberDef(
                name=name,
                role=self._require_str(mapping.get("role"), f"{context}.role"),
                health=self._require_int(mapping.get("health", 5), f"{context}.health"),
                status=self._require_optional_str(mapping.get("status"), f"{context}.status") or "Ready",
                profile=dict(self._require_mapping(mapping.get("profile") or {}, f"{context}.profile")),
            )
        return members
