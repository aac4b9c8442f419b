"""Repository for the checkpoint skeleton of the procedural world."""
from __future__ import annotations

from typing import Dict, List

from trail.data.errors import DataValidationError
from trail.data.repositories.base import RepositoryBase
from trail.domain.defs import CheckpointDef, WorldConfigDef


class WorldConfigRepository(RepositoryBase[WorldConfigDef]):
    """Loads ``world.json``: a world version plus ordered checkpoints."""

    def __init__(self, base_path=None) -> None:
        super().__init__("world.json", base_path)

    def get_config(self) -> WorldConfigDef:
        return self.get("world")

    def _build(self, raw: dict[str, object]) -> Dict[str, WorldConfigDef]:
        version_raw = raw.get("worldVersion", 1)
        if isinstance(version_raw, bool) or not isinstance(version_raw, (int, float)):
            raise DataValidationError("world.json worldVersion must be a number if provided.")
        world_version = int(version_raw) or 1

        entries = self._require_list(raw.get("checkpoints"), "world.json checkpoints")
        if not entries:
            raise DataValidationError("World configuration missing checkpoints.")
        checkpoints: List[CheckpointDef] = []
        seen_ids: set[str] = set()
        for index, entry in enumerate(entries):
            context = f"world.json checkpoints[{index}]"
            mapping = self._require_mapping(entry, context)
            checkpoint_id = self._require_str(mapping.get("id"), f"{context}.id").strip()
            if not checkpoint_id:
                raise DataValidationError(f"{context}.id must not be empty.")
            if checkpoint_id in seen_ids:
                raise DataValidationError(f"Duplicate checkpoint id '{checkpoint_id}'.")
            seen_ids.add(checkpoint_id)
            coords = mapping.get("coords") or {}
            coords = self._require_mapping(coords, f"{context}.coords")
            actions_raw = mapping.get("actions")
            actions = None
            if actions_raw is not None:
                actions = tuple(dict.fromkeys(self._require_str_list(actions_raw, f"{context}.actions")))
            services = self._require_mapping(mapping.get("services") or {}, f"{context}.services")
            checkpoints.append(
                CheckpointDef(
                    id=checkpoint_id,
                    name=self._require_str(mapping.get("name"), f"{context}.name"),
                    x=self._require_number(coords.get("x", 0), f"{context}.coords.x"),
                    y=self._require_number(coords.get("y", 0), f"{context}.coords.y"),
                    region=self._require_optional_str(mapping.get("region"), f"{context}.region") or "Canada",
                    short_name=self._require_optional_str(mapping.get("shortName"), f"{context}.shortName"),
                    actions=actions,
                    services=dict(services),
                )
            )
        return {"world": WorldConfigDef(world_version=world_version, checkpoints=tuple(checkpoints))}
