"""Serialization and forward migration of the persisted run record."""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping

from trail.core.types import RESOURCE_KEYS
from trail.domain.buffs import Buff
from trail.domain.state import (
    STATE_VERSION,
    CooldownRecord,
    EncounterState,
    ExitHint,
    NodeKnowledge,
    PartyMember,
    RunState,
    VehicleInfo,
    WorldDescriptor,
)
from trail.services.errors import SaveLoadError

SavePayload = Dict[str, Any]

LEGACY_VEHICLE: Dict[str, Any] = {
    "id": "minivan",
    "name": "Prairie Minivan",
    "traits": [],
    "efficiency": 1.0,
    "description": "",
}


class SaveService:
    """Converts a RunState to/from the flat camelCase record kept in storage."""

    STATE_VERSION = STATE_VERSION

    def serialize(self, state: RunState) -> SavePayload:
        """Return a JSON-serializable payload."""
        return {
            "version": state.version,
            "seed": state.seed,
            "rngState": state.rng_state,
            "day": state.day,
            "timeSegment": state.time_segment,
            "vehicle": {
                "id": state.vehicle.id,
                "name": state.vehicle.name,
                "traits": list(state.vehicle.traits),
                "efficiency": state.vehicle.efficiency,
                "description": state.vehicle.description,
            },
            "resources": dict(state.resources),
            "maxResources": dict(state.max_resources),
            "party": [
                {
                    "name": member.name,
                    "role": member.role,
                    "health": member.health,
                    "status": member.status,
                    "profile": copy.deepcopy(member.profile),
                }
                for member in state.party
            ],
            "log": list(state.log),
            "location": state.location,
            "visited": list(state.visited),
            "knowledge": {
                node_id: {
                    "seen": entry.seen,
                    "exits": {neighbor_id: {"hazard": hint.hazard} for neighbor_id, hint in entry.exits.items()},
                }
                for node_id, entry in state.knowledge.items()
            },
            "actionHistory": {node_id: dict(usage) for node_id, usage in state.action_history.items()},
            "flags": copy.deepcopy(state.flags),
            "encounters": {
                "flags": copy.deepcopy(state.encounters.flags),
                "cooldowns": {event_id: {"day": record.day} for event_id, record in state.encounters.cooldowns.items()},
                "buffs": [self._serialize_buff(buff) for buff in state.encounters.buffs],
            },
            "world": {
                "seed": state.world.seed,
                "version": state.world.version,
                "type": state.world.world_type,
            },
        }

    def deserialize(self, payload: Mapping[str, Any]) -> RunState:
        """Migrate then rehydrate a persisted payload."""
        data = self.migrate(payload)
        seed = self._require_int(data.get("seed"), "seed")
        location = self._require_str(data.get("location"), "location")
        state = RunState(
            seed=seed,
            rng_state=self._require_int(data.get("rngState"), "rngState"),
            vehicle=self._coerce_vehicle(data.get("vehicle")),
            resources=self._coerce_resources(data.get("resources"), "resources"),
            max_resources=self._coerce_resources(data.get("maxResources"), "maxResources"),
            location=location,
            world=self._coerce_world(data.get("world")),
            version=self.STATE_VERSION,
            day=max(1, self._require_int(data.get("day"), "day")),
            time_segment=self._require_int(data.get("timeSegment"), "timeSegment") % 4,
        )
        state.party = self._coerce_party(data.get("party"))
        state.log = [entry for entry in self._require_list(data.get("log"), "log") if isinstance(entry, str)]
        state.visited = self._coerce_str_list(data.get("visited"), "visited")
        state.knowledge = self._coerce_knowledge(data.get("knowledge"))
        state.action_history = self._coerce_action_history(data.get("actionHistory"))
        state.flags = dict(self._require_dict(data.get("flags"), "flags"))
        state.encounters = self._coerce_encounters(data.get("encounters"))
        return state

    def migrate(self, payload: Mapping[str, Any]) -> SavePayload:
        """Fill structurally absent fields of older records; existing values are kept."""
        if not isinstance(payload, Mapping):
            raise SaveLoadError("Save data must be a JSON object.")
        data: SavePayload = copy.deepcopy(dict(payload))
        seed = self._require_int(data.get("seed"), "seed")
        location = self._require_str(data.get("location"), "location")
        resources = self._require_dict(data.get("resources"), "resources")

        data.setdefault("rngState", seed)
        data.setdefault("day", 1)
        data.setdefault("timeSegment", 0)
        if not isinstance(data.get("vehicle"), Mapping):
            data["vehicle"] = dict(LEGACY_VEHICLE)
        data["vehicle"].setdefault("efficiency", 1.0)
        data["vehicle"].setdefault("traits", [])
        if not isinstance(data.get("maxResources"), Mapping):
            data["maxResources"] = dict(resources)
        data.setdefault("party", [])
        data.setdefault("log", [])

        visited = data.get("visited")
        if not isinstance(visited, list):
            visited = []
        if location not in visited:
            visited.append(location)
        data["visited"] = visited

        if not isinstance(data.get("knowledge"), Mapping):
            data["knowledge"] = {
                node_id: {"seen": True, "exits": {}} for node_id in visited if isinstance(node_id, str)
            }
        data.setdefault("actionHistory", {})
        if not isinstance(data.get("flags"), Mapping):
            data["flags"] = {}
        data["flags"].setdefault("gameOver", False)

        encounters = data.get("encounters")
        if not isinstance(encounters, Mapping):
            encounters = {}
        encounters = dict(encounters)
        encounters.setdefault("flags", {})
        encounters.setdefault("cooldowns", {})
        encounters.setdefault("buffs", [])
        data["encounters"] = encounters

        world = data.get("world")
        if not isinstance(world, Mapping):
            data["world"] = {"seed": seed, "version": 1, "type": "legacy"}
        else:
            world = dict(world)
            world.setdefault("seed", seed)
            world.setdefault("version", 1)
            world.setdefault("type", "procedural")
            data["world"] = world

        data["version"] = self.STATE_VERSION
        return data

    @staticmethod
    def _serialize_buff(buff: Buff) -> Dict[str, Any]:
        return {
            "id": buff.id,
            "kind": buff.kind,
            "amount": buff.amount,
            "remaining": buff.remaining,
            "tick": buff.tick,
            "label": buff.label,
            "meta": copy.deepcopy(buff.meta),
        }

    def _coerce_vehicle(self, value: Any) -> VehicleInfo:
        mapping = self._require_dict(value, "vehicle")
        efficiency = mapping.get("efficiency", 1.0)
        if isinstance(efficiency, bool) or not isinstance(efficiency, (int, float)) or efficiency <= 0:
            raise SaveLoadError("vehicle.efficiency must be a positive number.")
        return VehicleInfo(
            id=self._require_str(mapping.get("id"), "vehicle.id"),
            name=self._require_str(mapping.get("name"), "vehicle.name"),
            traits=self._coerce_str_list(mapping.get("traits"), "vehicle.traits"),
            efficiency=float(efficiency),
            description=mapping.get("description") if isinstance(mapping.get("description"), str) else "",
        )

    def _coerce_resources(self, value: Any, context: str) -> Dict[str, int]:
        mapping = self._require_dict(value, context)
        resources: Dict[str, int] = {}
        for key in RESOURCE_KEYS:
            resources[key] = max(0, self._require_int(mapping.get(key, 0), f"{context}.{key}"))
        return resources

    def _coerce_party(self, value: Any) -> List[PartyMember]:
        members: List[PartyMember] = []
        for index, entry in enumerate(self._require_list(value, "party")):
            mapping = self._require_dict(entry, f"party[{index}]")
            profile = mapping.get("profile")
            members.append(
                PartyMember(
                    name=self._require_str(mapping.get("name"), f"party[{index}].name"),
                    role=self._require_str(mapping.get("role", ""), f"party[{index}].role"),
                    health=self._require_int(mapping.get("health", 5), f"party[{index}].health"),
                    status=self._require_str(mapping.get("status", "Ready"), f"party[{index}].status"),
                    profile=copy.deepcopy(dict(profile)) if isinstance(profile, Mapping) else {},
                )
            )
        return members

    def _coerce_knowledge(self, value: Any) -> Dict[str, NodeKnowledge]:
        knowledge: Dict[str, NodeKnowledge] = {}
        for node_id, entry in self._require_dict(value, "knowledge").items():
            mapping = self._require_dict(entry, f"knowledge.{node_id}")
            exits: Dict[str, ExitHint] = {}
            raw_exits = mapping.get("exits") or {}
            for neighbor_id, hint in self._require_dict(raw_exits, f"knowledge.{node_id}.exits").items():
                hazard = hint.get("hazard") if isinstance(hint, Mapping) else None
                if isinstance(hazard, bool) or not isinstance(hazard, (int, float)):
                    hazard = None
                exits[neighbor_id] = ExitHint(hazard=hazard)
            knowledge[node_id] = NodeKnowledge(seen=bool(mapping.get("seen", False)), exits=exits)
        return knowledge

    def _coerce_action_history(self, value: Any) -> Dict[str, Dict[str, int]]:
        history: Dict[str, Dict[str, int]] = {}
        for node_id, usage in self._require_dict(value, "actionHistory").items():
            mapping = self._require_dict(usage, f"actionHistory.{node_id}")
            history[node_id] = {
                action_id: self._require_int(count, f"actionHistory.{node_id}.{action_id}")
                for action_id, count in mapping.items()
            }
        return history

    def _coerce_encounters(self, value: Any) -> EncounterState:
        mapping = self._require_dict(value, "encounters")
        cooldowns: Dict[str, CooldownRecord] = {}
        for event_id, record in self._require_dict(mapping.get("cooldowns"), "encounters.cooldowns").items():
            record_map = self._require_dict(record, f"encounters.cooldowns.{event_id}")
            cooldowns[event_id] = CooldownRecord(
                day=self._require_int(record_map.get("day"), f"encounters.cooldowns.{event_id}.day")
            )
        buffs: List[Buff] = []
        seen_ids: set[str] = set()
        for index, entry in enumerate(self._require_list(mapping.get("buffs"), "encounters.buffs")):
            buff = self._coerce_buff(entry, f"encounters.buffs[{index}]")
            if buff.id in seen_ids:
                continue
            seen_ids.add(buff.id)
            buffs.append(buff)
        return EncounterState(
            flags=copy.deepcopy(dict(self._require_dict(mapping.get("flags"), "encounters.flags"))),
            cooldowns=cooldowns,
            buffs=buffs,
        )

    def _coerce_buff(self, value: Any, context: str) -> Buff:
        mapping = self._require_dict(value, context)
        amount = mapping.get("amount", 0)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise SaveLoadError(f"{context}.amount must be a number.")
        label = mapping.get("label")
        meta = mapping.get("meta")
        return Buff(
            id=self._require_str(mapping.get("id"), f"{context}.id"),
            kind=self._require_str(mapping.get("kind", "generic"), f"{context}.kind"),
            amount=amount,
            remaining=self._require_int(mapping.get("remaining", 1), f"{context}.remaining"),
            tick=self._require_str(mapping.get("tick", "travel"), f"{context}.tick"),
            label=label if isinstance(label, str) else None,
            meta=copy.deepcopy(dict(meta)) if isinstance(meta, Mapping) else {},
        )

    def _coerce_world(self, value: Any) -> WorldDescriptor:
        mapping = self._require_dict(value, "world")
        world_type = mapping.get("type")
        if world_type not in ("procedural", "legacy"):
            raise SaveLoadError(f"Invalid world type: {world_type}")
        return WorldDescriptor(
            seed=self._require_int(mapping.get("seed"), "world.seed"),
            version=self._require_int(mapping.get("version"), "world.version"),
            world_type=world_type,
        )

    @staticmethod
    def _require_int(value: Any, context: str) -> int:
        if isinstance(value, bool):
            raise SaveLoadError(f"{context} must be an integer.")
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if not isinstance(value, int):
            raise SaveLoadError(f"{context} must be an integer.")
        return value

    @staticmethod
    def _require_str(value: Any, context: str) -> str:
        if not isinstance(value, str):
            raise SaveLoadError(f"{context} must be a string.")
        return value

    @staticmethod
    def _require_dict(value: Any, context: str) -> Mapping[str, Any]:
        if not isinstance(value, Mapping):
            raise SaveLoadError(f"{context} must be an object.")
        return value

    @staticmethod
    def _require_list(value: Any, context: str) -> list:
        if not isinstance(value, list):
            raise SaveLoadError(f"{context} must be a list.")
        return value

    def _coerce_str_list(self, value: Any, context: str) -> List[str]:
        result: List[str] = []
        for item in self._require_list(value, context):
            if not isinstance(item, str):
                raise SaveLoadError(f"{context} entries must be strings.")
            result.append(item)
        return result
