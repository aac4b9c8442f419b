"""Repository for the static pre-procedural road map."""
from __future__ import annotations

from typing import Dict, List

from trail.data.errors import DataReferenceError, DataValidationError
from trail.data.repositories.base import RepositoryBase
from trail.domain.defs import LegacyConnectionDef, LegacyGraphDef, LegacyNodeDef


class LegacyGraphRepository(RepositoryBase[LegacyGraphDef]):
    """Loads ``nodes.json`` used by runs recorded with ``world.type == 'legacy'``."""

    def __init__(self, base_path=None) -> None:
        super().__init__("nodes.json", base_path)

    def get_graph(self) -> LegacyGraphDef:
        return self.get("graph")

    def _build(self, raw: dict[str, object]) -> Dict[str, LegacyGraphDef]:
        entries = self._require_list(raw.get("nodes"), "nodes.json nodes")
        nodes: List[LegacyNodeDef] = []
        for index, entry in enumerate(entries):
            context = f"nodes.json nodes[{index}]"
            mapping = self._require_mapping(entry, context)
            node_id = self._require_str(mapping.get("id"), f"{context}.id")
            coords = self._require_mapping(mapping.get("coords") or {}, f"{context}.coords")
            raw_connections = mapping.get("connections", mapping.get("neighbors", []))
            connections = tuple(
                self._parse_connection(item, f"{context}.connections[{conn_index}]")
                for conn_index, item in enumerate(self._require_list(raw_connections, f"{context}.connections"))
            )
            nodes.append(
                LegacyNodeDef(
                    id=node_id,
                    name=self._require_optional_str(mapping.get("name"), f"{context}.name") or node_id,
                    x=self._require_number(coords.get("x", 0), f"{context}.coords.x"),
                    y=self._require_number(coords.get("y", 0), f"{context}.coords.y"),
                    region=self._require_optional_str(mapping.get("region"), f"{context}.region") or "Canada",
                    kind=self._require_optional_str(mapping.get("kind"), f"{context}.kind") or "checkpoint",
                    actions=tuple(self._require_str_list(mapping.get("actions", []), f"{context}.actions")),
                    connections=connections,
                )
            )
        if not nodes:
            raise DataValidationError("nodes.json must define at least one node.")
        known = {node.id for node in nodes}
        start = self._require_optional_str(raw.get("start"), "nodes.json start") or nodes[0].id
        if start not in known:
            raise DataReferenceError(f"nodes.json start references unknown node '{start}'.")
        for node in nodes:
            for connection in node.connections:
                if connection.to_id not in known:
                    raise DataReferenceError(
                        f"node '{node.id}' connection references unknown node '{connection.to_id}'."
                    )
        return {"graph": LegacyGraphDef(start=start, nodes=tuple(nodes))}

    def _parse_connection(self, value: object, context: str) -> LegacyConnectionDef:
        if isinstance(value, str):
            return LegacyConnectionDef(to_id=value)
        mapping = self._require_mapping(value, context)
        distance = mapping.get("distance")
        roughness = mapping.get("roughness")
        hazard = mapping.get("hazard")
        return LegacyConnectionDef(
            to_id=self._require_str(mapping.get("id"), f"{context}.id"),
            distance=self._require_number(distance, f"{context}.distance") if distance is not None else 1.0,
            rough=bool(mapping.get("rough", False)),
            roughness=self._require_number(roughness, f"{context}.roughness") if roughness is not None else None,
            hazard=self._require_number(hazard, f"{context}.hazard") if hazard is not None else None,
            label=self._require_optional_str(mapping.get("label"), f"{context}.label"),
        )
