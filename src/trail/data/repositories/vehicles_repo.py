"""Vehicle catalog repository."""
from __future__ import annotations

from typing import Dict

from trail.core.types import RESOURCE_KEYS
from trail.data.errors import DataValidationError
from trail.data.repositories.base import RepositoryBase
from trail.domain.defs import VehicleDef


class VehiclesRepository(RepositoryBase[VehicleDef]):
    """Loads selectable vehicles; declaration order decides the default."""

    def __init__(self, base_path=None) -> None:
        super().__init__("vehicles.json", base_path)

    def default(self) -> VehicleDef:
        definitions = self._ensure_loaded()
        return next(iter(definitions.values()))

    def resolve(self, vehicle_id: str | None) -> VehicleDef:
        """Return the vehicle, falling back to the first catalog entry."""
        definitions = self._ensure_loaded()
        if vehicle_id is not None and vehicle_id in definitions:
            return definitions[vehicle_id]
        return self.default()

    def _build(self, raw: dict[str, object]) -> Dict[str, VehicleDef]:
        vehicles: Dict[str, VehicleDef] = {}
        for vehicle_id, payload in raw.items():
            context = f"vehicle '{vehicle_id}'"
            mapping = self._require_mapping(payload, context)
            stats_raw = self._require_mapping(mapping.get("stats"), f"{context} stats")
            stats: Dict[str, int] = {}
            for key in RESOURCE_KEYS:
                value = self._require_int(stats_raw.get(key), f"{context} stats.{key}")
                if value < 0:
                    raise DataValidationError(f"{context} stats.{key} must be >= 0.")
                stats[key] = value
            efficiency = self._require_number(mapping.get("efficiency", 1.0), f"{context} efficiency")
            if efficiency <= 0:
                raise DataValidationError(f"{context} efficiency must be positive.")
            vehicles[vehicle_id] = VehicleDef(
                id=vehicle_id,
                name=self._require_str(mapping.get("name"), f"{context} name"),
                description=self._require_optional_str(mapping.get("description"), f"{context} description") or "",
                stats=stats,
                traits=tuple(self._require_str_list(mapping.get("traits", []), f"{context} traits")),
                efficiency=efficiency,
            )
        if not vehicles:
            raise DataValidationError("vehicles.json must define at least one vehicle.")
        return vehicles
