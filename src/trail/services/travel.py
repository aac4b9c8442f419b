"""Travel cost estimation and ride-damage rolls."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from trail.core.numbers import clamp, round_half_up
from trail.core.rng import RNG
from trail.domain.buffs import Buff, has_active_buff, sum_buff_amount
from trail.domain.world import Connection

SAFE_HAZARD = 0.15
MINOR_HAZARD = 0.35
MAJOR_HAZARD = 0.6


@dataclass(slots=True)
class TravelEstimate:
    """Costs and risk of one trip; computed without touching the RNG."""

    from_id: str
    to_id: str
    distance: float
    roughness: float
    rough: bool
    hazard: float
    gas_cost: int
    snack_cost: int
    ride_min: int
    ride_max: int
    protected: bool = False


def ride_damage_ceiling(hazard: float) -> int:
    if hazard <= SAFE_HAZARD:
        return 0
    if hazard <= MINOR_HAZARD:
        return 1
    if hazard <= MAJOR_HAZARD:
        return 2
    return 3


def compute_travel_estimate(
    from_id: str,
    connection: Connection,
    efficiency: float,
    buffs: Sequence[Buff] = (),
) -> TravelEstimate:
    """Fold vehicle efficiency and active encounter buffs into trip costs."""
    gas_cost = max(1, round_half_up(connection.distance * efficiency * connection.roughness))
    snack_cost = max(1, round_half_up(connection.distance / 2))
    gas_cost = max(0, round_half_up(gas_cost + sum_buff_amount(buffs, "travel-gas")))
    snack_cost = max(0, round_half_up(snack_cost + sum_buff_amount(buffs, "travel-snacks")))
    hazard = clamp(connection.hazard + sum_buff_amount(buffs, "hazard"), 0, 1)
    protected = has_active_buff(buffs, "skip-hazard")
    return TravelEstimate(
        from_id=from_id,
        to_id=connection.to_id,
        distance=connection.distance,
        roughness=connection.roughness,
        rough=connection.rough,
        hazard=hazard,
        gas_cost=gas_cost,
        snack_cost=snack_cost,
        ride_min=0,
        ride_max=0 if protected else ride_damage_ceiling(hazard),
        protected=protected,
    )


def roll_ride_damage(hazard: float, rng: RNG) -> int:
    """Roll road damage; safe roads draw nothing from the stream."""
    if hazard <= SAFE_HAZARD:
        return 0
    if rng.next_float() >= hazard:
        return 0
    if hazard <= MINOR_HAZARD:
        return 1
    if hazard <= MAJOR_HAZARD:
        return 2
    return 3 if rng.next_float() < 0.5 else 2
