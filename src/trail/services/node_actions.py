"""Location actions: deterministic previews and seed-derived rolls."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List

from trail.core.numbers import clamp, lerp, round_half_up
from trail.core.rng import RNG, create_derived_rng
from trail.domain.world import NodeProfile, WorldNode, YieldRange


@dataclass(slots=True)
class ResourceRange:
    resource: str
    min: int
    max: int


@dataclass(slots=True)
class ResourceCost:
    resource: str
    amount: int


@dataclass(slots=True)
class ActionPreview:
    """Expected ranges shown before an action is taken; never consumes RNG."""

    id: str
    title: str
    description: str
    yields: List[ResourceRange] = field(default_factory=list)
    costs: List[ResourceCost] = field(default_factory=list)
    mishaps: List[ResourceRange] = field(default_factory=list)
    time_cost: int = 1


@dataclass(slots=True)
class ActionOutcome:
    id: str
    title: str
    description: str
    deltas: Dict[str, int]
    time_cost: int
    message: str


@dataclass(frozen=True, slots=True)
class ActionDefinition:
    id: str
    title: str
    description: str
    preview: Callable[["ActionDefinition", WorldNode], ActionPreview]
    roll: Callable[["ActionDefinition", WorldNode, RNG], ActionOutcome]


def _normalize_range(source: YieldRange | None, default_min: int, default_max: int) -> YieldRange:
    low = source.min if source is not None else default_min
    high = source.max if source is not None else default_max
    minimum = max(0, round_half_up(low))
    return YieldRange(min=minimum, max=max(minimum, round_half_up(high)))


def _yield(profile: NodeProfile, resource: str, default_min: int, default_max: int) -> YieldRange:
    return _normalize_range(profile.yields.get(resource), default_min, default_max)


def _hazard(profile: NodeProfile) -> float:
    return clamp(profile.hazard, 0, 1)


def _abundance(profile: NodeProfile) -> float:
    return clamp(profile.abundance, 0, 1)


def _ferry_cost(profile: NodeProfile) -> int:
    base = profile.services.ferry_cost if profile.services.ferry_cost is not None else 4
    return max(1, round_half_up(base))


def _shop_cost(profile: NodeProfile) -> int:
    if profile.services.shop_cost is not None:
        return max(1, round_half_up(profile.services.shop_cost))
    return max(2, round_half_up(3 + clamp(profile.prosperity, 0, 1) * 3))


def _deltas(gas: int = 0, snacks: int = 0, ride: int = 0, money: int = 0) -> Dict[str, int]:
    return {"gas": gas, "snacks": snacks, "ride": ride, "money": money}


def _outcome(definition: ActionDefinition, deltas: Dict[str, int], parts: List[str]) -> ActionOutcome:
    return ActionOutcome(
        id=definition.id,
        title=definition.title,
        description=definition.description,
        deltas=deltas,
        time_cost=1,
        message=f"{', '.join(parts)}.",
    )


def _base_preview(definition: ActionDefinition) -> ActionPreview:
    return ActionPreview(id=definition.id, title=definition.title, description=definition.description)


def _preview_siphon(definition: ActionDefinition, node: WorldNode) -> ActionPreview:
    gas = _yield(node.profile, "gas", 1, 3)
    hazard = _hazard(node.profile)
    ride_max = 2 if hazard > 0.7 else 1 if hazard > 0.45 else 0
    preview = _base_preview(definition)
    preview.yields.append(ResourceRange("gas", gas.min, gas.max))
    if ride_max:
        preview.mishaps.append(ResourceRange("ride", 0, ride_max))
    return preview


def _roll_siphon(definition: ActionDefinition, node: WorldNode, rng: RNG) -> ActionOutcome:
    gas_range = _yield(node.profile, "gas", 1, 3)
    gas_gain = rng.next_int(gas_range.min, gas_range.max)
    hazard = _hazard(node.profile)
    mishap_chance = min(0.85, hazard + 0.15)
    ride_damage = 0
    if mishap_chance > 0 and rng.next_float() < mishap_chance:
        ride_damage = 2 if hazard > 0.75 else 1
        if hazard > 0.9 and rng.next_float() < 0.35:
            ride_damage += 1
    parts = [f"Siphoned {gas_gain} gas"]
    if ride_damage > 0:
        parts.append(f"ride -{ride_damage}")
    return _outcome(definition, _deltas(gas=gas_gain, ride=-ride_damage), parts)


def _preview_forage(definition: ActionDefinition, node: WorldNode) -> ActionPreview:
    snacks = _yield(node.profile, "snacks", 1, 4)
    preview = _base_preview(definition)
    preview.yields.append(ResourceRange("snacks", snacks.min, snacks.max))
    if _hazard(node.profile) > 0.55:
        preview.mishaps.append(ResourceRange("ride", 0, 1))
    return preview


def _roll_forage(definition: ActionDefinition, node: WorldNode, rng: RNG) -> ActionOutcome:
    snack_range = _yield(node.profile, "snacks", 1, 4)
    snack_gain = rng.next_int(snack_range.min, snack_range.max)
    hazard = _hazard(node.profile)
    ride_damage = 1 if hazard > 0.4 and rng.next_float() < hazard / 2 else 0
    bonus_gas = 1 if rng.next_float() < _abundance(node.profile) * 0.3 else 0
    parts = [f"Foraged {snack_gain} snacks"]
    if bonus_gas > 0:
        parts.append(f"found {bonus_gas} gas can")
    if ride_damage > 0:
        parts.append("scrapes cost 1 ride")
    return _outcome(definition, _deltas(gas=bonus_gas, snacks=snack_gain, ride=-ride_damage), parts)


def _tinker_gas_cost(node: WorldNode) -> int:
    return 1 if node.profile.services.mechanic else 2


def _preview_tinker(definition: ActionDefinition, node: WorldNode) -> ActionPreview:
    ride = _yield(node.profile, "ride", 1, 3)
    preview = _base_preview(definition)
    preview.yields.append(ResourceRange("ride", ride.min, ride.max))
    preview.costs.append(ResourceCost("gas", _tinker_gas_cost(node)))
    return preview


def _roll_tinker(definition: ActionDefinition, node: WorldNode, rng: RNG) -> ActionOutcome:
    ride_range = _yield(node.profile, "ride", 1, 3)
    ride_gain = rng.next_int(ride_range.min, ride_range.max)
    mechanic_bonus = 1 if node.profile.services.mechanic else 0
    total_ride = max(1, ride_gain + mechanic_bonus)
    gas_cost = _tinker_gas_cost(node)
    parts = [f"Ride +{total_ride}", f"spent {gas_cost} gas"]
    return _outcome(definition, _deltas(gas=-gas_cost, ride=total_ride), parts)


def _preview_scavenge(definition: ActionDefinition, node: WorldNode) -> ActionPreview:
    money = _yield(node.profile, "money", 1, 4)
    hazard = _hazard(node.profile)
    ride_max = 2 if hazard > 0.6 else 1 if hazard > 0.4 else 0
    preview = _base_preview(definition)
    preview.yields.append(ResourceRange("money", money.min, money.max))
    if ride_max:
        preview.mishaps.append(ResourceRange("ride", 0, ride_max))
    return preview


def _roll_scavenge(definition: ActionDefinition, node: WorldNode, rng: RNG) -> ActionOutcome:
    money_range = _yield(node.profile, "money", 1, 4)
    cash = rng.next_int(money_range.min, money_range.max)
    gas_find = 1 if rng.next_float() < _abundance(node.profile) * 0.25 else 0
    hazard = _hazard(node.profile)
    ride_damage = 0
    if hazard > 0.3 and rng.next_float() < hazard * 0.6:
        ride_damage = 2 if hazard > 0.75 and rng.next_float() < 0.4 else 1
    parts = [f"Scavenged ${cash}"]
    if gas_find > 0:
        parts.append("plus 1 gas")
    if ride_damage > 0:
        parts.append(f"ride -{ride_damage}")
    return _outcome(definition, _deltas(gas=gas_find, ride=-ride_damage, money=cash), parts)


def _preview_ferry(definition: ActionDefinition, node: WorldNode) -> ActionPreview:
    ride = _yield(node.profile, "ride", 1, 3)
    snacks = _yield(node.profile, "snacks", 0, 2)
    preview = _base_preview(definition)
    preview.yields.append(ResourceRange("ride", ride.min, ride.max))
    preview.yields.append(ResourceRange("snacks", 1 if snacks.min else 0, snacks.max))
    preview.costs.append(ResourceCost("money", _ferry_cost(node.profile)))
    return preview


def _roll_ferry(definition: ActionDefinition, node: WorldNode, rng: RNG) -> ActionOutcome:
    ride_range = _yield(node.profile, "ride", 1, 3)
    ride_gain = max(1, round_half_up((ride_range.min + ride_range.max) / 2))
    snack_range = _yield(node.profile, "snacks", 0, 2)
    snack_gain = 0
    if snack_range.max > 0 and rng.next_float() < 0.7:
        snack_gain = rng.next_int(min(1, snack_range.max), snack_range.max)
    cost = _ferry_cost(node.profile)
    parts = [f"Paid ${cost} for the ferry", f"ride +{ride_gain}"]
    if snack_gain > 0:
        parts.append(f"restocked {snack_gain} snacks")
    return _outcome(definition, _deltas(snacks=snack_gain, ride=ride_gain, money=-cost), parts)


def _preview_shop(definition: ActionDefinition, node: WorldNode) -> ActionPreview:
    gas = _yield(node.profile, "gas", 1, 4)
    snacks = _yield(node.profile, "snacks", 1, 4)
    preview = _base_preview(definition)
    preview.yields.append(ResourceRange("gas", gas.min, gas.max))
    preview.yields.append(ResourceRange("snacks", snacks.min, snacks.max))
    preview.costs.append(ResourceCost("money", _shop_cost(node.profile)))
    return preview


def _roll_shop(definition: ActionDefinition, node: WorldNode, rng: RNG) -> ActionOutcome:
    gas_range = _yield(node.profile, "gas", 1, 4)
    snack_range = _yield(node.profile, "snacks", 1, 4)
    gas_gain = rng.next_int(gas_range.min, gas_range.max)
    snack_gain = rng.next_int(snack_range.min, snack_range.max)
    cost = _shop_cost(node.profile)
    parts = [f"Bought supplies for ${cost}", f"gas +{gas_gain}", f"snacks +{snack_gain}"]
    return _outcome(definition, _deltas(gas=gas_gain, snacks=snack_gain, money=-cost), parts)


ACTION_DEFINITIONS: Dict[str, ActionDefinition] = {
    definition.id: definition
    for definition in (
        ActionDefinition("siphon", "Siphon", "Trade time for gas at risk of fumes.", _preview_siphon, _roll_siphon),
        ActionDefinition(
            "forage", "Forage", "Scout nearby forests for berries and jerky.", _preview_forage, _roll_forage
        ),
        ActionDefinition(
            "tinker", "Tinker", "Repair the ride with spare parts and elbow grease.", _preview_tinker, _roll_tinker
        ),
        ActionDefinition(
            "scavenge",
            "Scavenge",
            "Pick through the area for loose change and parts.",
            _preview_scavenge,
            _roll_scavenge,
        ),
        ActionDefinition("ferry", "Ferry", "Pay a toll to cross water safely.", _preview_ferry, _roll_ferry),
        ActionDefinition("shop", "Shop", "Visit shops and upgrade stands for supplies.", _preview_shop, _roll_shop),
    )
}


def get_action_definition(action_id: str) -> ActionDefinition | None:
    return ACTION_DEFINITIONS.get(action_id)


def list_actions() -> List[str]:
    return list(ACTION_DEFINITIONS)


def compute_action_preview(node: WorldNode, action_id: str) -> ActionPreview | None:
    definition = get_action_definition(action_id)
    if definition is None:
        return None
    return definition.preview(definition, node)


def roll_action_outcome(action_id: str, node: WorldNode, seed: int, usage: int = 0) -> ActionOutcome | None:
    """Roll an action on a stream derived from (seed, node id, action id, usage)."""
    definition = get_action_definition(action_id)
    if definition is None:
        return None
    rng = create_derived_rng(seed, node.id, action_id, usage)
    return definition.roll(definition, node, rng)


def tighten_preview(preview: ActionPreview, amount: float) -> ActionPreview:
    """Pull each yield range toward its midpoint; ``amount`` 1.0 collapses it."""
    factor = clamp(amount, 0, 1)
    if factor <= 0:
        return preview
    yields: List[ResourceRange] = []
    for entry in preview.yields:
        midpoint = (entry.min + entry.max) / 2
        low = round_half_up(lerp(entry.min, midpoint, factor))
        high = max(low, round_half_up(lerp(entry.max, midpoint, factor)))
        yields.append(ResourceRange(entry.resource, low, high))
    return replace(preview, yields=yields)
