"""Run orchestration: travel, node actions, time, resources and persistence."""
from __future__ import annotations

import copy
import json
import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from trail.core.numbers import clamp
from trail.core.rng import RNG
from trail.core.types import RESOURCE_KEYS
from trail.data.config import TrailSettings
from trail.data.repositories import PartyRepository, VehiclesRepository
from trail.data.storage import KeyValueStore, MemoryStore
from trail.domain.buffs import (
    Buff,
    consume_buff,
    remove_buff,
    sum_buff_amount,
    tick_travel_buffs,
    upsert_buff,
)
from trail.domain.state import (
    TIME_SEGMENTS_PER_DAY,
    CooldownRecord,
    ExitHint,
    NodeKnowledge,
    PartyMember,
    RunState,
    VehicleInfo,
    WorldDescriptor,
)
from trail.domain.world import WorldGraph, WorldNode
from trail.services.errors import SaveLoadError, WorldNotReadyError
from trail.services.node_actions import (
    ActionPreview,
    compute_action_preview,
    get_action_definition,
    roll_action_outcome,
    tighten_preview,
)
from trail.services.save_service import SaveService
from trail.services.travel import TravelEstimate, compute_travel_estimate, roll_ride_damage
from trail.services.world_generator import WorldGenerator

logger = logging.getLogger(__name__)

ACTION_USES_PER_NODE = 1
TRAVEL_TIME_COST = 1
DEFAULT_GAME_OVER_MESSAGE = "Journey complete. Time to park the ride."
HUNGRY_STATUS = "Peckish"

REASON_NO_RUN = "No active run."
REASON_GAME_OVER = "The journey is over."
REASON_WORLD_NOT_READY = "World not ready."
REASON_UNAVAILABLE = "Action unavailable here."
REASON_COMPLETED = "Already completed."


@dataclass(slots=True)
class ActionResult:
    """Outcome of perform_node_action; failures carry a reason instead of raising."""

    ok: bool
    reason: str | None = None
    action_id: str | None = None
    deltas: Dict[str, int] = field(default_factory=dict)
    message: str | None = None
    time_cost: int = 0


@dataclass(slots=True)
class ActionOption:
    action_id: str
    title: str
    description: str
    preview: ActionPreview
    available: bool
    reason: str | None = None
    usage: int = 0


@dataclass(slots=True)
class TravelResult:
    from_id: str
    to_id: str
    gas_cost: int
    snack_cost: int
    ride_damage: int
    hazard: float
    protected: bool
    hungry: bool
    depleted: List[str] = field(default_factory=list)
    expired_buffs: List[str] = field(default_factory=list)


class GameState:
    """Owns the authoritative run record and persists it after every change."""

    def __init__(
        self,
        world_generator: WorldGenerator,
        vehicles_repo: VehiclesRepository,
        party_repo: PartyRepository,
        *,
        store: KeyValueStore | None = None,
        settings: TrailSettings | None = None,
        save_service: SaveService | None = None,
    ) -> None:
        self._world_generator = world_generator
        self._vehicles_repo = vehicles_repo
        self._party_repo = party_repo
        self._store: KeyValueStore = store if store is not None else MemoryStore()
        self._settings = settings or TrailSettings()
        self._save_service = save_service or SaveService()
        self._state: RunState | None = None
        self._rng: RNG | None = None
        self._graph: WorldGraph | None = None

    @property
    def state(self) -> RunState | None:
        """Live record; external callers should prefer get_snapshot()."""
        return self._state

    @property
    def rng(self) -> RNG:
        if self._rng is None:
            raise WorldNotReadyError("No active run.")
        return self._rng

    @property
    def storage_key(self) -> str:
        return self._settings.storage_key

    @property
    def is_active(self) -> bool:
        """True while a run exists and has not ended; mutators are no-ops otherwise."""
        return self._state is not None and not self._state.game_over

    # -- lifecycle -----------------------------------------------------

    def initialize(self) -> bool:
        """Restore the persisted run if one exists; unreadable saves count as none."""
        raw = self._store.get_item(self.storage_key)
        if not raw:
            return False
        try:
            payload = json.loads(raw)
            state = self._save_service.deserialize(payload)
        except (ValueError, SaveLoadError):
            logger.warning("Failed to parse save game under key %s", self.storage_key, exc_info=True)
            return False
        self._state = state
        self._rng = RNG(state.seed, state.rng_state)
        self._graph = None
        self._mark_arrival(state.location, reveal_exits=False)
        return True

    def start_new_run(self, seed: int | None = None, vehicle_id: str | None = None) -> RunState:
        """Begin a fresh run and return a snapshot of it."""
        vehicle = self._vehicles_repo.resolve(vehicle_id)
        resolved_seed = seed if seed is not None else secrets.randbelow(2**31 - 1)
        self._rng = RNG(resolved_seed)
        graph = self._world_generator.generate(self._rng.seed)
        resources = {key: vehicle.stats[key] for key in RESOURCE_KEYS}
        self._state = RunState(
            seed=self._rng.seed,
            rng_state=self._rng.state,
            vehicle=VehicleInfo(
                id=vehicle.id,
                name=vehicle.name,
                traits=list(vehicle.traits),
                efficiency=vehicle.efficiency,
                description=vehicle.description,
            ),
            resources=resources,
            max_resources=dict(resources),
            location=graph.start,
            world=WorldDescriptor(seed=graph.seed, version=graph.version, world_type=graph.world_type),
            party=[
                PartyMember(
                    name=member.name,
                    role=member.role,
                    health=member.health,
                    status=member.status,
                    profile=copy.deepcopy(member.profile),
                )
                for member in self._party_repo.roster()
            ],
        )
        self._graph = graph
        self._mark_arrival(graph.start)
        start_node = graph.get_node(graph.start)
        start_name = start_node.name if start_node is not None else graph.start
        self.append_log(f"Packed the cooler, topped up the tank, ready to roll from {start_name}!")
        return self.get_snapshot()

    def has_active_save(self) -> bool:
        return self._state is not None

    def clear(self) -> None:
        """Drop the in-memory run; state and RNG go together."""
        self._state = None
        self._rng = None
        self._graph = None

    def clear_save(self) -> None:
        self._store.remove_item(self.storage_key)
        self.clear()

    def save(self) -> None:
        if self._state is None:
            return
        if self._rng is not None:
            self._state.rng_state = self._rng.state
        payload = self._save_service.serialize(self._state)
        self._store.set_item(self.storage_key, json.dumps(payload))

    def get_snapshot(self) -> RunState | None:
        """Deep copy of the run record; mutating it never affects the game."""
        if self._state is None:
            return None
        if self._rng is not None:
            self._state.rng_state = self._rng.state
        return copy.deepcopy(self._state)

    # -- world ---------------------------------------------------------

    def get_world_graph(self) -> WorldGraph | None:
        """Copy of the active graph; edits to it never reach the run."""
        if self._state is None:
            return None
        return copy.deepcopy(self._ensure_world_graph())

    def ensure_world_ready(self) -> WorldGraph:
        """Live cached graph for services; treat it as read-only."""
        if self._state is None:
            raise WorldNotReadyError("No active run.")
        return self._ensure_world_graph()

    def get_current_node(self) -> WorldNode | None:
        if self._state is None:
            return None
        node = self._ensure_world_graph().get_node(self._state.location)
        return copy.deepcopy(node)

    def _ensure_world_graph(self) -> WorldGraph:
        world = self._state.world
        if (
            self._graph is not None
            and self._graph.seed == world.seed
            and self._graph.world_type == world.world_type
        ):
            return self._graph
        if world.world_type == "legacy":
            logger.debug("Using legacy world graph for seed %s", world.seed)
            self._graph = self._world_generator.legacy(world.seed)
        else:
            logger.debug("Using procedural world graph for seed %s", world.seed)
            self._graph = self._world_generator.generate(world.seed)
        return self._graph

    # -- travel --------------------------------------------------------

    def get_travel_estimate(self, from_id: str, to_id: str) -> TravelEstimate | None:
        """Pure estimate for a direct road; None when no such road exists."""
        if self._state is None:
            return None
        graph = self._ensure_world_graph()
        origin = graph.get_node(from_id)
        if origin is None or graph.get_node(to_id) is None:
            return None
        connection = origin.connection_to(to_id)
        if connection is None:
            return None
        return compute_travel_estimate(
            from_id, connection, self._state.vehicle.efficiency, self._state.encounters.buffs
        )

    def travel_to(self, node_id: str) -> TravelResult | None:
        """Drive to a neighboring node; None when travel is not possible."""
        state = self._state
        if state is None or state.game_over or node_id == state.location:
            return None
        estimate = self.get_travel_estimate(state.location, node_id)
        if estimate is None:
            return None
        graph = self._ensure_world_graph()
        origin = graph.get_node(state.location)
        destination = graph.get_node(node_id)

        self._advance_segments(TRAVEL_TIME_COST)
        resources = state.resources
        resources["gas"] = max(0, resources["gas"] - estimate.gas_cost)
        resources["snacks"] = max(0, resources["snacks"] - estimate.snack_cost)

        ride_damage = 0
        spent: Buff | None = None
        if estimate.protected:
            spent = consume_buff(state.encounters.buffs, "skip-hazard")
        else:
            ride_damage = roll_ride_damage(estimate.hazard, self.rng)
        resources["ride"] = max(0, resources["ride"] - ride_damage)

        hungry = resources["snacks"] <= 0
        if hungry:
            for member in state.party:
                member.status = HUNGRY_STATUS

        state.location = node_id
        self._mark_arrival(node_id)
        expired = tick_travel_buffs(
            state.encounters.buffs, skip=(spent.id,) if spent is not None else ()
        )

        summary = (
            f"Drove from {origin.name} to {destination.name}. "
            f"-{estimate.gas_cost} gas, -{estimate.snack_cost} snacks"
        )
        if ride_damage:
            summary += f", ride -{ride_damage}"
        summary += "."
        if estimate.protected:
            summary += " Dodged the worst of the road."
        self.append_log(summary)

        depleted = self.resources_depleted()
        if depleted:
            self.append_log(f"Warning: {', '.join(depleted)} running dry!")

        return TravelResult(
            from_id=estimate.from_id,
            to_id=node_id,
            gas_cost=estimate.gas_cost,
            snack_cost=estimate.snack_cost,
            ride_damage=ride_damage,
            hazard=estimate.hazard,
            protected=estimate.protected,
            hungry=hungry,
            depleted=depleted,
            expired_buffs=[buff.id for buff in expired],
        )

    def teleport_to(self, node_id: str, *, day_shift: int = 0, log: str | None = None) -> bool:
        """Move without a road trip; used by encounter effects."""
        if not self.is_active:
            return False
        node = self._ensure_world_graph().get_node(node_id)
        if node is None:
            return False
        self._state.location = node_id
        self._mark_arrival(node_id)
        if day_shift:
            self._shift_days(day_shift)
        self.append_log(log or f"Ended up at {node.name}.")
        return True

    def resources_depleted(self) -> List[str]:
        if self._state is None:
            return []
        return [key for key, value in self._state.resources.items() if value <= 0]

    # -- node actions --------------------------------------------------

    def get_action_options(self, node_id: str | None = None) -> List[ActionOption]:
        """Previews for every action a node offers, with availability at the current location."""
        if self._state is None:
            return []
        graph = self._ensure_world_graph()
        target_id = node_id or self._state.location
        node = graph.get_node(target_id)
        if node is None:
            return []
        tighten = sum_buff_amount(self._state.encounters.buffs, "preview-tight")
        options: List[ActionOption] = []
        for action_id in node.actions:
            preview = compute_action_preview(node, action_id)
            if preview is None:
                continue
            if tighten > 0:
                preview = tighten_preview(preview, tighten)
            reason = self._action_block_reason(node, action_id, preview)
            options.append(
                ActionOption(
                    action_id=action_id,
                    title=preview.title,
                    description=preview.description,
                    preview=preview,
                    available=reason is None,
                    reason=reason,
                    usage=self._state.action_usage(node.id, action_id),
                )
            )
        return options

    def perform_node_action(self, action_id: str) -> ActionResult:
        """Run a location action once; failures are returned, never raised."""
        state = self._state
        if state is None:
            return ActionResult(ok=False, reason=REASON_NO_RUN)
        if state.game_over:
            return ActionResult(ok=False, reason=REASON_GAME_OVER)
        node = self._ensure_world_graph().get_node(state.location)
        if node is None:
            return ActionResult(ok=False, reason=REASON_WORLD_NOT_READY)
        preview = compute_action_preview(node, action_id)
        if preview is None or action_id not in node.actions:
            return ActionResult(ok=False, reason=REASON_UNAVAILABLE)
        reason = self._action_block_reason(node, action_id, preview)
        if reason is not None:
            return ActionResult(ok=False, reason=reason)

        usage = state.action_usage(node.id, action_id)
        outcome = roll_action_outcome(action_id, node, state.seed, usage)
        self._advance_segments(outcome.time_cost)
        applied = self._apply_resource_changes(outcome.deltas)
        state.action_history.setdefault(node.id, {})[action_id] = usage + 1
        self.append_log(outcome.message)
        return ActionResult(
            ok=True,
            action_id=action_id,
            deltas=applied,
            message=outcome.message,
            time_cost=outcome.time_cost,
        )

    def _action_block_reason(self, node: WorldNode, action_id: str, preview: ActionPreview) -> str | None:
        state = self._state
        if state.game_over:
            return REASON_GAME_OVER
        if node.id != state.location or get_action_definition(action_id) is None:
            return REASON_UNAVAILABLE
        if state.action_usage(node.id, action_id) >= ACTION_USES_PER_NODE:
            return REASON_COMPLETED
        for cost in preview.costs:
            if state.resources.get(cost.resource, 0) < cost.amount:
                return f"Insufficient {cost.resource}."
        return None

    # -- time and resources --------------------------------------------

    def advance_time(self, segments: int) -> None:
        """Advance the clock by segments, rolling over into new days."""
        if not self.is_active or segments <= 0:
            return
        self._advance_segments(segments)
        self.save()

    def shift_days(self, days: int) -> None:
        if not self.is_active or not days:
            return
        self._shift_days(days)
        self.save()

    def _advance_segments(self, segments: int) -> None:
        total = self._state.time_segment + segments
        self._state.day += total // TIME_SEGMENTS_PER_DAY
        self._state.time_segment = total % TIME_SEGMENTS_PER_DAY

    def _shift_days(self, days: int) -> None:
        self._state.day = max(1, self._state.day + days)
        self._state.time_segment = 0

    def adjust_resources(self, changes: Mapping[str, int]) -> Dict[str, int]:
        """Apply deltas clamped to [0, max] and return what actually changed."""
        if not self.is_active:
            return {}
        applied = self._apply_resource_changes(changes)
        self.save()
        return applied

    def _apply_resource_changes(self, changes: Mapping[str, int]) -> Dict[str, int]:
        resources = self._state.resources
        applied: Dict[str, int] = {}
        for key, delta in changes.items():
            if key not in resources:
                continue
            ceiling = self._state.max_resources.get(key, resources[key])
            updated = int(clamp(resources[key] + delta, 0, ceiling))
            applied[key] = updated - resources[key]
            resources[key] = updated
        return applied

    def append_log(self, entry: str) -> None:
        """Append a day-stamped entry, trimming the oldest beyond the limit."""
        if self._state is None:
            return
        log = self._state.log
        log.append(f"[Day {self._state.day}] {entry}")
        overflow = len(log) - self._settings.log_limit
        if overflow > 0:
            del log[:overflow]
        self.save()

    def mark_game_over(self, reason: str | None = None) -> None:
        if self._state is None:
            return
        self._state.flags["gameOver"] = True
        self.append_log(reason or DEFAULT_GAME_OVER_MESSAGE)

    # -- knowledge -----------------------------------------------------

    def reveal_neighbors(
        self, node_id: str, *, hazard_hints: bool = False, max_hazard: float | None = None
    ) -> List[str]:
        """Mark a node's neighbors as seen and return the revealed ids."""
        if not self.is_active:
            return []
        graph = self._ensure_world_graph()
        knowledge = self._state.knowledge
        source = knowledge.setdefault(node_id, NodeKnowledge())
        revealed: List[str] = []
        for neighbor, connection in graph.get_connections(node_id):
            if max_hazard is not None and connection.hazard > max_hazard:
                continue
            knowledge.setdefault(neighbor.id, NodeKnowledge()).seen = True
            hint = source.exits.setdefault(neighbor.id, ExitHint())
            if hazard_hints:
                hint.hazard = connection.hazard
            revealed.append(neighbor.id)
        self.save()
        return revealed

    def _mark_arrival(self, node_id: str, *, reveal_exits: bool = True) -> None:
        state = self._state
        if node_id not in state.visited:
            state.visited.append(node_id)
        entry = state.knowledge.setdefault(node_id, NodeKnowledge())
        entry.seen = True
        if not reveal_exits:
            return
        for neighbor, _connection in self._ensure_world_graph().get_connections(node_id):
            entry.exits.setdefault(neighbor.id, ExitHint())

    # -- encounters ----------------------------------------------------

    def set_encounter_flag(self, flag: str, value: object = True) -> None:
        if not self.is_active:
            return
        self._state.encounters.flags[flag] = value
        self.save()

    def clear_encounter_flag(self, flag: str) -> None:
        if not self.is_active:
            return
        self._state.encounters.flags.pop(flag, None)
        self.save()

    def has_encounter_flag(self, flag: str) -> bool:
        if self._state is None:
            return False
        return bool(self._state.encounters.flags.get(flag))

    def record_encounter_trigger(self, event_id: str) -> None:
        if not self.is_active:
            return
        self._state.encounters.cooldowns[event_id] = CooldownRecord(day=self._state.day)
        self.save()

    def get_encounter_cooldown(self, event_id: str) -> CooldownRecord | None:
        if self._state is None:
            return None
        record = self._state.encounters.cooldowns.get(event_id)
        return CooldownRecord(day=record.day) if record is not None else None

    def add_encounter_buff(self, buff: Buff) -> None:
        """Insert or replace (by id) an encounter buff."""
        if not self.is_active:
            return
        upsert_buff(self._state.encounters.buffs, copy.deepcopy(buff))
        self.save()

    def remove_encounter_buff(self, buff_id: str) -> bool:
        if not self.is_active:
            return False
        removed = remove_buff(self._state.encounters.buffs, buff_id)
        if removed:
            self.save()
        return removed

    def get_encounter_buffs(self) -> List[Buff]:
        if self._state is None:
            return []
        return copy.deepcopy(self._state.encounters.buffs)
