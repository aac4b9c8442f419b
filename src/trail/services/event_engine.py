"""Data-driven encounter engine: selection, staged choices and effects."""
from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from trail.data.repositories import EventsRepository
from trail.domain.buffs import Buff
from trail.domain.defs import (
    AddBuffEffect,
    ClearBuffEffect,
    ClearFlagEffect,
    DayShiftEffect,
    EffectDef,
    EventChoiceDef,
    EventDef,
    EventStageDef,
    LogEffect,
    ResourcesEffect,
    RevealHazardsEffect,
    RevealNeighborsEffect,
    SetFlagEffect,
    TeleportEffect,
)
from trail.services.errors import UnknownChoiceError, UnknownEventError, UnknownStageError
from trail.services.game_state import GameState

logger = logging.getLogger(__name__)

RARITY_WEIGHTS: Dict[str, float] = {"common": 6, "uncommon": 3, "rare": 1}


@dataclass(slots=True)
class EncounterContext:
    """Where an encounter happens; every field is optional."""

    node_id: str | None = None
    from_node_id: str | None = None
    to_node_id: str | None = None
    region: str | None = None
    tags: Tuple[str, ...] = ()


@dataclass(slots=True)
class TriggeredEvent:
    id: str
    title: str | None
    hook: str
    stage: EventStageDef
    stage_id: str
    context: EncounterContext


@dataclass(slots=True)
class RollRecord:
    value: float
    success: bool


@dataclass(slots=True)
class ChoiceResolution:
    outcome: str
    next_stage: EventStageDef | None
    next_stage_id: str | None
    done: bool
    roll: RollRecord | None = None
    messages: List[str] = field(default_factory=list)


def event_weight(event: EventDef) -> float:
    """Explicit weight wins, then the rarity table, then 1; never negative."""
    if event.weight is not None:
        return max(0.0, event.weight)
    return RARITY_WEIGHTS.get(event.rarity, 1)


class EventEngine:
    """Filters the event library per hook and resolves player choices."""

    def __init__(self, events_repo: EventsRepository) -> None:
        self._events_repo = events_repo
        self._events: Dict[str, EventDef] | None = None

    def initialize(self) -> None:
        """Load the library; data errors propagate to the caller."""
        self._events = {event.id: event for event in self._events_repo.all()}

    def reset(self) -> None:
        self._events = None
        self._events_repo.reset()

    @property
    def events(self) -> Dict[str, EventDef]:
        if self._events is None:
            self.initialize()
        return self._events

    def get_event(self, event_id: str) -> EventDef:
        try:
            return self.events[event_id]
        except KeyError as exc:
            raise UnknownEventError(f"Unknown event: {event_id}") from exc

    def eligible_events(
        self, hook: str, game_state: GameState, context: EncounterContext | None = None
    ) -> List[EventDef]:
        context = context or EncounterContext()
        return [
            event
            for event in self.events.values()
            if event.hook == hook and self._passes_requirements(event, game_state, context)
        ]

    def maybe_trigger(
        self, hook: str, game_state: GameState, context: EncounterContext | None = None
    ) -> TriggeredEvent | None:
        """Pick at most one eligible event and return a copy of its entry stage."""
        if not game_state.is_active:
            return None
        context = context or EncounterContext()
        eligible = self.eligible_events(hook, game_state, context)
        if not eligible:
            return None
        picked = self._pick_weighted(game_state, eligible, [event_weight(event) for event in eligible])
        if picked is None:
            return None
        stage = self._get_stage(picked, picked.entry_stage)
        if stage is None:
            logger.warning("Event %s has no entry stage; skipping", picked.id)
            return None
        game_state.record_encounter_trigger(picked.id)
        if picked.summary:
            game_state.append_log(picked.summary)
        logger.debug("Triggered event %s on hook %s", picked.id, hook)
        return TriggeredEvent(
            id=picked.id,
            title=picked.title,
            hook=picked.hook,
            stage=copy.deepcopy(stage),
            stage_id=stage.id,
            context=copy.deepcopy(context),
        )

    def resolve_choice(
        self,
        event_id: str,
        stage_id: str | None,
        choice_id: str,
        game_state: GameState,
        context: EncounterContext | None = None,
    ) -> ChoiceResolution:
        """Apply a choice; unknown ids raise an EventResolutionError subclass."""
        context = context or EncounterContext()
        event = self.get_event(event_id)
        stage = self._get_stage(event, stage_id)
        if stage is None:
            raise UnknownStageError(f"Unknown stage {stage_id} for event {event_id}")
        choice = next((entry for entry in stage.choices if entry.id == choice_id), None)
        if choice is None:
            raise UnknownChoiceError(f"Unknown choice {choice_id} for stage {stage.id}")
        if not game_state.is_active:
            return ChoiceResolution(outcome="", next_stage=None, next_stage_id=None, done=True)

        outcome_parts: List[str] = []
        if choice.outcome:
            outcome_parts.append(choice.outcome)
        if choice.log:
            game_state.append_log(choice.log)
        self._apply_effects(choice.effects, event, stage, choice, game_state, context, outcome_parts)

        roll_record = None
        if choice.roll is not None:
            value = game_state.rng.next_float()
            success = value <= choice.roll.chance
            branch = choice.roll.success if success else choice.roll.failure
            if branch is not None:
                if branch.outcome:
                    outcome_parts.append(branch.outcome)
                self._apply_effects(branch.effects, event, stage, choice, game_state, context, outcome_parts)
            roll_record = RollRecord(value=value, success=success)

        for flag, value in choice.set_flags.items():
            game_state.set_encounter_flag(flag, value)
        for flag in choice.clear_flags:
            game_state.clear_encounter_flag(flag)
        game_state.save()

        next_stage = self._get_stage(event, choice.next_stage) if choice.next_stage else None
        return ChoiceResolution(
            outcome=" ".join(outcome_parts).strip(),
            next_stage=copy.deepcopy(next_stage),
            next_stage_id=next_stage.id if next_stage is not None else None,
            done=next_stage is None,
            roll=roll_record,
            messages=outcome_parts,
        )

    @staticmethod
    def _get_stage(event: EventDef, stage_id: str | None) -> EventStageDef | None:
        if stage_id is None:
            return event.stages[0] if event.stages else None
        return event.stage_map.get(stage_id)

    def _apply_effects(
        self,
        effects: Sequence[EffectDef],
        event: EventDef,
        stage: EventStageDef,
        choice: EventChoiceDef,
        game_state: GameState,
        context: EncounterContext,
        outcome_parts: List[str],
    ) -> None:
        for effect in effects:
            message = self._apply_effect(effect, event, stage, choice, game_state, context)
            if message:
                outcome_parts.append(message)

    def _apply_effect(
        self,
        effect: EffectDef,
        event: EventDef,
        stage: EventStageDef,
        choice: EventChoiceDef,
        game_state: GameState,
        context: EncounterContext,
    ) -> str | None:
        if isinstance(effect, ResourcesEffect):
            game_state.adjust_resources(effect.changes)
            return effect.message
        if isinstance(effect, LogEffect):
            game_state.append_log(effect.message)
            return None
        if isinstance(effect, DayShiftEffect):
            if effect.days:
                game_state.shift_days(effect.days)
            return effect.message
        if isinstance(effect, RevealNeighborsEffect):
            target_id = self._resolve_target_node_id(effect.target, game_state, context)
            if target_id is None:
                return None
            revealed = game_state.reveal_neighbors(
                target_id, hazard_hints=effect.hazard_hints, max_hazard=effect.max_hazard
            )
            return effect.message.replace("{count}", str(len(revealed))) if effect.message else None
        if isinstance(effect, RevealHazardsEffect):
            target_id = self._resolve_target_node_id(effect.target, game_state, context)
            if target_id is None:
                return None
            revealed = game_state.reveal_neighbors(target_id, hazard_hints=True)
            return effect.message.replace("{count}", str(len(revealed))) if effect.message else None
        if isinstance(effect, SetFlagEffect):
            game_state.set_encounter_flag(effect.flag, effect.value)
            return effect.message
        if isinstance(effect, ClearFlagEffect):
            game_state.clear_encounter_flag(effect.flag)
            return effect.message
        if isinstance(effect, AddBuffEffect):
            buff_id = effect.buff_id or f"{event.id}-{stage.id}-{choice.id}-{effect.kind or 'buff'}"
            remaining = effect.remaining if effect.remaining is not None else effect.duration
            game_state.add_encounter_buff(
                Buff(
                    id=buff_id,
                    kind=effect.kind,
                    amount=effect.amount,
                    remaining=remaining if remaining is not None else 1,
                    tick=effect.tick or "travel",
                    label=effect.label,
                    meta=dict(effect.meta),
                )
            )
            return effect.message
        if isinstance(effect, ClearBuffEffect):
            if effect.buff_id:
                game_state.remove_encounter_buff(effect.buff_id)
            if effect.kind:
                for buff in game_state.get_encounter_buffs():
                    if buff.kind == effect.kind:
                        game_state.remove_encounter_buff(buff.id)
            return effect.message
        if isinstance(effect, TeleportEffect):
            target_id = self._resolve_teleport_target(effect, game_state, context)
            if target_id is None or not game_state.teleport_to(target_id, day_shift=effect.day_shift, log=effect.log):
                return None
            if effect.reveal_neighbors:
                game_state.reveal_neighbors(target_id, hazard_hints=effect.hazard_hints)
            return effect.message
        return None

    @staticmethod
    def _resolve_target_node_id(
        target: str | None, game_state: GameState, context: EncounterContext
    ) -> str | None:
        location = game_state.state.location if game_state.state is not None else None
        if not target:
            return location
        if target.startswith("node:"):
            return target[5:]
        if target in ("current", "here"):
            return location
        if target in ("origin", "from"):
            return context.from_node_id
        if target in ("destination", "arrival", "to"):
            return context.to_node_id or context.node_id or location
        return target

    def _resolve_teleport_target(
        self, effect: TeleportEffect, game_state: GameState, context: EncounterContext
    ) -> str | None:
        if game_state.state is None:
            return None
        graph = game_state.ensure_world_ready()
        if effect.target_id:
            return effect.target_id
        origin_id = self._resolve_target_node_id(effect.origin or "current", game_state, context)
        if origin_id is None:
            return None
        candidates = graph.get_connections(origin_id)
        if not candidates:
            return None
        if effect.mode == "forward":
            ordered = sorted(candidates, key=lambda entry: entry[1].distance, reverse=True)
            visited = set(game_state.state.visited)
            for neighbor, _connection in ordered:
                if neighbor.id not in visited:
                    return neighbor.id
            return ordered[0][0].id
        index = math.floor(game_state.rng.next_range(0, len(candidates)))
        return candidates[min(index, len(candidates) - 1)][0].id

    def _passes_requirements(self, event: EventDef, game_state: GameState, context: EncounterContext) -> bool:
        day = game_state.state.day
        if event.cooldown > 0:
            last = game_state.get_encounter_cooldown(event.id)
            if last is not None:
                elapsed = day - last.day
                if 0 <= elapsed < event.cooldown:
                    return False
        requires = event.requires
        if requires.min_day is not None and day < requires.min_day:
            return False
        if requires.max_day is not None and day > requires.max_day:
            return False
        region = self._resolve_region(game_state, context)
        if requires.regions and (region is None or region not in requires.regions):
            return False
        if requires.not_regions and region is not None and region in requires.not_regions:
            return False
        if not all(game_state.has_encounter_flag(flag) for flag in requires.flags):
            return False
        if any(game_state.has_encounter_flag(flag) for flag in requires.not_flags):
            return False
        if requires.context_tags and not all(tag in context.tags for tag in requires.context_tags):
            return False
        return True

    @staticmethod
    def _resolve_region(game_state: GameState, context: EncounterContext) -> str | None:
        if context.region:
            return context.region
        if game_state.state is None:
            return None
        graph = game_state.ensure_world_ready()
        for node_id in (context.node_id, context.to_node_id, game_state.state.location):
            if node_id is not None and node_id in graph.nodes:
                return graph.nodes[node_id].region or None
        return None

    @staticmethod
    def _pick_weighted(game_state: GameState, entries: List[EventDef], weights: List[float]) -> EventDef | None:
        total = sum(max(0.0, weight) for weight in weights)
        if total <= 0:
            return None
        threshold = game_state.rng.next_range(0, total)
        for entry, weight in zip(entries, weights):
            if weight <= 0:
                continue
            threshold -= weight
            if threshold <= 0:
                return entry
        positive = [entry for entry, weight in zip(entries, weights) if weight > 0]
        return positive[-1]
