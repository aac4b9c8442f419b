"""Repository for the branching event library."""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Tuple

from trail.core.numbers import round_half_up
from trail.data.errors import DataValidationError
from trail.data.repositories.base import RepositoryBase
from trail.domain.defs import (
    AddBuffEffect,
    ClearBuffEffect,
    ClearFlagEffect,
    DayShiftEffect,
    EffectDef,
    EventBranchDef,
    EventChoiceDef,
    EventDef,
    EventRequirementsDef,
    EventRollDef,
    EventStageDef,
    LogEffect,
    NoopEffect,
    ResourcesEffect,
    RevealHazardsEffect,
    RevealNeighborsEffect,
    SetFlagEffect,
    TeleportEffect,
)

logger = logging.getLogger(__name__)


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _text(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _parse_resources(data: dict) -> EffectDef:
    changes_raw = data.get("changes") or data.get("resources") or {}
    if not isinstance(changes_raw, dict):
        return NoopEffect(raw_type="resources")
    changes: Dict[str, int] = {}
    for key, value in changes_raw.items():
        amount = _number(value)
        if isinstance(key, str) and amount is not None:
            changes[key] = round_half_up(amount)
    return ResourcesEffect(changes=changes, message=_text(data.get("message")))


def _parse_log(data: dict) -> EffectDef:
    message = _text(data.get("message"))
    if message is None:
        return NoopEffect(raw_type="log")
    return LogEffect(message=message)


def _parse_day_shift(data: dict) -> EffectDef:
    delta = _number(data.get("days"))
    if delta is None:
        delta = _number(data.get("amount"))
    if delta is None:
        return NoopEffect(raw_type=str(data.get("type")))
    return DayShiftEffect(days=int(delta), message=_text(data.get("message")))


def _parse_reveal_neighbors(data: dict) -> EffectDef:
    return RevealNeighborsEffect(
        target=_text(data.get("target")),
        hazard_hints=bool(data.get("hazardHints", False)),
        max_hazard=_number(data.get("maxHazard")),
        message=_text(data.get("message")),
    )


def _parse_reveal_hazards(data: dict) -> EffectDef:
    return RevealHazardsEffect(target=_text(data.get("target")), message=_text(data.get("message")))


def _parse_set_flag(data: dict) -> EffectDef:
    flag = _text(data.get("flag"))
    if flag is None:
        return NoopEffect(raw_type="setFlag")
    value = data.get("value", True)
    return SetFlagEffect(flag=flag, value=True if value is None else value, message=_text(data.get("message")))


def _parse_clear_flag(data: dict) -> EffectDef:
    flag = _text(data.get("flag"))
    if flag is None:
        return NoopEffect(raw_type="clearFlag")
    return ClearFlagEffect(flag=flag, message=_text(data.get("message")))


def _parse_add_buff(data: dict) -> EffectDef:
    kind = _text(data.get("kind")) or "generic"
    amount = _number(data.get("amount"))
    if amount is None:
        amount = _number(data.get("value"))
    remaining = _number(data.get("remaining"))
    duration = _number(data.get("duration"))
    meta = data.get("meta")
    return AddBuffEffect(
        kind=kind,
        buff_id=_text(data.get("id")),
        amount=amount if amount is not None else 0,
        remaining=int(remaining) if remaining is not None else None,
        duration=int(duration) if duration is not None else None,
        tick=_text(data.get("tick")) or ("manual" if kind == "skip-hazard" else "travel"),
        label=_text(data.get("label")),
        meta=dict(meta) if isinstance(meta, dict) else {},
        message=_text(data.get("message")),
    )


def _parse_clear_buff(data: dict) -> EffectDef:
    buff_id = _text(data.get("id"))
    kind = _text(data.get("kind"))
    if buff_id is None and kind is None:
        return NoopEffect(raw_type="clearBuff")
    return ClearBuffEffect(buff_id=buff_id, kind=kind, message=_text(data.get("message")))


def _parse_teleport(data: dict) -> EffectDef:
    day_shift = _number(data.get("dayShift"))
    return TeleportEffect(
        target_id=_text(data.get("targetId")),
        origin=_text(data.get("origin")) or _text(data.get("target")),
        mode=_text(data.get("mode")),
        day_shift=int(day_shift) if day_shift else 0,
        reveal_neighbors=bool(data.get("revealNeighbors", False)),
        hazard_hints=bool(data.get("hazardHints", False)),
        log=_text(data.get("log")),
        message=_text(data.get("message")),
    )


_EFFECT_PARSERS: Dict[str, Callable[[dict], EffectDef]] = {
    "resources": _parse_resources,
    "log": _parse_log,
    "dayShift": _parse_day_shift,
    "days": _parse_day_shift,
    "revealNeighbors": _parse_reveal_neighbors,
    "revealHazards": _parse_reveal_hazards,
    "setFlag": _parse_set_flag,
    "clearFlag": _parse_clear_flag,
    "addBuff": _parse_add_buff,
    "clearBuff": _parse_clear_buff,
    "teleport": _parse_teleport,
}


def parse_effect(raw: object) -> EffectDef:
    """Parse one effect entry, degrading anything unusable to NoopEffect."""
    if not isinstance(raw, dict):
        logger.debug("Skipping non-object effect entry: %r", raw)
        return NoopEffect()
    effect_type = raw.get("type")
    parser = _EFFECT_PARSERS.get(effect_type) if isinstance(effect_type, str) else None
    if parser is None:
        logger.debug("Unknown effect type %r treated as no-op.", effect_type)
        return NoopEffect(raw_type=effect_type if isinstance(effect_type, str) else None)
    return parser(raw)


class EventsRepository(RepositoryBase[EventDef]):
    """Loads ``events.json`` and normalizes stage/choice ids."""

    def __init__(self, base_path=None) -> None:
        super().__init__("events.json", base_path)

    def all(self) -> list[EventDef]:
        """Return events in library order; selection walks this order."""
        return list(self._ensure_loaded().values())

    def _build(self, raw: dict[str, object]) -> Dict[str, EventDef]:
        entries = raw.get("events", [])
        if not isinstance(entries, list):
            raise DataValidationError("events.json events must be a list.")
        events: Dict[str, EventDef] = {}
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or not _text(entry.get("id")):
                logger.warning("Skipping events.json entry %d without an id.", index)
                continue
            event = self._parse_event(entry)
            events[event.id] = event
        return events

    def _parse_event(self, mapping: dict) -> EventDef:
        event_id = mapping["id"]
        context = f"event '{event_id}'"
        stages = tuple(
            self._parse_stage(stage, stage_index, context)
            for stage_index, stage in enumerate(self._require_list(mapping.get("stages", []), f"{context} stages"))
        )
        weight = _number(mapping.get("weight"))
        cooldown = _number(mapping.get("cooldown"))
        return EventDef(
            id=event_id,
            hook=_text(mapping.get("hook")) or "arrival",
            title=_text(mapping.get("title")),
            summary=_text(mapping.get("summary")),
            rarity=_text(mapping.get("rarity")) or "common",
            weight=float(weight) if weight is not None else None,
            cooldown=int(cooldown) if cooldown is not None else 0,
            entry_stage=_text(mapping.get("entryStage")),
            requires=self._parse_requirements(mapping.get("requires"), context),
            stages=stages,
            stage_map={stage.id: stage for stage in stages},
        )

    def _parse_stage(self, raw: object, stage_index: int, context: str) -> EventStageDef:
        mapping = self._require_mapping(raw, f"{context} stages[{stage_index}]")
        stage_id = _text(mapping.get("id")) or f"stage-{stage_index}"
        stage_context = f"{context} stage '{stage_id}'"
        choices = tuple(
            self._parse_choice(choice, stage_id, choice_index, stage_context)
            for choice_index, choice in enumerate(
                self._require_list(mapping.get("choices", []), f"{stage_context} choices")
            )
        )
        return EventStageDef(
            id=stage_id,
            text=_text(mapping.get("text")) or "",
            choices=choices,
            title=_text(mapping.get("title")),
        )

    def _parse_choice(self, raw: object, stage_id: str, choice_index: int, context: str) -> EventChoiceDef:
        mapping = self._require_mapping(raw, f"{context} choices[{choice_index}]")
        choice_id = _text(mapping.get("id")) or f"{stage_id}-choice-{choice_index}"
        return EventChoiceDef(
            id=choice_id,
            label=_text(mapping.get("label")) or choice_id,
            outcome=_text(mapping.get("outcome")),
            log=_text(mapping.get("log")),
            effects=self._parse_effects(mapping.get("effects")),
            roll=self._parse_roll(mapping.get("roll")),
            set_flags=self._parse_set_flags(mapping.get("setFlags")),
            clear_flags=self._str_tuple(mapping.get("clearFlags")),
            next_stage=_text(mapping.get("nextStage")),
        )

    @staticmethod
    def _parse_effects(raw: object) -> Tuple[EffectDef, ...]:
        if not isinstance(raw, list):
            return ()
        return tuple(parse_effect(entry) for entry in raw)

    def _parse_roll(self, raw: object) -> EventRollDef | None:
        if not isinstance(raw, dict):
            return None
        chance = _number(raw.get("chance"))
        return EventRollDef(
            chance=float(chance) if chance is not None else 0.5,
            success=self._parse_branch(raw.get("success")),
            failure=self._parse_branch(raw.get("failure")),
        )

    def _parse_branch(self, raw: object) -> EventBranchDef | None:
        if not isinstance(raw, dict):
            return None
        return EventBranchDef(outcome=_text(raw.get("outcome")), effects=self._parse_effects(raw.get("effects")))

    @staticmethod
    def _parse_set_flags(raw: object) -> Dict[str, object]:
        if isinstance(raw, list):
            return {flag: True for flag in raw if isinstance(flag, str)}
        if isinstance(raw, dict):
            return {
                flag: True if value is None else value
                for flag, value in raw.items()
                if isinstance(flag, str)
            }
        return {}

    def _parse_requirements(self, raw: object, context: str) -> EventRequirementsDef:
        if raw is None:
            return EventRequirementsDef()
        mapping = self._require_mapping(raw, f"{context} requires")
        min_day = _number(mapping.get("minDay"))
        max_day = _number(mapping.get("maxDay"))
        return EventRequirementsDef(
            min_day=int(min_day) if min_day is not None else None,
            max_day=int(max_day) if max_day is not None else None,
            regions=self._str_tuple(mapping.get("regions")),
            not_regions=self._str_tuple(mapping.get("notRegions")),
            flags=self._str_tuple(mapping.get("flags")),
            not_flags=self._str_tuple(mapping.get("notFlags")),
            context_tags=self._str_tuple(mapping.get("contextTags")),
        )

    @staticmethod
    def _str_tuple(raw: object) -> Tuple[str, ...]:
        if not isinstance(raw, list):
            return ()
        values: List[str] = [item for item in raw if isinstance(item, str)]
        return tuple(values)
