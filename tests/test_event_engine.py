import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from trail.data.repositories import EventsRepository
from trail.data.storage import MemoryStore
from trail.domain.defs import EventDef
from trail.services.errors import (
    EventResolutionError,
    UnknownChoiceError,
    UnknownEventError,
    UnknownStageError,
)
from trail.services.event_engine import EncounterContext, EventEngine, event_weight

from tests.helpers.trail_builders import make_definitions_dir, make_event_engine, make_game_state


def test_resources_effect_changes_supplies(tmp_path: Path) -> None:
    engine, game_state = _setup(
        tmp_path,
        [_event("gift", effects=[{"type": "resources", "changes": {"gas": 2}, "message": "Free gas!"}])],
    )
    game_state.adjust_resources({"gas": -3})

    resolution = engine.resolve_choice("gift", "start", "take", game_state)

    assert game_state.state.resources["gas"] == 7
    assert resolution.outcome == "You took it. Free gas!"
    assert resolution.done is True
    assert resolution.next_stage is None


def test_resources_effect_respects_ceiling(tmp_path: Path) -> None:
    engine, game_state = _setup(
        tmp_path, [_event("gift", effects=[{"type": "resources", "changes": {"gas": 5, "money": -100}}])]
    )

    engine.resolve_choice("gift", "start", "take", game_state)

    assert game_state.state.resources["gas"] == 8
    assert game_state.state.resources["money"] == 0


def test_trigger_skips_zero_weight_events(tmp_path: Path) -> None:
    events = [
        _event("never", hook="travel", weight=0),
        _event("always", hook="travel", weight=1),
    ]
    engine, game_state = _setup(tmp_path, events)

    for _ in range(10):
        triggered = engine.maybe_trigger("travel", game_state)
        assert triggered is not None
        assert triggered.id == "always"


def test_trigger_returns_none_without_eligible_events(tmp_path: Path) -> None:
    engine, game_state = _setup(tmp_path, [_event("late", requires={"minDay": 3})])
    state_before = game_state.rng.state

    assert engine.maybe_trigger("arrival", game_state) is None
    assert engine.maybe_trigger("travel", game_state) is None
    assert game_state.rng.state == state_before


def test_trigger_requires_active_run(tmp_path: Path) -> None:
    definitions_dir = make_definitions_dir(tmp_path, events=[_event("any")])
    engine = make_event_engine(definitions_dir)
    game_state = make_game_state(definitions_dir)

    assert engine.maybe_trigger("arrival", game_state) is None


def test_finished_run_ignores_encounters(tmp_path: Path) -> None:
    engine, game_state = _setup(
        tmp_path,
        [_event("gift", cooldown=3, effects=[{"type": "resources", "changes": {"gas": -3}}])],
    )
    game_state.mark_game_over()
    rng_before = game_state.rng.state
    resources_before = dict(game_state.state.resources)
    log_before = list(game_state.state.log)

    assert engine.maybe_trigger("arrival", game_state) is None
    resolution = engine.resolve_choice("gift", "start", "take", game_state)

    assert resolution.done is True
    assert resolution.outcome == ""
    assert game_state.rng.state == rng_before
    assert game_state.state.resources == resources_before
    assert game_state.get_encounter_cooldown("gift") is None
    assert game_state.state.log == log_before


def test_event_without_stages_leaves_no_trace(tmp_path: Path) -> None:
    event = _event("hollow", summary="Nothing to see here.", cooldown=2)
    event["stages"] = []
    engine, game_state = _setup(tmp_path, [event])
    log_before = list(game_state.state.log)

    assert engine.maybe_trigger("arrival", game_state) is None
    assert game_state.get_encounter_cooldown("hollow") is None
    assert game_state.state.log == log_before


def test_trigger_logs_summary_and_records_cooldown(tmp_path: Path) -> None:
    engine, game_state = _setup(tmp_path, [_event("moose", summary="A moose blocks the road.", cooldown=2)])

    triggered = engine.maybe_trigger("arrival", game_state)

    assert triggered is not None
    assert triggered.stage_id == "start"
    assert game_state.state.log[-1] == "[Day 1] A moose blocks the road."
    assert game_state.get_encounter_cooldown("moose").day == 1
    assert engine.maybe_trigger("arrival", game_state) is None

    game_state.shift_days(1)
    assert engine.maybe_trigger("arrival", game_state) is None
    game_state.shift_days(1)
    assert engine.maybe_trigger("arrival", game_state) is not None


def test_triggered_stage_is_a_copy(tmp_path: Path) -> None:
    engine, game_state = _setup(tmp_path, [_event("moose")])

    triggered = engine.maybe_trigger("arrival", game_state)
    triggered.stage.text = "Changed"
    triggered.context.tags = ("mutated",)

    assert engine.get_event("moose").stage_map["start"].text == "Something happens."


def test_entry_stage_overrides_first_stage(tmp_path: Path) -> None:
    event = _event("staged")
    event["stages"].append({"id": "later", "text": "Later on.", "choices": []})
    event["entryStage"] = "later"
    engine, game_state = _setup(tmp_path, [event])

    triggered = engine.maybe_trigger("arrival", game_state)

    assert triggered.stage_id == "later"


def test_requirements_filter_by_day_region_flags_and_tags(tmp_path: Path) -> None:
    events = [
        _event("prairie", requires={"regions": ["Manitoba"]}),
        _event("not-home", requires={"notRegions": ["Nova Scotia"]}),
        _event("flagged", requires={"flags": ["met-moose"], "notFlags": ["scared"]}),
        _event("tagged", requires={"contextTags": ["night"]}),
        _event("window", requires={"minDay": 1, "maxDay": 2}),
    ]
    engine, game_state = _setup(tmp_path, events)

    def eligible(context: EncounterContext | None = None) -> List[str]:
        return [event.id for event in engine.eligible_events("arrival", game_state, context)]

    assert eligible() == ["window"]
    assert eligible(EncounterContext(region="Manitoba", tags=("night", "rain"))) == [
        "prairie",
        "not-home",
        "tagged",
        "window",
    ]
    game_state.set_encounter_flag("met-moose")
    assert "flagged" in eligible()
    game_state.set_encounter_flag("scared")
    assert "flagged" not in eligible()
    game_state.shift_days(5)
    assert "window" not in eligible()


def test_region_falls_back_to_context_node(tmp_path: Path) -> None:
    engine, game_state = _setup(tmp_path, [_event("quebec-only", requires={"regions": ["Quebec"]})])

    assert engine.eligible_events("arrival", game_state) == []
    context = EncounterContext(node_id="quebec-city")
    assert [event.id for event in engine.eligible_events("arrival", game_state, context)] == ["quebec-only"]


def test_unknown_ids_raise(tmp_path: Path) -> None:
    engine, game_state = _setup(tmp_path, [_event("moose")])

    with pytest.raises(UnknownEventError):
        engine.resolve_choice("ghost", "start", "take", game_state)
    with pytest.raises(UnknownStageError):
        engine.resolve_choice("moose", "nowhere", "take", game_state)
    with pytest.raises(UnknownChoiceError):
        engine.resolve_choice("moose", "start", "dance", game_state)
    with pytest.raises(EventResolutionError):
        engine.get_event("ghost")
    with pytest.raises(LookupError):
        engine.get_event("ghost")


def test_missing_stage_id_uses_first_stage(tmp_path: Path) -> None:
    engine, game_state = _setup(tmp_path, [_event("moose")])

    resolution = engine.resolve_choice("moose", None, "take", game_state)

    assert resolution.outcome == "You took it."


def test_next_stage_is_returned_as_copy(tmp_path: Path) -> None:
    event = _event("diner", next_stage="tip")
    event["stages"].append({"id": "tip", "text": "Leave a tip?", "choices": [{"id": "yes", "label": "Yes"}]})
    engine, game_state = _setup(tmp_path, [event])

    resolution = engine.resolve_choice("diner", "start", "take", game_state)

    assert resolution.done is False
    assert resolution.next_stage_id == "tip"
    resolution.next_stage.text = "Changed"
    assert engine.get_event("diner").stage_map["tip"].text == "Leave a tip?"


def test_certain_roll_takes_success_branch(tmp_path: Path) -> None:
    roll = {
        "chance": 1.0,
        "success": {"outcome": "Made it.", "effects": [{"type": "setFlag", "flag": "lucky"}]},
        "failure": {"outcome": "Nope.", "effects": [{"type": "setFlag", "flag": "unlucky"}]},
    }
    engine, game_state = _setup(tmp_path, [_event("gamble", roll=roll)])

    resolution = engine.resolve_choice("gamble", "start", "take", game_state)

    assert resolution.roll is not None
    assert resolution.roll.success is True
    assert 0 <= resolution.roll.value < 1
    assert resolution.outcome == "You took it. Made it."
    assert game_state.has_encounter_flag("lucky")
    assert not game_state.has_encounter_flag("unlucky")


def test_impossible_roll_takes_failure_branch(tmp_path: Path) -> None:
    roll = {"chance": 0.0, "failure": {"outcome": "Nope."}}
    engine, game_state = _setup(tmp_path, [_event("gamble", roll=roll)])
    state_before = game_state.rng.state

    resolution = engine.resolve_choice("gamble", "start", "take", game_state)

    assert resolution.roll.success is False
    assert resolution.messages == ["You took it.", "Nope."]
    assert game_state.rng.state != state_before


def test_choice_flags_and_log(tmp_path: Path) -> None:
    event = _event("flags")
    choice = event["stages"][0]["choices"][0]
    choice["setFlags"] = {"met-moose": None, "mood": "cheerful"}
    choice["clearFlags"] = ["scared"]
    choice["log"] = "We shared a sandwich."
    engine, game_state = _setup(tmp_path, [event])
    game_state.set_encounter_flag("scared")

    engine.resolve_choice("flags", "start", "take", game_state)

    flags = game_state.state.encounters.flags
    assert flags["met-moose"] is True
    assert flags["mood"] == "cheerful"
    assert "scared" not in flags
    assert game_state.state.log[-1] == "[Day 1] We shared a sandwich."


def test_add_buff_uses_stable_default_id(tmp_path: Path) -> None:
    effects = [{"type": "addBuff", "kind": "travel-gas", "amount": -1, "duration": 2, "label": "Tailwind"}]
    engine, game_state = _setup(tmp_path, [_event("wind", effects=effects)])

    engine.resolve_choice("wind", "start", "take", game_state)
    engine.resolve_choice("wind", "start", "take", game_state)

    buffs = game_state.get_encounter_buffs()
    assert len(buffs) == 1
    assert buffs[0].id == "wind-start-take-travel-gas"
    assert buffs[0].remaining == 2
    assert buffs[0].tick == "travel"
    assert buffs[0].label == "Tailwind"


def test_skip_hazard_buff_defaults_to_manual_tick(tmp_path: Path) -> None:
    effects = [{"type": "addBuff", "id": "escort", "kind": "skip-hazard"}]
    engine, game_state = _setup(tmp_path, [_event("escort", effects=effects)])

    engine.resolve_choice("escort", "start", "take", game_state)

    (buff,) = game_state.get_encounter_buffs()
    assert buff.id == "escort"
    assert buff.tick == "manual"
    assert buff.remaining == 1


def test_clear_buff_by_kind_and_id(tmp_path: Path) -> None:
    effects = [
        {"type": "addBuff", "id": "storm-a", "kind": "hazard", "amount": 0.2},
        {"type": "addBuff", "id": "storm-b", "kind": "hazard", "amount": 0.1},
        {"type": "addBuff", "id": "snack", "kind": "travel-snacks", "amount": -1},
    ]
    clear_effects = [{"type": "clearBuff", "kind": "hazard"}, {"type": "clearBuff", "id": "snack"}]
    engine, game_state = _setup(tmp_path, [_event("add", effects=effects), _event("clear", effects=clear_effects)])

    engine.resolve_choice("add", "start", "take", game_state)
    assert len(game_state.get_encounter_buffs()) == 3
    engine.resolve_choice("clear", "start", "take", game_state)

    assert game_state.get_encounter_buffs() == []


def test_day_shift_effect_moves_calendar(tmp_path: Path) -> None:
    effects = [{"type": "dayShift", "days": 2, "message": "Lost two days."}]
    engine, game_state = _setup(tmp_path, [_event("detour", effects=effects)])
    game_state.advance_time(1)

    resolution = engine.resolve_choice("detour", "start", "take", game_state)

    assert game_state.state.day == 3
    assert game_state.state.time_segment == 0
    assert resolution.outcome == "You took it. Lost two days."


def test_malformed_effects_are_skipped(tmp_path: Path) -> None:
    effects: List[Any] = [
        "not-an-effect",
        {"type": "warp"},
        {"type": "resources", "changes": "lots"},
        {"type": "setFlag"},
        {"type": "setFlag", "flag": "survived"},
    ]
    engine, game_state = _setup(tmp_path, [_event("messy", effects=effects)])
    resources_before = dict(game_state.state.resources)

    resolution = engine.resolve_choice("messy", "start", "take", game_state)

    assert resolution.outcome == "You took it."
    assert game_state.state.resources == resources_before
    assert game_state.has_encounter_flag("survived")


def test_reveal_neighbors_reports_count(tmp_path: Path) -> None:
    effects = [{"type": "revealHazards", "message": "Spotted {count} roads."}]
    engine, game_state = _setup(tmp_path, [_event("scout", effects=effects)])
    graph = game_state.get_world_graph()
    neighbors = graph.get_connections("halifax-hub")

    resolution = engine.resolve_choice("scout", "start", "take", game_state)

    assert resolution.outcome == f"You took it. Spotted {len(neighbors)} roads."
    exits = game_state.state.knowledge["halifax-hub"].exits
    for neighbor, connection in neighbors:
        assert exits[neighbor.id].hazard == connection.hazard
        assert game_state.state.knowledge[neighbor.id].seen is True


def test_reveal_neighbors_respects_max_hazard(tmp_path: Path) -> None:
    effects = [{"type": "revealNeighbors", "target": "node:quebec-city", "maxHazard": 0, "message": "{count}"}]
    engine, game_state = _setup(tmp_path, [_event("fog", effects=effects)])

    resolution = engine.resolve_choice("fog", "start", "take", game_state)

    assert resolution.messages[-1] == "0"


def test_teleport_to_explicit_target(tmp_path: Path) -> None:
    effects = [{"type": "teleport", "targetId": "quebec-city", "dayShift": 1, "message": "Whoosh."}]
    engine, game_state = _setup(tmp_path, [_event("hitch", effects=effects)])

    resolution = engine.resolve_choice("hitch", "start", "take", game_state)

    state = game_state.state
    assert state.location == "quebec-city"
    assert "quebec-city" in state.visited
    assert state.day == 2
    assert state.log[-1] == "[Day 2] Ended up at Quebec City."
    assert resolution.outcome == "You took it. Whoosh."


def test_teleport_forward_picks_longest_unvisited_road(tmp_path: Path) -> None:
    effects = [{"type": "teleport", "mode": "forward", "log": "Caught a ride."}]
    engine, game_state = _setup(tmp_path, [_event("hitch", effects=effects)])
    graph = game_state.get_world_graph()
    ordered = sorted(graph.get_connections("halifax-hub"), key=lambda entry: entry[1].distance, reverse=True)

    engine.resolve_choice("hitch", "start", "take", game_state)

    assert game_state.state.location == ordered[0][0].id
    assert game_state.state.log[-1] == "[Day 1] Caught a ride."


def test_teleport_to_unknown_node_does_nothing(tmp_path: Path) -> None:
    effects = [{"type": "teleport", "targetId": "atlantis", "message": "Whoosh."}]
    engine, game_state = _setup(tmp_path, [_event("hitch", effects=effects)])

    resolution = engine.resolve_choice("hitch", "start", "take", game_state)

    assert game_state.state.location == "halifax-hub"
    assert resolution.outcome == "You took it."


def test_resolution_persists_state(tmp_path: Path) -> None:
    events = [_event("flag", effects=[{"type": "setFlag", "flag": "saved"}])]
    definitions_dir = make_definitions_dir(tmp_path, events=events)
    store = MemoryStore()
    game_state = make_game_state(definitions_dir, store=store)
    game_state.start_new_run(seed=999)
    engine = make_event_engine(definitions_dir)

    engine.resolve_choice("flag", "start", "take", game_state)

    payload = json.loads(store.get_item(game_state.storage_key))
    assert payload["encounters"]["flags"] == {"saved": True}


def test_event_weight_prefers_explicit_weight() -> None:
    assert event_weight(EventDef(id="a", rarity="rare")) == 1
    assert event_weight(EventDef(id="b", rarity="uncommon")) == 3
    assert event_weight(EventDef(id="c")) == 6
    assert event_weight(EventDef(id="d", rarity="uncommon", weight=4)) == 4
    assert event_weight(EventDef(id="e", rarity="legendary")) == 1
    assert event_weight(EventDef(id="f", weight=-2)) == 0


def test_engine_reset_reloads_library(tmp_path: Path) -> None:
    definitions_dir = make_definitions_dir(tmp_path, events=[_event("first")])
    engine = EventEngine(EventsRepository(base_path=definitions_dir))
    assert list(engine.events) == ["first"]

    make_definitions_dir(tmp_path, events=[_event("second")])
    engine.reset()

    assert list(engine.events) == ["second"]


def _setup(tmp_path: Path, events: List[Dict[str, Any]]):
    definitions_dir = make_definitions_dir(tmp_path, events=events)
    game_state = make_game_state(definitions_dir)
    game_state.start_new_run(seed=999, vehicle_id="minivan")
    return make_event_engine(definitions_dir), game_state


def _event(
    event_id: str,
    *,
    hook: str = "arrival",
    weight: float | None = None,
    summary: str | None = None,
    cooldown: int | None = None,
    requires: Dict[str, Any] | None = None,
    effects: List[Any] | None = None,
    roll: Dict[str, Any] | None = None,
    next_stage: str | None = None,
) -> Dict[str, Any]:
    choice: Dict[str, Any] = {"id": "take", "label": "Take it", "outcome": "You took it."}
    if effects is not None:
        choice["effects"] = effects
    if roll is not None:
        choice["roll"] = roll
    if next_stage is not None:
        choice["nextStage"] = next_stage
    event: Dict[str, Any] = {
        "id": event_id,
        "hook": hook,
        "stages": [{"id": "start", "text": "Something happens.", "choices": [choice]}],
    }
    for key, value in (("weight", weight), ("summary", summary), ("cooldown", cooldown), ("requires", requires)):
        if value is not None:
            event[key] = value
    return event
