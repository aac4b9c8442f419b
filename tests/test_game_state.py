from __future__ import annotations

import json
from pathlib import Path

import pytest

from trail.data.config import TrailSettings
from trail.data.storage import MemoryStore
from trail.domain.buffs import Buff
from trail.services.errors import WorldNotReadyError
from trail.services.game_state import GameState

from tests.helpers.trail_builders import make_definitions_dir, make_game_state

START_LOG = "[Day 1] Packed the cooler, topped up the tank, ready to roll from Halifax Harbourfront!"


def _start(tmp_path: Path, **kwargs) -> GameState:
    game_state = make_game_state(make_definitions_dir(tmp_path), **kwargs)
    game_state.start_new_run(seed=999, vehicle_id="minivan")
    return game_state


def _first_neighbor(game_state: GameState) -> str:
    graph = game_state.get_world_graph()
    neighbor, _connection = graph.get_connections(game_state.state.location)[0]
    return neighbor.id


def test_start_new_run_builds_initial_record(tmp_path: Path) -> None:
    game_state = make_game_state(make_definitions_dir(tmp_path))

    snapshot = game_state.start_new_run(seed=999, vehicle_id="minivan")

    assert snapshot.seed == 999
    assert snapshot.rng_state == 999
    assert snapshot.location == "halifax-hub"
    assert snapshot.day == 1
    assert snapshot.time_segment == 0
    assert snapshot.resources == {"gas": 8, "snacks": 6, "ride": 7, "money": 60}
    assert snapshot.max_resources == snapshot.resources
    assert snapshot.vehicle.name == "Prairie Minivan"
    assert [member.name for member in snapshot.party] == ["Merri-Ellen", "Mike"]
    assert snapshot.log == [START_LOG]
    assert snapshot.visited == ["halifax-hub"]
    assert snapshot.world.seed == 999
    assert snapshot.world.version == 2
    assert snapshot.world.world_type == "procedural"
    assert snapshot.game_over is False
    knowledge = snapshot.knowledge["halifax-hub"]
    neighbors = {neighbor.id for neighbor, _ in game_state.get_world_graph().get_connections("halifax-hub")}
    assert knowledge.seen is True
    assert set(knowledge.exits) == neighbors


def test_start_new_run_resolves_vehicle(tmp_path: Path) -> None:
    game_state = make_game_state(make_definitions_dir(tmp_path))

    assert game_state.start_new_run(seed=1, vehicle_id="hovercraft").vehicle.id == "minivan"
    pickup = game_state.start_new_run(seed=1, vehicle_id="pickup")
    assert pickup.vehicle.efficiency == 1.1
    assert pickup.resources["ride"] == 9


def test_start_new_run_without_seed_picks_one(tmp_path: Path) -> None:
    game_state = make_game_state(make_definitions_dir(tmp_path))

    snapshot = game_state.start_new_run()

    assert 0 <= snapshot.seed < 2**31
    assert game_state.get_world_graph().seed == snapshot.seed


def test_same_seed_same_choices_same_run(tmp_path: Path) -> None:
    definitions_dir = make_definitions_dir(tmp_path)
    snapshots = []
    for _ in range(2):
        game_state = make_game_state(definitions_dir)
        game_state.start_new_run(seed=999, vehicle_id="minivan")
        game_state.perform_node_action("shop")
        for _ in range(3):
            game_state.travel_to(_first_neighbor(game_state))
        snapshots.append(game_state.get_snapshot())

    assert snapshots[0] == snapshots[1]


def test_shop_once_per_node(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    first = game_state.perform_node_action("shop")
    second = game_state.perform_node_action("shop")

    assert first.ok is True
    assert first.action_id == "shop"
    assert first.time_cost == 1
    assert first.deltas["gas"] == 0
    assert first.deltas["money"] < 0
    assert game_state.state.resources["money"] == 60 + first.deltas["money"]
    assert game_state.state.time_segment == 1
    assert game_state.state.action_history == {"halifax-hub": {"shop": 1}}
    assert game_state.state.log[-1] == f"[Day 1] {first.message}"
    assert second.ok is False
    assert second.reason == "Already completed."


def test_action_failure_reasons(tmp_path: Path) -> None:
    idle = make_game_state(make_definitions_dir(tmp_path))
    assert idle.perform_node_action("shop").reason == "No active run."

    game_state = _start(tmp_path)
    assert game_state.perform_node_action("juggle").reason == "Action unavailable here."
    assert game_state.perform_node_action("siphon").reason == "Action unavailable here."

    game_state.adjust_resources({"money": -1000})
    assert game_state.perform_node_action("shop").reason == "Insufficient money."

    game_state.mark_game_over()
    assert game_state.perform_node_action("tinker").reason == "The journey is over."


def test_usage_is_checked_before_costs(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    game_state.perform_node_action("shop")

    game_state.adjust_resources({"money": -1000})

    assert game_state.perform_node_action("shop").reason == "Already completed."


def test_failed_action_changes_nothing(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    game_state.adjust_resources({"money": -1000})
    before = game_state.get_snapshot()

    result = game_state.perform_node_action("shop")

    assert result.ok is False
    assert game_state.get_snapshot() == before


def test_action_options_report_availability(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    options = game_state.get_action_options()
    assert [option.action_id for option in options] == ["shop", "tinker"]
    assert all(option.available for option in options)

    game_state.perform_node_action("shop")
    shop = game_state.get_action_options()[0]
    assert shop.available is False
    assert shop.reason == "Already completed."
    assert shop.usage == 1

    elsewhere = game_state.get_action_options(_first_neighbor(game_state))
    assert elsewhere
    assert all(option.reason == "Action unavailable here." for option in elsewhere)
    assert game_state.get_action_options("atlantis") == []


def test_preview_tight_buff_narrows_option_ranges(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    game_state.add_encounter_buff(Buff(id="insider", kind="preview-tight", amount=1.0, remaining=1))

    for option in game_state.get_action_options():
        for entry in option.preview.yields:
            assert entry.min == entry.max


def test_travel_applies_estimate(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    target = _first_neighbor(game_state)
    estimate = game_state.get_travel_estimate("halifax-hub", target)
    target_name = game_state.get_world_graph().get_node(target).name

    result = game_state.travel_to(target)

    state = game_state.state
    assert result is not None
    assert result.to_id == target
    assert result.gas_cost == estimate.gas_cost
    assert result.snack_cost == estimate.snack_cost
    assert 0 <= result.ride_damage <= estimate.ride_max
    assert state.location == target
    assert state.visited == ["halifax-hub", target]
    assert state.time_segment == 1
    assert state.resources["gas"] == max(0, 8 - estimate.gas_cost)
    assert state.resources["snacks"] == max(0, 6 - estimate.snack_cost)
    assert state.resources["ride"] == 7 - result.ride_damage
    assert state.knowledge[target].seen is True
    assert state.log[-1].startswith(f"[Day 1] Drove from Halifax Harbourfront to {target_name}. -{estimate.gas_cost} gas")


def test_travel_estimate_is_pure(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    target = _first_neighbor(game_state)
    before = game_state.get_snapshot()

    first = game_state.get_travel_estimate("halifax-hub", target)
    second = game_state.get_travel_estimate("halifax-hub", target)

    assert first == second
    assert game_state.get_snapshot() == before


def test_travel_rejects_invalid_targets(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    assert game_state.travel_to("halifax-hub") is None
    assert game_state.travel_to("winnipeg") is None
    assert game_state.travel_to("atlantis") is None
    assert game_state.get_travel_estimate("halifax-hub", "atlantis") is None
    assert game_state.state.location == "halifax-hub"

    game_state.mark_game_over("Done.")
    assert game_state.travel_to(_first_neighbor(game_state)) is None
    assert game_state.state.log[-1] == "[Day 1] Done."


def test_resources_stay_within_bounds_while_travelling(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    for _ in range(15):
        game_state.travel_to(_first_neighbor(game_state))
        for key, value in game_state.state.resources.items():
            assert 0 <= value <= game_state.state.max_resources[key]


def test_skip_hazard_buff_protects_one_trip(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    game_state.add_encounter_buff(Buff(id="escort", kind="skip-hazard", remaining=1, tick="manual"))
    target = _first_neighbor(game_state)
    rng_before = game_state.rng.state

    result = game_state.travel_to(target)

    assert result.protected is True
    assert result.ride_damage == 0
    assert game_state.rng.state == rng_before
    assert game_state.get_encounter_buffs() == []
    assert game_state.state.log[-1].endswith(" Dodged the worst of the road.")


def test_travel_ticked_skip_hazard_spends_one_charge_per_trip(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    game_state.add_encounter_buff(Buff(id="shield", kind="skip-hazard", remaining=2, tick="travel"))
    start = game_state.state.location

    first = game_state.travel_to(_first_neighbor(game_state))

    assert first.protected is True
    assert first.expired_buffs == []
    assert [(buff.id, buff.remaining) for buff in game_state.get_encounter_buffs()] == [("shield", 1)]

    second = game_state.travel_to(start)

    assert second.protected is True
    assert second.ride_damage == 0
    assert game_state.get_encounter_buffs() == []


def test_travel_buffs_tick_and_expire(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    game_state.add_encounter_buff(Buff(id="tailwind", kind="travel-gas", amount=-1, remaining=1))
    game_state.add_encounter_buff(Buff(id="picnic", kind="travel-snacks", amount=0, remaining=2))
    target = _first_neighbor(game_state)
    estimate = game_state.get_travel_estimate("halifax-hub", target)

    result = game_state.travel_to(target)

    assert result.gas_cost == estimate.gas_cost
    assert result.expired_buffs == ["tailwind"]
    remaining = game_state.get_encounter_buffs()
    assert [(buff.id, buff.remaining) for buff in remaining] == [("picnic", 1)]


def test_empty_snacks_leave_party_peckish(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    game_state.adjust_resources({"snacks": -100})

    result = game_state.travel_to(_first_neighbor(game_state))

    assert result.hungry is True
    assert "snacks" in result.depleted
    assert all(member.status == "Peckish" for member in game_state.state.party)
    assert game_state.state.log[-1].startswith("[Day 1] Warning: ")
    assert "snacks" in game_state.state.log[-1]


def test_teleport_moves_without_costs(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    assert game_state.teleport_to("atlantis") is False
    assert game_state.teleport_to("winnipeg", day_shift=2) is True

    state = game_state.state
    assert state.location == "winnipeg"
    assert state.resources == state.max_resources
    assert state.day == 3
    assert state.log[-1] == "[Day 3] Ended up at Winnipeg Forks."


def test_adjust_resources_clamps_and_reports(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    applied = game_state.adjust_resources({"gas": 5, "money": -100, "gold": 3})

    assert applied == {"gas": 0, "money": -60}
    assert game_state.state.resources["money"] == 0
    assert "gold" not in game_state.state.resources


def test_time_rolls_over_into_days(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    game_state.advance_time(5)
    assert (game_state.state.day, game_state.state.time_segment) == (2, 1)
    game_state.advance_time(0)
    assert (game_state.state.day, game_state.state.time_segment) == (2, 1)
    game_state.shift_days(-10)
    assert (game_state.state.day, game_state.state.time_segment) == (1, 0)


def test_log_is_capped(tmp_path: Path) -> None:
    game_state = _start(tmp_path, settings=TrailSettings(log_limit=3))

    for index in range(5):
        game_state.append_log(f"entry {index}")

    assert game_state.state.log == ["[Day 1] entry 2", "[Day 1] entry 3", "[Day 1] entry 4"]


def test_snapshot_is_a_deep_copy(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    snapshot = game_state.get_snapshot()
    snapshot.resources["gas"] = 0
    snapshot.party[0].status = "Gone"
    snapshot.log.clear()

    assert game_state.state.resources["gas"] == 8
    assert game_state.state.party[0].status == "Ready"
    assert game_state.state.log == [START_LOG]


def test_run_persists_and_restores(tmp_path: Path) -> None:
    definitions_dir = make_definitions_dir(tmp_path)
    store = MemoryStore()
    original = make_game_state(definitions_dir, store=store)
    original.start_new_run(seed=999, vehicle_id="minivan")
    original.perform_node_action("shop")
    original.travel_to(_first_neighbor(original))

    restored = make_game_state(definitions_dir, store=store)

    assert restored.initialize() is True
    assert restored.get_snapshot() == original.get_snapshot()
    target = _first_neighbor(original)
    assert restored.travel_to(target) == original.travel_to(target)


def test_initialize_without_save(tmp_path: Path) -> None:
    game_state = make_game_state(make_definitions_dir(tmp_path))

    assert game_state.initialize() is False
    assert game_state.has_active_save() is False


@pytest.mark.parametrize("raw", ["{not json", "[]", json.dumps({"seed": "x", "location": "a", "resources": {}})])
def test_initialize_treats_corrupt_save_as_missing(tmp_path: Path, caplog, raw: str) -> None:
    store = MemoryStore()
    game_state = make_game_state(make_definitions_dir(tmp_path), store=store)
    store.set_item(game_state.storage_key, raw)

    with caplog.at_level("WARNING"):
        assert game_state.initialize() is False

    assert game_state.state is None
    assert "Failed to parse save game" in caplog.text


def test_clear_save_removes_record(tmp_path: Path) -> None:
    store = MemoryStore()
    game_state = _start(tmp_path, store=store)
    assert store.get_item(game_state.storage_key) is not None

    game_state.clear_save()

    assert store.get_item(game_state.storage_key) is None
    assert game_state.has_active_save() is False
    assert game_state.get_snapshot() is None
    with pytest.raises(WorldNotReadyError):
        game_state.rng


def test_custom_storage_key(tmp_path: Path) -> None:
    store = MemoryStore()
    _start(tmp_path, store=store, settings=TrailSettings(storage_key="slot-2"))

    payload = json.loads(store.get_item("slot-2"))

    assert payload["seed"] == 999
    assert store.get_item("canadian-trail-save") is None


def test_world_not_ready_without_run(tmp_path: Path) -> None:
    game_state = make_game_state(make_definitions_dir(tmp_path))

    assert game_state.get_world_graph() is None
    assert game_state.get_current_node() is None
    with pytest.raises(WorldNotReadyError):
        game_state.ensure_world_ready()


def test_world_graph_is_handed_out_by_value(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    location = game_state.state.location
    target = _first_neighbor(game_state)
    estimate = game_state.get_travel_estimate(location, target)

    game_state.get_world_graph().nodes[location].connections.clear()
    game_state.get_current_node().connections.clear()

    assert game_state.get_world_graph().get_connections(location)
    assert game_state.get_travel_estimate(location, target) == estimate
    assert game_state.travel_to(target) is not None


def test_game_over_freezes_the_run(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    target = _first_neighbor(game_state)
    game_state.mark_game_over("Out of road.")
    before = game_state.get_snapshot()

    assert game_state.adjust_resources({"gas": -3}) == {}
    assert game_state.teleport_to("winnipeg") is False
    assert game_state.reveal_neighbors(target) == []
    assert game_state.travel_to(target) is None
    game_state.advance_time(3)
    game_state.shift_days(2)
    game_state.set_encounter_flag("met-moose")
    game_state.record_encounter_trigger("moose")
    game_state.add_encounter_buff(Buff(id="storm", kind="hazard", amount=0.1))
    assert game_state.remove_encounter_buff("storm") is False

    after = game_state.get_snapshot()
    assert after == before
    assert after.log[-1] == "[Day 1] Out of road."


def test_legacy_save_travels_on_static_map(tmp_path: Path) -> None:
    store = MemoryStore()
    game_state = make_game_state(make_definitions_dir(tmp_path), store=store)
    legacy = {
        "seed": 42,
        "location": "halifax-hub",
        "resources": {"gas": 3, "snacks": 2, "ride": 5, "money": 10},
    }
    store.set_item(game_state.storage_key, json.dumps(legacy))

    assert game_state.initialize() is True
    assert game_state.get_world_graph().world_type == "legacy"
    assert game_state.get_current_node().name == "Halifax Harbourfront"
    result = game_state.travel_to("cabot-gas")

    assert result is not None
    assert result.gas_cost == 2
    assert result.snack_cost == 1
    assert result.ride_damage == 0
    assert game_state.state.resources == {"gas": 1, "snacks": 1, "ride": 5, "money": 10}
    assert game_state.state.log[-1] == "[Day 1] Drove from Halifax Harbourfront to Cabot Fuel Stop. -2 gas, -1 snacks."
    assert json.loads(store.get_item(game_state.storage_key))["world"]["type"] == "legacy"


def test_reveal_neighbors_with_hazard_hints(tmp_path: Path) -> None:
    game_state = _start(tmp_path)
    target = _first_neighbor(game_state)

    revealed = game_state.reveal_neighbors(target, hazard_hints=True)

    graph = game_state.get_world_graph()
    assert revealed == [neighbor.id for neighbor, _ in graph.get_connections(target)]
    for neighbor, connection in graph.get_connections(target):
        assert game_state.state.knowledge[neighbor.id].seen is True
        assert game_state.state.knowledge[target].exits[neighbor.id].hazard == connection.hazard


def test_encounter_flags_cooldowns_and_buffs(tmp_path: Path) -> None:
    game_state = _start(tmp_path)

    game_state.set_encounter_flag("met-moose")
    assert game_state.has_encounter_flag("met-moose") is True
    game_state.clear_encounter_flag("met-moose")
    assert game_state.has_encounter_flag("met-moose") is False

    assert game_state.get_encounter_cooldown("moose") is None
    game_state.record_encounter_trigger("moose")
    record = game_state.get_encounter_cooldown("moose")
    record.day = 50
    assert game_state.get_encounter_cooldown("moose").day == 1

    game_state.add_encounter_buff(Buff(id="storm", kind="hazard", amount=0.1, remaining=2))
    game_state.add_encounter_buff(Buff(id="storm", kind="hazard", amount=0.3, remaining=1))
    buffs = game_state.get_encounter_buffs()
    assert [(buff.id, buff.amount) for buff in buffs] == [("storm", 0.3)]
    buffs[0].amount = 9
    assert game_state.get_encounter_buffs()[0].amount == 0.3
    assert game_state.remove_encounter_buff("storm") is True
    assert game_state.remove_encounter_buff("storm") is False
