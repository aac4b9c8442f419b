"""Procedural world graph generation."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

from trail.core.numbers import clamp, lerp, round_half_up, to_fixed
from trail.core.rng import RNG, create_derived_rng, derive_seed
from trail.data.repositories import LegacyGraphRepository, WorldConfigRepository
from trail.domain.defs import CheckpointDef, LegacyGraphDef, WorldConfigDef
from trail.domain.world import (
    ROUGH_THRESHOLD,
    Connection,
    NodeProfile,
    NodeServices,
    WorldGraph,
    WorldNode,
    YieldRange,
    add_connection,
    build_edges,
    create_short_name,
)

logger = logging.getLogger(__name__)

DISTANCE_DIVISOR = 12
MIN_DISTANCE = 0.6
LEGACY_WORLD_VERSION = 1


@dataclass(frozen=True, slots=True)
class KindTemplate:
    """Ranges a node kind draws its profile from."""

    actions: Tuple[str, ...]
    base_yields: Mapping[str, Tuple[int, int]]
    abundance: Tuple[float, float]
    prosperity: Tuple[float, float]
    maintenance: Tuple[float, float]
    hazard: Tuple[float, float]
    roughness: Tuple[float, float]
    mechanic: bool = False
    shop: bool = False
    ferry: bool = False
    shop_cost: Tuple[float, float] = (3, 6)
    ferry_cost: Tuple[float, float] = (3, 6)


KIND_LIBRARY: Dict[str, KindTemplate] = {
    "checkpoint": KindTemplate(
        actions=("shop", "tinker"),
        base_yields={"gas": (2, 5), "snacks": (2, 6), "ride": (2, 4), "money": (2, 5)},
        abundance=(0.5, 0.75),
        prosperity=(0.55, 0.8),
        maintenance=(0.6, 0.9),
        hazard=(0.08, 0.18),
        roughness=(0.9, 1.05),
        mechanic=True,
        shop=True,
        shop_cost=(3, 5),
    ),
    "gas": KindTemplate(
        actions=("siphon", "scavenge"),
        base_yields={"gas": (2, 6), "snacks": (0, 2), "ride": (0, 2), "money": (1, 4)},
        abundance=(0.45, 0.85),
        prosperity=(0.2, 0.5),
        maintenance=(0.25, 0.45),
        hazard=(0.15, 0.32),
        roughness=(0.95, 1.15),
    ),
    "forest": KindTemplate(
        actions=("forage", "scavenge"),
        base_yields={"gas": (0, 2), "snacks": (2, 6), "ride": (1, 3), "money": (0, 2)},
        abundance=(0.5, 0.9),
        prosperity=(0.1, 0.4),
        maintenance=(0.35, 0.55),
        hazard=(0.18, 0.42),
        roughness=(1.05, 1.3),
    ),
    "mechanic": KindTemplate(
        actions=("tinker", "scavenge"),
        base_yields={"gas": (0, 3), "snacks": (0, 3), "ride": (2, 6), "money": (1, 3)},
        abundance=(0.3, 0.55),
        prosperity=(0.35, 0.6),
        maintenance=(0.65, 0.95),
        hazard=(0.12, 0.28),
        roughness=(0.95, 1.2),
        mechanic=True,
        shop_cost=(3, 5),
    ),
    "town": KindTemplate(
        actions=("shop", "tinker"),
        base_yields={"gas": (1, 5), "snacks": (2, 6), "ride": (1, 3), "money": (2, 6)},
        abundance=(0.45, 0.7),
        prosperity=(0.4, 0.8),
        maintenance=(0.45, 0.7),
        hazard=(0.08, 0.22),
        roughness=(0.9, 1.1),
        mechanic=True,
        shop=True,
        shop_cost=(3, 6),
    ),
    "ferry": KindTemplate(
        actions=("ferry", "shop"),
        base_yields={"gas": (0, 2), "snacks": (1, 4), "ride": (2, 5), "money": (1, 3)},
        abundance=(0.35, 0.6),
        prosperity=(0.45, 0.75),
        maintenance=(0.55, 0.8),
        hazard=(0.05, 0.18),
        roughness=(0.85, 1.05),
        shop=True,
        ferry=True,
        ferry_cost=(3, 6),
        shop_cost=(3, 5),
    ),
    "ghost": KindTemplate(
        actions=("scavenge", "siphon"),
        base_yields={"gas": (1, 5), "snacks": (0, 2), "ride": (0, 2), "money": (1, 4)},
        abundance=(0.25, 0.55),
        prosperity=(0.1, 0.35),
        maintenance=(0.2, 0.45),
        hazard=(0.35, 0.75),
        roughness=(1.1, 1.45),
    ),
    "vista": KindTemplate(
        actions=("forage", "scavenge"),
        base_yields={"gas": (0, 2), "snacks": (1, 4), "ride": (1, 4), "money": (0, 3)},
        abundance=(0.35, 0.65),
        prosperity=(0.25, 0.55),
        maintenance=(0.45, 0.75),
        hazard=(0.1, 0.32),
        roughness=(0.9, 1.2),
    ),
}

NAME_PARTS: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "gas": (
        ("Prairie", "Twin Pines", "Maple Leaf", "Aurora", "Polar", "Sundog", "Blueberry", "Totem"),
        ("Fuel Stop", "Gas Co-op", "Service", "Pump Row", "Fuel Depot", "Roadhouse"),
    ),
    "forest": (
        ("Whispering", "Moosejaw", "Snowberry", "Birch Ridge", "Skyline", "Trout Lake", "Cedar Grove", "Windrift"),
        ("Backcountry", "Provincial Park", "Trailhead", "Woodlot", "Bog", "Reserve"),
    ),
    "mechanic": (
        ("Rusty", "Frontier", "High Gear", "Prairie", "Snowcap", "True North", "Frostbite"),
        ("Garage", "Repair Yard", "Workshop", "Tune-Up", "Motor Shed", "Pit Stop"),
    ),
    "town": (
        ("Friendly", "Summit", "Maple Ridge", "Twin Lakes", "Aurora", "Canyon", "Prairie Light"),
        ("Trading Post", "Township", "Market", "Crossing", "Village", "Harbour"),
    ),
    "ferry": (
        ("Silver", "Lakeline", "Twin Current", "North Star", "Baylight", "Cedar", "Salish"),
        ("Ferry", "Crossing", "Passage", "Pontoon", "Causeway", "Jetty"),
    ),
    "ghost": (
        ("Abandoned", "Fog Hollow", "Stormcell", "Rusted", "Coyote", "Shadow", "Grim Cedar"),
        ("Service Road", "Ghost Town", "Rest Stop", "Storm Cell", "Empty Lot", "Drift"),
    ),
    "vista": (
        ("Sunset", "Aurora", "Eagle Eye", "Skyline", "Prairie Light", "Glacial", "Rainshadow"),
        ("Vista", "Lookout", "Rest", "Scenic Pullout", "Overlook", "Summit"),
    ),
}

# Repeats weight the draw toward forest/gas/town on the main road.
SEGMENT_KIND_POOL: Tuple[str, ...] = (
    "forest",
    "gas",
    "town",
    "mechanic",
    "forest",
    "vista",
    "ghost",
    "gas",
    "ferry",
    "forest",
    "town",
)
BRANCH_KIND_POOL: Tuple[str, ...] = ("ghost", "vista", "gas", "forest", "ghost", "ferry")


def scale_range(base: Tuple[int, int], factor: float) -> YieldRange:
    """Shift a base yield range upward as ``factor`` grows from 0 to 1."""
    min_base, max_base = base
    minimum = max(0, round_half_up(lerp(min_base, (min_base + max_base) / 2, factor * 0.6)))
    span = max(0, max_base - min_base)
    projected_max = min_base + span * (0.4 + factor * 0.6)
    return YieldRange(min=minimum, max=max(minimum, round_half_up(projected_max)))


def build_profile(kind: str, rng: RNG) -> NodeProfile:
    """Draw a profile for ``kind``; unknown kinds use the forest template."""
    template = KIND_LIBRARY.get(kind, KIND_LIBRARY["forest"])
    abundance = rng.next_range(*template.abundance)
    prosperity = rng.next_range(*template.prosperity)
    maintenance = rng.next_range(*template.maintenance)
    hazard = rng.next_range(*template.hazard)
    roughness = rng.next_range(*template.roughness)
    services = NodeServices(mechanic=template.mechanic, shop=template.shop, ferry=template.ferry)
    if services.shop:
        services.shop_cost = lerp(template.shop_cost[0], template.shop_cost[1], prosperity)
    if services.ferry:
        services.ferry_cost = lerp(template.ferry_cost[0], template.ferry_cost[1], prosperity)
    return NodeProfile(
        abundance=abundance,
        prosperity=prosperity,
        maintenance=maintenance,
        hazard=hazard,
        roughness=roughness,
        yields={
            "gas": scale_range(template.base_yields["gas"], abundance),
            "snacks": scale_range(template.base_yields["snacks"], abundance),
            "ride": scale_range(template.base_yields["ride"], maintenance),
            "money": scale_range(template.base_yields["money"], prosperity),
        },
        services=services,
    )


def build_name(kind: str, rng: RNG) -> str:
    parts = NAME_PARTS.get(kind)
    if parts is None:
        return f"{kind} waypoint"
    prefixes, suffixes = parts
    prefix = prefixes[rng.next_int(0, len(prefixes) - 1)]
    suffix = suffixes[rng.next_int(0, len(suffixes) - 1)]
    return f"{prefix} {suffix}"


def merge_services(services: NodeServices, overrides: Mapping[str, object]) -> NodeServices:
    """Overlay authored checkpoint services on generated ones."""
    merged = NodeServices(
        mechanic=services.mechanic,
        shop=services.shop,
        ferry=services.ferry,
        shop_cost=services.shop_cost,
        ferry_cost=services.ferry_cost,
    )
    for key in ("mechanic", "shop", "ferry"):
        if key in overrides:
            setattr(merged, key, bool(overrides[key]))
    for key, attr in (("shopCost", "shop_cost"), ("ferryCost", "ferry_cost")):
        value = overrides.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            setattr(merged, attr, float(value))
    return merged


def _create_node(node_id: str, kind: str, x: float, y: float, region: str, rng: RNG) -> WorldNode:
    template = KIND_LIBRARY.get(kind, KIND_LIBRARY["forest"])
    profile = build_profile(kind, rng)
    name = build_name(kind, rng)
    return WorldNode(
        id=node_id,
        kind=kind,
        name=name,
        short_name=create_short_name(name),
        x=to_fixed(x, 2),
        y=to_fixed(y, 2),
        region=region,
        actions=tuple(dict.fromkeys(template.actions)),
        profile=profile,
    )


def _create_checkpoint(checkpoint: CheckpointDef, index: int, base_seed: int) -> WorldNode:
    profile_rng = create_derived_rng(base_seed, "checkpoint", checkpoint.id, index)
    profile = build_profile("checkpoint", profile_rng)
    profile.services = merge_services(profile.services, checkpoint.services)
    actions = checkpoint.actions if checkpoint.actions is not None else KIND_LIBRARY["checkpoint"].actions
    return WorldNode(
        id=checkpoint.id,
        kind="checkpoint",
        name=checkpoint.name,
        short_name=checkpoint.short_name or create_short_name(checkpoint.name),
        x=to_fixed(checkpoint.x, 2),
        y=to_fixed(checkpoint.y, 2),
        region=checkpoint.region or "Canada",
        actions=tuple(dict.fromkeys(actions)),
        profile=profile,
    )


def compute_distance(node_a: WorldNode, node_b: WorldNode) -> float:
    scaled = math.hypot(node_b.x - node_a.x, node_b.y - node_a.y) / DISTANCE_DIVISOR
    return max(MIN_DISTANCE, scaled)


def connect_bidirectional(node_a: WorldNode, node_b: WorldNode) -> None:
    """Link two nodes with mirrored connections built from their averaged profiles."""
    distance = to_fixed(compute_distance(node_a, node_b), 2)
    roughness = to_fixed((node_a.profile.roughness + node_b.profile.roughness) / 2, 3)
    hazard = to_fixed((node_a.profile.hazard + node_b.profile.hazard) / 2, 3)
    rough = roughness > ROUGH_THRESHOLD
    add_connection(node_a, node_b, Connection(node_b.id, distance, roughness, rough, hazard))
    add_connection(node_b, node_a, Connection(node_a.id, distance, roughness, rough, hazard))


def generate_world_graph(config: WorldConfigDef, base_seed: int) -> WorldGraph:
    """Build the full road network for ``base_seed`` from the checkpoint skeleton."""
    if not config.checkpoints:
        raise ValueError("World configuration missing checkpoints.")
    world_version = config.world_version or 1
    rng = RNG(derive_seed(base_seed, "world", world_version))
    nodes: Dict[str, WorldNode] = {}
    checkpoints = list(config.checkpoints)

    for index, checkpoint in enumerate(checkpoints):
        node = _create_checkpoint(checkpoint, index, base_seed)
        nodes[node.id] = node

    for segment_index in range(len(checkpoints) - 1):
        start_node = nodes[checkpoints[segment_index].id]
        end_node = nodes[checkpoints[segment_index + 1].id]
        _generate_segment(nodes, start_node, end_node, segment_index, base_seed, rng)

    graph = WorldGraph(
        version=world_version,
        seed=base_seed,
        start=checkpoints[0].id,
        nodes=nodes,
        edges=build_edges(nodes),
        checkpoints=tuple(checkpoint.id for checkpoint in checkpoints),
    )
    logger.debug(
        "Generated world v%s for seed %s: %d nodes, %d edges",
        world_version,
        base_seed,
        len(graph.nodes),
        len(graph.edges),
    )
    return graph


def _generate_segment(
    nodes: Dict[str, WorldNode],
    start_node: WorldNode,
    end_node: WorldNode,
    segment_index: int,
    base_seed: int,
    rng: RNG,
) -> None:
    main_count = rng.next_int(2, 5)
    dir_x = end_node.x - start_node.x
    dir_y = end_node.y - start_node.y
    length = math.hypot(dir_x, dir_y) or 1
    norm_x, norm_y = dir_x / length, dir_y / length
    perp_x, perp_y = -norm_y, norm_x
    min_x = min(start_node.x, end_node.x)
    max_x = max(start_node.x, end_node.x)

    main_nodes: List[WorldNode] = []
    for index in range(1, main_count + 1):
        t = index / (main_count + 1)
        base_x = lerp(start_node.x, end_node.x, t)
        base_y = lerp(start_node.y, end_node.y, t)
        lateral_offset = (rng.next_float() - 0.5) * (length * 0.35 + 3)
        forward_offset = (rng.next_float() - 0.5) * 3
        x = clamp(base_x + perp_x * lateral_offset + norm_x * forward_offset, min_x - 4, max_x + 4)
        y = clamp(base_y + perp_y * lateral_offset + norm_y * forward_offset, 8, 92)
        kind = SEGMENT_KIND_POOL[rng.next_int(0, len(SEGMENT_KIND_POOL) - 1)]
        region = start_node.region if t < 0.5 else end_node.region
        node_id = f"{start_node.id}-{end_node.id}-mid-{segment_index}-{index}"
        node = _create_node(node_id, kind, x, y, region, create_derived_rng(base_seed, "node", node_id))
        nodes[node.id] = node
        main_nodes.append(node)

    path = [start_node, *main_nodes, end_node]
    for index in range(len(path) - 1):
        connect_bidirectional(path[index], path[index + 1])

    if len(path) <= 2:
        return
    max_branches = min(2, len(path) - 1)
    branch_count = rng.next_int(1, max(1, max_branches))
    for branch_index in range(branch_count):
        base_index = rng.next_int(1, len(path) - 2)
        reconnect_index = min(len(path) - 1, base_index + rng.next_int(1, 2))
        if reconnect_index == base_index:
            continue
        anchor = path[base_index]
        reconnect = path[reconnect_index]
        branch_length = rng.next_int(1, 2)
        previous = anchor
        for step in range(1, branch_length + 1):
            t = step / (branch_length + 1)
            mid_x = lerp(anchor.x, reconnect.x, t)
            mid_y = lerp(anchor.y, reconnect.y, t)
            direction = -1 if rng.next_float() < 0.5 else 1
            magnitude = (rng.next_float() * 0.6 + 0.4) * length * 0.6
            x = clamp(mid_x + perp_x * magnitude * direction, min_x - 6, max_x + 6)
            y = clamp(mid_y + perp_y * magnitude * direction, 6, 94)
            kind = BRANCH_KIND_POOL[rng.next_int(0, len(BRANCH_KIND_POOL) - 1)]
            node_id = f"{anchor.id}-spur-{segment_index}-{branch_index}-{step}"
            node = _create_node(node_id, kind, x, y, anchor.region, create_derived_rng(base_seed, "node", node_id))
            nodes[node.id] = node
            connect_bidirectional(previous, node)
            previous = node
        connect_bidirectional(previous, reconnect)


def build_legacy_graph(graph_def: LegacyGraphDef, seed: int) -> WorldGraph:
    """Convert the static road map, mirroring one-way connections."""
    nodes: Dict[str, WorldNode] = {}
    for node_def in graph_def.nodes:
        template = KIND_LIBRARY.get(node_def.kind)
        actions = node_def.actions or (template.actions if template else ())
        nodes[node_def.id] = WorldNode(
            id=node_def.id,
            kind=node_def.kind,
            name=node_def.name,
            short_name=create_short_name(node_def.name),
            x=node_def.x,
            y=node_def.y,
            region=node_def.region,
            actions=tuple(dict.fromkeys(actions)),
            profile=NodeProfile(),
        )
    for node_def in graph_def.nodes:
        source = nodes[node_def.id]
        for conn_def in node_def.connections:
            target = nodes[conn_def.to_id]
            roughness = conn_def.roughness
            if roughness is None:
                roughness = 1.25 if conn_def.rough else 1.0
            hazard = conn_def.hazard
            if hazard is None:
                hazard = 0.35 if conn_def.rough else 0.15
            rough = conn_def.rough or roughness > ROUGH_THRESHOLD
            add_connection(
                source,
                target,
                Connection(target.id, conn_def.distance, roughness, rough, hazard, conn_def.label),
            )
            add_connection(
                target,
                source,
                Connection(source.id, conn_def.distance, roughness, rough, hazard, conn_def.label),
            )
    return WorldGraph(
        version=LEGACY_WORLD_VERSION,
        seed=seed,
        start=graph_def.start,
        nodes=nodes,
        edges=build_edges(nodes),
        checkpoints=(graph_def.start,),
        world_type="legacy",
    )


@dataclass(slots=True)
class WorldGraphCache:
    """Graphs keyed by (world type, seed, version); owned by one generator."""

    _graphs: Dict[Tuple[str, int, int], WorldGraph] = field(default_factory=dict)

    def get(self, world_type: str, seed: int, version: int) -> WorldGraph | None:
        return self._graphs.get((world_type, seed, version))

    def store(self, graph: WorldGraph) -> None:
        self._graphs[(graph.world_type, graph.seed, graph.version)] = graph

    def invalidate(self) -> None:
        self._graphs.clear()

    def __len__(self) -> int:
        return len(self._graphs)


class WorldGenerator:
    """Resolves world graphs for runs, building each one at most once."""

    def __init__(
        self,
        world_repo: WorldConfigRepository,
        legacy_repo: LegacyGraphRepository | None = None,
        *,
        cache: WorldGraphCache | None = None,
    ) -> None:
        self._world_repo = world_repo
        self._legacy_repo = legacy_repo
        self._cache = cache if cache is not None else WorldGraphCache()

    @property
    def cache(self) -> WorldGraphCache:
        return self._cache

    @property
    def world_version(self) -> int:
        return self._world_repo.get_config().world_version

    def generate(self, base_seed: int) -> WorldGraph:
        """Return the procedural graph for the current world version."""
        config = self._world_repo.get_config()
        cached = self._cache.get("procedural", base_seed, config.world_version)
        if cached is not None:
            return cached
        graph = generate_world_graph(config, base_seed)
        self._cache.store(graph)
        return graph

    def legacy(self, seed: int) -> WorldGraph:
        """Return the static map; requires a legacy repository."""
        if self._legacy_repo is None:
            raise ValueError("No legacy graph repository configured.")
        cached = self._cache.get("legacy", seed, LEGACY_WORLD_VERSION)
        if cached is not None:
            return cached
        graph = build_legacy_graph(self._legacy_repo.get_graph(), seed)
        self._cache.store(graph)
        return graph

    def invalidate(self) -> None:
        """Drop cached graphs and reload definitions on next use."""
        self._cache.invalidate()
        self._world_repo.reset()
        if self._legacy_repo is not None:
            self._legacy_repo.reset()
