"""World graph model shared by the generator, travel and events."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

ROUGH_THRESHOLD = 1.15


@dataclass(slots=True)
class YieldRange:
    min: int
    max: int


@dataclass(slots=True)
class NodeServices:
    mechanic: bool = False
    shop: bool = False
    ferry: bool = False
    shop_cost: float | None = None
    ferry_cost: float | None = None


@dataclass(slots=True)
class NodeProfile:
    """Numeric traits that drive yields and travel risk at a node."""

    abundance: float = 0.5
    prosperity: float = 0.5
    maintenance: float = 0.5
    hazard: float = 0.2
    roughness: float = 1.0
    yields: Dict[str, YieldRange] = field(default_factory=dict)
    services: NodeServices = field(default_factory=NodeServices)


@dataclass(slots=True)
class Connection:
    """One direction of an undirected road; its mirror carries identical values."""

    to_id: str
    distance: float
    roughness: float
    rough: bool
    hazard: float
    label: str | None = None


@dataclass(slots=True)
class WorldNode:
    id: str
    kind: str
    name: str
    short_name: str
    x: float
    y: float
    region: str
    actions: Tuple[str, ...] = ()
    profile: NodeProfile = field(default_factory=NodeProfile)
    connections: List[Connection] = field(default_factory=list)

    def connection_to(self, node_id: str) -> Connection | None:
        for connection in self.connections:
            if connection.to_id == node_id:
                return connection
        return None


@dataclass(frozen=True, slots=True)
class Edge:
    from_id: str
    to_id: str


@dataclass(slots=True)
class WorldGraph:
    version: int
    seed: int
    start: str
    nodes: Dict[str, WorldNode]
    edges: Tuple[Edge, ...]
    checkpoints: Tuple[str, ...]
    world_type: str = "procedural"

    def get_node(self, node_id: str) -> WorldNode | None:
        return self.nodes.get(node_id)

    def get_connections(self, node_id: str) -> List[Tuple[WorldNode, Connection]]:
        """Return (neighbor, connection) pairs whose neighbor exists in the graph."""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        pairs: List[Tuple[WorldNode, Connection]] = []
        for connection in node.connections:
            neighbor = self.nodes.get(connection.to_id)
            if neighbor is not None:
                pairs.append((neighbor, connection))
        return pairs


def add_connection(node: WorldNode, target: WorldNode, connection: Connection) -> None:
    """Append a connection unless the node already links to the target."""
    if node.connection_to(target.id) is not None:
        return
    node.connections.append(connection)


def build_edges(nodes: Dict[str, WorldNode]) -> Tuple[Edge, ...]:
    """Flatten every directed connection record; duplicates are left to renderers."""
    return tuple(
        Edge(from_id=node.id, to_id=connection.to_id)
        for node in nodes.values()
        for connection in node.connections
    )


def create_short_name(name: str) -> str:
    if not name:
        return ""
    if len(name) <= 16:
        return name
    parts = name.split(" ")
    if len(parts) == 1:
        return parts[0][:14]
    candidate = f"{parts[0]} {parts[1]}"
    if len(candidate) <= 16:
        return candidate
    return f"{parts[0]} {parts[-1][:6]}".strip()
