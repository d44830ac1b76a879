"""
graph.py - Undirected weighted graph used by every algorithm in netlab.

Exports:
    - Connection : one stored edge (source, target, weight)
    - Graph      : ordered node set + connection list + adjacency map

The adjacency map ``node -> {neighbor -> weight}`` is always symmetric and
gives O(1) neighbour and weight lookups. The connection list keeps edges in
insertion order.

Known asymmetry: calling ``add_edge`` twice for the same pair appends a
second Connection while the adjacency weight is simply overwritten, so
``number_of_edges()`` counts both. ``update_edge_weight`` changes a weight
in place without duplicating anything.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Union

from netlab_dispatch.core.errors import NotFoundError

NodeId = Union[str, int, float]


@dataclass(eq=False)
class Connection:
    source: NodeId
    target: NodeId
    weight: float = 1

    @property
    def endpoints(self) -> FrozenSet[NodeId]:
        return frozenset((self.source, self.target))

    def connects(self, u: NodeId, v: NodeId) -> bool:
        return (self.source == u and self.target == v) or (
            self.source == v and self.target == u
        )

    def has_node(self, node: NodeId) -> bool:
        return node == self.source or node == self.target

    def other(self, node: NodeId) -> NodeId:
        if node == self.source:
            return self.target
        if node == self.target:
            return self.source
        raise NotFoundError(f"Node {node!r} is not an endpoint of {self!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "target": self.target, "weight": self.weight}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Connection):
            return NotImplemented
        return self.connects(other.source, other.target) and self.weight == other.weight

    __hash__ = None  # type: ignore[assignment]


class Graph:
    def __init__(self) -> None:
        self._nodes: Dict[NodeId, None] = {}
        self.edges: List[Connection] = []
        self.adjacency: Dict[NodeId, Dict[NodeId, float]] = {}

    # ------------------------------------------------------------------ #
    # Nodes
    # ------------------------------------------------------------------ #

    @property
    def nodes(self) -> List[NodeId]:
        return list(self._nodes)

    def add_node(self, node: NodeId) -> None:
        if node not in self._nodes:
            self._nodes[node] = None
            self.adjacency[node] = {}

    def add_nodes_from(self, nodes: Iterable[NodeId]) -> None:
        for node in nodes:
            self.add_node(node)

    def has_node(self, node: NodeId) -> bool:
        return node in self._nodes

    def remove_node(self, node: NodeId) -> None:
        if node not in self._nodes:
            raise NotFoundError(f"Node {node!r} does not exist in the graph")
        for neighbor in list(self.adjacency[node]):
            self.adjacency[neighbor].pop(node, None)
        del self.adjacency[node]
        del self._nodes[node]
        self.edges = [e for e in self.edges if not e.has_node(node)]

    # ------------------------------------------------------------------ #
    # Edges
    # ------------------------------------------------------------------ #

    def add_edge(self, u: NodeId, v: NodeId, weight: float = 1) -> None:
        self.add_node(u)
        self.add_node(v)
        self.edges.append(Connection(u, v, weight))
        self.adjacency[u][v] = weight
        self.adjacency[v][u] = weight

    def add_edges_from(self, edges: Iterable[Any]) -> None:
        """Accepts ``(u, v)`` and ``(u, v, weight)`` tuples."""
        for edge in edges:
            if len(edge) == 2:
                self.add_edge(edge[0], edge[1])
            else:
                self.add_edge(edge[0], edge[1], edge[2])

    def has_edge(self, u: NodeId, v: NodeId) -> bool:
        return u in self.adjacency and v in self.adjacency[u]

    def get_edge_weight(self, u: NodeId, v: NodeId) -> Optional[float]:
        return self.adjacency.get(u, {}).get(v)

    def update_edge_weight(self, u: NodeId, v: NodeId, weight: float) -> None:
        if not self.has_edge(u, v):
            raise NotFoundError(f"Edge {u!r}-{v!r} does not exist in the graph")
        for edge in self.edges:
            if edge.connects(u, v):
                edge.weight = weight
        self.adjacency[u][v] = weight
        self.adjacency[v][u] = weight

    def remove_edge(self, u: NodeId, v: NodeId) -> None:
        """Remove the u-v edge, including any duplicate connections."""
        if not self.has_edge(u, v):
            raise NotFoundError(f"Edge {u!r}-{v!r} does not exist in the graph")
        self.edges = [e for e in self.edges if not e.connects(u, v)]
        self.adjacency[u].pop(v, None)
        self.adjacency[v].pop(u, None)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_neighbors(self, node: NodeId) -> List[NodeId]:
        return list(self.adjacency.get(node, ()))

    def degree(self, node: NodeId) -> int:
        # Unknown nodes report 0 instead of raising, unlike remove_node.
        return len(self.adjacency.get(node, ()))

    def weighted_degree(self, node: NodeId) -> float:
        return float(sum(self.adjacency.get(node, {}).values()))

    def get_node_list(self) -> List[NodeId]:
        return list(self._nodes)

    def get_all_edges(self) -> List[Connection]:
        return list(self.edges)

    def number_of_nodes(self) -> int:
        return len(self._nodes)

    def number_of_edges(self) -> int:
        return len(self.edges)

    def unique_edges(self) -> Iterator[tuple]:
        """Yield each adjacent pair once as ``(u, v, weight)``, self loops included."""
        order = {node: i for i, node in enumerate(self._nodes)}
        for u, nbrs in self.adjacency.items():
            for v, w in nbrs.items():
                if order[u] <= order[v]:
                    yield u, v, w

    # ------------------------------------------------------------------ #
    # Misc
    # ------------------------------------------------------------------ #

    def clear(self) -> None:
        self._nodes.clear()
        self.edges.clear()
        self.adjacency.clear()

    def copy(self) -> "Graph":
        return copy.deepcopy(self)

    def to_data(self) -> Dict[str, Any]:
        from .compute_utils import serialize_graph
        return serialize_graph(self)

    @classmethod
    def from_data(cls, data: Any) -> "Graph":
        from .compute_utils import reconstruct_graph
        return reconstruct_graph(data)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def __iter__(self) -> Iterator[NodeId]:
        return iter(self._nodes)

    def __repr__(self) -> str:
        return f"Graph(nodes={self.number_of_nodes()}, edges={self.number_of_edges()})"
