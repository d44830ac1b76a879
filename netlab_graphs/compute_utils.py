"""
compute_utils.py - Wire format and shared primitives for compute functions.

Compute functions run inside worker processes and only ever receive plain
``GraphData``::

    {"nodes": [id, ...], "edges": [{"source": a, "target": b, "weight": w}, ...]}

This module converts between that form and ``Graph`` and holds the helpers
the statistic and layout modules share:

    - serialize_graph / reconstruct_graph / validate_graph_data
    - BFS distances, layers, components, all-pairs distances
    - triangle counting, clustering coefficient, edges within a node set
    - vector helpers (L2 normalisation, L1 difference)
    - ProgressReporter for clamped, monotonic progress at ~1% steps
"""

from __future__ import annotations

import logging
import math
from collections import deque
from numbers import Number
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from netlab_dispatch.core.errors import InputError

from .graph import Graph, NodeId

logger = logging.getLogger(__name__)

ProgressCallback = Optional[Callable[[float], None]]

_ENDPOINT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("source", "target"),
    ("u", "v"),
    ("from", "to"),
)


# --------------------------------------------------------------------------- #
# Wire format
# --------------------------------------------------------------------------- #

def serialize_graph(graph: Graph) -> Dict[str, Any]:
    return {
        "nodes": graph.get_node_list(),
        "edges": [
            {"source": e.source, "target": e.target, "weight": e.weight}
            for e in graph.edges
        ],
    }


def _node_id(entry: Any) -> Any:
    if isinstance(entry, dict):
        return entry.get("id")
    return entry


def _edge_endpoints(edge: Any) -> Optional[Tuple[Any, Any]]:
    if isinstance(edge, dict):
        for a, b in _ENDPOINT_FIELDS:
            if edge.get(a) is not None and edge.get(b) is not None:
                return edge[a], edge[b]
        return None
    if isinstance(edge, (list, tuple)) and len(edge) >= 2:
        return edge[0], edge[1]
    return None


def _edge_weight(edge: Any) -> Any:
    if isinstance(edge, dict):
        w = edge.get("weight")
    elif isinstance(edge, (list, tuple)) and len(edge) >= 3:
        w = edge[2]
    else:
        w = None
    return 1 if w is None else w


def _collection(data: Any, name: str) -> list:
    if not isinstance(data, dict):
        return []
    value = data.get(name)
    return list(value) if isinstance(value, (list, tuple)) else []


def reconstruct_graph(data: Any) -> Graph:
    """
    Rebuild a Graph from GraphData, leniently.

    Missing or malformed collections count as empty, a missing weight is 1,
    endpoints may be named source/target, u/v or from/to, and edge
    endpoints that are not listed as nodes are added. Edges without both
    endpoints are skipped with a warning.
    """
    graph = Graph()
    for entry in _collection(data, "nodes"):
        node = _node_id(entry)
        if node is None:
            logger.warning("skipping node entry without an id: %r", entry)
            continue
        graph.add_node(node)

    for edge in _collection(data, "edges"):
        endpoints = _edge_endpoints(edge)
        if endpoints is None:
            logger.warning("skipping edge without both endpoints: %r", edge)
            continue
        graph.add_edge(endpoints[0], endpoints[1], _edge_weight(edge))
    return graph


def validate_graph_data(data: Any) -> None:
    """Strict counterpart of reconstruct_graph, used before submission."""
    if not isinstance(data, dict):
        raise InputError("Graph data must be a mapping with 'nodes' and 'edges'")
    for name in ("nodes", "edges"):
        if name not in data:
            raise InputError(f"Graph data is missing the '{name}' collection")
        if not isinstance(data[name], (list, tuple)):
            raise InputError(f"Graph data '{name}' must be a list")

    known = set()
    for entry in data["nodes"]:
        node = _node_id(entry)
        if node is None:
            raise InputError(f"Node entry without an id: {entry!r}")
        known.add(node)

    for i, edge in enumerate(data["edges"]):
        endpoints = _edge_endpoints(edge)
        if endpoints is None:
            raise InputError(f"Edge {i} lacks a source/target pair: {edge!r}")
        for end in endpoints:
            if end not in known:
                raise InputError(f"Edge {i} references unknown node {end!r}")
        weight = _edge_weight(edge)
        if isinstance(weight, bool) or not isinstance(weight, Number) or not math.isfinite(weight):
            raise InputError(f"Edge {i} has a non-numeric weight {weight!r}")


def node_sort_key(node: Any) -> Tuple[int, Any]:
    """Total order over mixed str/number ids: numbers first, then strings."""
    if isinstance(node, Number) and not isinstance(node, bool):
        return (0, node)
    return (1, str(node))


def sorted_nodes(nodes: Iterable[Any]) -> List[Any]:
    return sorted(nodes, key=node_sort_key)


def resolve_node_subset(graph: Graph, node_ids: Optional[Sequence[Any]]) -> List[Any]:
    if node_ids is None:
        return graph.get_node_list()
    return list(node_ids)


# --------------------------------------------------------------------------- #
# Progress
# --------------------------------------------------------------------------- #

class ProgressReporter:
    """
    Wraps a progress callback so that reports are clamped to [0, 1], never
    decrease and are emitted at roughly 1% granularity.
    """

    def __init__(self, callback: ProgressCallback, total: int = 1, step: float = 0.01) -> None:
        self.callback = callback
        self.total = max(1, int(total))
        self.step = step
        self.last = -1.0

    def report(self, value: float) -> None:
        if self.callback is None:
            return
        value = min(1.0, max(0.0, float(value)))
        if value <= self.last:
            return
        if value < 1.0 and self.last >= 0 and value - self.last < self.step:
            return
        self.last = value
        self.callback(value)

    def tick(self, done: int) -> None:
        self.report(done / self.total)

    def finish(self) -> None:
        if self.callback is not None and self.last < 1.0:
            self.last = 1.0
            self.callback(1.0)


# --------------------------------------------------------------------------- #
# Traversal
# --------------------------------------------------------------------------- #

def bfs_distances(graph: Graph, source: NodeId) -> Dict[NodeId, int]:
    """Hop distances from ``source`` to every reachable node (source included)."""
    if not graph.has_node(source):
        return {}
    dist = {source: 0}
    queue = deque([source])
    adjacency = graph.adjacency
    while queue:
        node = queue.popleft()
        d = dist[node] + 1
        for nbr in adjacency[node]:
            if nbr not in dist:
                dist[nbr] = d
                queue.append(nbr)
    return dist


def bfs_layers(graph: Graph, source: NodeId) -> List[List[NodeId]]:
    layers: List[List[NodeId]] = []
    for node, d in bfs_distances(graph, source).items():
        while len(layers) <= d:
            layers.append([])
        layers[d].append(node)
    return layers


def connected_components(graph: Graph) -> List[List[NodeId]]:
    seen: set = set()
    components: List[List[NodeId]] = []
    for node in graph.get_node_list():
        if node in seen:
            continue
        component = list(bfs_distances(graph, node))
        seen.update(component)
        components.append(component)
    return components


def all_pairs_distances(graph: Graph, report: Optional[ProgressReporter] = None) -> Dict[NodeId, Dict[NodeId, int]]:
    out = {}
    nodes = graph.get_node_list()
    for i, node in enumerate(nodes):
        out[node] = bfs_distances(graph, node)
        if report is not None:
            report.tick(i + 1)
    return out


# --------------------------------------------------------------------------- #
# Local structure
# --------------------------------------------------------------------------- #

def _neighbor_set(graph: Graph, node: NodeId) -> set:
    nbrs = set(graph.adjacency.get(node, ()))
    nbrs.discard(node)
    return nbrs


def count_triangles(graph: Graph, node: NodeId) -> int:
    """Number of triangles through ``node`` (self loops ignored)."""
    nbrs = _neighbor_set(graph, node)
    adjacency = graph.adjacency
    links = sum(1 for n in nbrs for m in adjacency[n] if m != n and m in nbrs)
    return links // 2


def clustering_coefficient(graph: Graph, node: NodeId) -> float:
    k = len(_neighbor_set(graph, node))
    if k < 2:
        return 0.0
    return 2.0 * count_triangles(graph, node) / (k * (k - 1))


def edges_within(graph: Graph, nodes: Iterable[NodeId]) -> int:
    """Count distinct edges with both endpoints in ``nodes`` (self loops ignored)."""
    members = set(nodes)
    adjacency = graph.adjacency
    total = 0
    for n in members:
        total += sum(1 for m in adjacency.get(n, ()) if m in members and m != n)
    return total // 2


# --------------------------------------------------------------------------- #
# Vector helpers
# --------------------------------------------------------------------------- #

def normalize_l2(vec: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vec))
    if norm < 1e-12:
        return vec
    return vec / norm


def l1_difference(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.abs(a - b).sum())
