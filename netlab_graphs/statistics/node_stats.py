"""
Node-level statistics.

Every compute function here has the signature::

    fn(graph_data, node_ids, options, progress_callback=None) -> {node: value}

``graph_data`` is plain GraphData, ``node_ids`` restricts which nodes are
reported (the whole graph is still used for the computation) and
``options`` is a plain dict. Functions never mutate their input and always
finish with a 1.0 progress report.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Dict, FrozenSet, List, Optional

import numpy as np

from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..compute_utils import (
    ProgressCallback,
    ProgressReporter,
    bfs_distances,
    clustering_coefficient,
    edges_within,
    l1_difference,
    normalize_l2,
    reconstruct_graph,
    resolve_node_subset,
)
from ..graph import Graph, NodeId


def _opts(options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return dict(options or {})


# =========================================================================== #
# Degree
# =========================================================================== #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="degree",
    label="Degree",
    kind="statistic",
    scope="node",
    description="Number of neighbours of each node.",
    complexity="O(V)",
)
def degree_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    nodes = resolve_node_subset(graph, node_ids)
    report = ProgressReporter(progress_callback, len(nodes))
    result = {}
    for i, node in enumerate(nodes):
        result[node] = graph.degree(node)
        report.tick(i + 1)
    report.finish()
    return result


# =========================================================================== #
# Closeness
# =========================================================================== #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="closeness",
    label="Closeness Centrality",
    kind="statistic",
    scope="node",
    description="Reachable nodes divided by the sum of shortest-path distances, "
                "optionally scaled by the reachable fraction of the graph.",
    complexity="O(V(V+E))",
    default_options={"normalized": True},
)
def closeness_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    opts = _opts(options)
    normalized = opts.get("normalized", True) is not False
    graph = reconstruct_graph(graph_data)
    n = graph.number_of_nodes()
    nodes = resolve_node_subset(graph, node_ids)
    report = ProgressReporter(progress_callback, len(nodes))

    result: Dict[NodeId, float] = {}
    for i, node in enumerate(nodes):
        dist = bfs_distances(graph, node)
        reachable = len(dist) - 1 if dist else 0
        total = sum(dist.values())
        if reachable <= 0 or total <= 0:
            result[node] = 0.0
        else:
            closeness = reachable / total
            if normalized and n > 1:
                closeness *= reachable / (n - 1)
            result[node] = closeness
        report.tick(i + 1)
    report.finish()
    return result


# =========================================================================== #
# Ego density
# =========================================================================== #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="ego-density",
    label="Ego Network Density",
    kind="statistic",
    scope="node",
    description="Density of the connections among a node's neighbourhood "
                "(the node itself excluded).",
    complexity="O(V * k^2)",
    default_options={"radius": 1},
)
def ego_density_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    opts = _opts(options)
    radius = max(1, int(opts.get("radius") or 1))
    graph = reconstruct_graph(graph_data)
    nodes = resolve_node_subset(graph, node_ids)
    report = ProgressReporter(progress_callback, len(nodes))

    result: Dict[NodeId, float] = {}
    for i, node in enumerate(nodes):
        if radius == 1:
            ego = set(graph.get_neighbors(node))
        else:
            ego = {n for n, d in bfs_distances(graph, node).items() if 0 < d <= radius}
        ego.discard(node)
        k = len(ego)
        if k < 2:
            result[node] = 0.0
        else:
            result[node] = edges_within(graph, ego) / (k * (k - 1) / 2)
        report.tick(i + 1)
    report.finish()
    return result


# =========================================================================== #
# Betweenness (Brandes)
# =========================================================================== #

def _single_source_dependencies(graph: Graph, source: NodeId) -> Dict[NodeId, float]:
    adjacency = graph.adjacency
    stack: List[NodeId] = []
    preds: Dict[NodeId, List[NodeId]] = {source: []}
    sigma: Dict[NodeId, float] = {source: 1.0}
    dist: Dict[NodeId, int] = {source: 0}
    queue = deque([source])

    while queue:
        v = queue.popleft()
        stack.append(v)
        dv = dist[v]
        for w in adjacency[v]:
            if w not in dist:
                dist[w] = dv + 1
                sigma[w] = 0.0
                preds[w] = []
                queue.append(w)
            if dist[w] == dv + 1:
                sigma[w] += sigma[v]
                preds[w].append(v)

    delta = dict.fromkeys(stack, 0.0)
    while stack:
        w = stack.pop()
        coeff = (1.0 + delta[w]) / sigma[w]
        for v in preds[w]:
            delta[v] += sigma[v] * coeff
    delta[source] = 0.0
    return delta


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="betweenness",
    label="Betweenness Centrality",
    kind="statistic",
    scope="node",
    description="Fraction of shortest paths between other node pairs that pass "
                "through each node (Brandes).",
    complexity="O(VE)",
    default_options={"normalized": True},
)
def betweenness_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    opts = _opts(options)
    normalized = opts.get("normalized", True) is not False
    graph = reconstruct_graph(graph_data)
    nodes = graph.get_node_list()
    n = len(nodes)
    wanted = resolve_node_subset(graph, node_ids)
    report = ProgressReporter(progress_callback, n)

    if n <= 2:
        report.finish()
        return {node: 0.0 for node in wanted}

    scores = dict.fromkeys(nodes, 0.0)
    for i, source in enumerate(nodes):
        for node, dep in _single_source_dependencies(graph, source).items():
            scores[node] += dep
        report.tick(i + 1)

    # Each undirected pair was counted from both ends.
    scale = 0.5
    if normalized:
        scale *= 2.0 / ((n - 1) * (n - 2))
    report.finish()
    return {node: scores.get(node, 0.0) * scale for node in wanted}


# =========================================================================== #
# Clustering
# =========================================================================== #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="clustering",
    label="Clustering Coefficient",
    kind="statistic",
    scope="node",
    description="Share of a node's neighbour pairs that are themselves connected.",
    complexity="O(V * k^2)",
)
def clustering_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    nodes = resolve_node_subset(graph, node_ids)
    report = ProgressReporter(progress_callback, len(nodes))
    result = {}
    for i, node in enumerate(nodes):
        result[node] = clustering_coefficient(graph, node)
        report.tick(i + 1)
    report.finish()
    return result


# =========================================================================== #
# Eigenvector
# =========================================================================== #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="eigenvector",
    label="Eigenvector Centrality",
    kind="statistic",
    scope="node",
    description="Power iteration on the weighted adjacency operator; a node is "
                "important when its neighbours are.",
    complexity="O(k * E)",
    default_options={"max_iter": 100, "tolerance": 1e-6},
)
def eigenvector_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    opts = _opts(options)
    max_iter = int(opts.get("max_iter", opts.get("maxIter")) or 100)
    tolerance = float(opts.get("tolerance") or 1e-6)

    graph = reconstruct_graph(graph_data)
    nodes = graph.get_node_list()
    n = len(nodes)
    wanted = resolve_node_subset(graph, node_ids)
    report = ProgressReporter(progress_callback, max_iter)
    if n == 0:
        report.finish()
        return {}

    index = {node: i for i, node in enumerate(nodes)}
    rows, cols, weights = [], [], []
    for u, nbrs in graph.adjacency.items():
        for v, w in nbrs.items():
            rows.append(index[u])
            cols.append(index[v])
            weights.append(float(w))
    rows_a = np.asarray(rows, dtype=int)
    cols_a = np.asarray(cols, dtype=int)
    weights_a = np.asarray(weights, dtype=float)

    scores = np.full(n, 1.0 / n)
    if rows_a.size == 0:
        report.finish()
        return {node: 0.0 for node in wanted}

    for it in range(max_iter):
        updated = np.bincount(cols_a, weights=weights_a * scores[rows_a], minlength=n)
        updated = normalize_l2(updated)
        delta = l1_difference(updated, scores)
        scores = updated
        report.tick(it + 1)
        if delta < tolerance:
            break

    report.finish()
    return {node: float(abs(scores[index[node]])) if node in index else 0.0 for node in wanted}


# =========================================================================== #
# Cliques (Bron-Kerbosch with pivoting)
# =========================================================================== #

def _bron_kerbosch(
    r: FrozenSet[NodeId],
    p: FrozenSet[NodeId],
    x: FrozenSet[NodeId],
    nbrs: Dict[NodeId, FrozenSet[NodeId]],
    out: List[FrozenSet[NodeId]],
) -> None:
    if not p and not x:
        out.append(r)
        return
    pivot = max(p | x, key=lambda u: len(p & nbrs[u]))
    for v in p - nbrs[pivot]:
        _bron_kerbosch(r | {v}, p & nbrs[v], x & nbrs[v], nbrs, out)
        p = p - {v}
        x = x | {v}


def find_maximal_cliques(graph: Graph, report: Optional[ProgressReporter] = None) -> List[FrozenSet[NodeId]]:
    nbrs = {
        node: frozenset(n for n in graph.adjacency[node] if n != node)
        for node in graph.get_node_list()
    }
    cliques: List[FrozenSet[NodeId]] = []
    done: set = set()
    nodes = graph.get_node_list()
    for i, v in enumerate(nodes):
        later = nbrs[v] - done
        earlier = nbrs[v] & done
        _bron_kerbosch(frozenset((v,)), frozenset(later), frozenset(earlier), nbrs, cliques)
        done.add(v)
        if report is not None:
            report.tick(i + 1)
    return cliques


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="cliques",
    label="Maximal Clique Count",
    kind="statistic",
    scope="node",
    description="Number of maximal cliques each node belongs to.",
    complexity="O(3^(V/3)) worst case",
    applicability="Small or sparse graphs; enumeration is exponential in the worst case",
)
def cliques_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    report = ProgressReporter(progress_callback, graph.number_of_nodes())
    counts: Dict[NodeId, int] = dict.fromkeys(graph.get_node_list(), 0)
    for clique in find_maximal_cliques(graph, report):
        for node in clique:
            counts[node] += 1
    report.finish()
    return {node: counts.get(node, 0) for node in resolve_node_subset(graph, node_ids)}
