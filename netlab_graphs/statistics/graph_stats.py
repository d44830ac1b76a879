"""
Graph-level statistics.

Same compute signature as the node statistics; ``node_ids`` is accepted
and ignored. Results are scalars except for connected components, which
returns ``{"count": int, "components": {node: component_id}}``.

Distances only ever count reachable pairs: the diameter of a disconnected
graph is the largest diameter among its components, never infinity.
"""

from __future__ import annotations

from typing import Any, Dict

from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..compute_utils import (
    ProgressCallback,
    ProgressReporter,
    bfs_distances,
    clustering_coefficient,
    connected_components,
    count_triangles,
    reconstruct_graph,
)


def _graph_stat(key: str, label: str, description: str, complexity: str):
    return GLOBAL_ALGORITHM_REGISTRY.decorator(
        key=key,
        label=label,
        kind="statistic",
        scope="graph",
        description=description,
        complexity=complexity,
    )


@_graph_stat("density", "Density", "Share of possible node pairs that are connected.", "O(E)")
def density_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    report = ProgressReporter(progress_callback)
    n = graph.number_of_nodes()
    if n < 2:
        report.finish()
        return 0.0
    pairs = sum(1 for u, v, _ in graph.unique_edges() if u != v)
    report.finish()
    return 2.0 * pairs / (n * (n - 1))


@_graph_stat(
    "diameter", "Diameter",
    "Longest shortest path between any two mutually reachable nodes.",
    "O(V(V+E))",
)
def diameter_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    nodes = graph.get_node_list()
    report = ProgressReporter(progress_callback, len(nodes))
    diameter = 0
    for i, node in enumerate(nodes):
        dist = bfs_distances(graph, node)
        if dist:
            diameter = max(diameter, max(dist.values()))
        report.tick(i + 1)
    report.finish()
    return diameter


@_graph_stat(
    "average-clustering", "Average Clustering",
    "Mean of the node clustering coefficients.",
    "O(V * k^2)",
)
def average_clustering_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    nodes = graph.get_node_list()
    report = ProgressReporter(progress_callback, len(nodes))
    if not nodes:
        report.finish()
        return 0.0
    total = 0.0
    for i, node in enumerate(nodes):
        total += clustering_coefficient(graph, node)
        report.tick(i + 1)
    report.finish()
    return total / len(nodes)


@_graph_stat(
    "average-shortest-path", "Average Shortest Path",
    "Mean shortest-path length over ordered pairs of distinct reachable nodes.",
    "O(V(V+E))",
)
def average_shortest_path_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    nodes = graph.get_node_list()
    report = ProgressReporter(progress_callback, len(nodes))
    total = 0
    pairs = 0
    for i, node in enumerate(nodes):
        dist = bfs_distances(graph, node)
        total += sum(dist.values())
        pairs += len(dist) - 1
        report.tick(i + 1)
    report.finish()
    return total / pairs if pairs else 0.0


@_graph_stat(
    "connected-components", "Connected Components",
    "Number of connected components and the component id of each node.",
    "O(V+E)",
)
def connected_components_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None) -> Dict[str, Any]:
    graph = reconstruct_graph(graph_data)
    report = ProgressReporter(progress_callback)
    components: Dict[Any, int] = {}
    groups = connected_components(graph)
    for cid, members in enumerate(groups):
        for node in members:
            components[node] = cid
    report.finish()
    return {"count": len(groups), "components": components}


@_graph_stat("average-degree", "Average Degree", "Mean number of neighbours per node.", "O(V)")
def average_degree_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    report = ProgressReporter(progress_callback)
    n = graph.number_of_nodes()
    report.finish()
    if n == 0:
        return 0.0
    return sum(graph.degree(node) for node in graph.get_node_list()) / n


@_graph_stat(
    "transitivity", "Transitivity",
    "Three times the number of triangles divided by the number of connected triples.",
    "O(V * k^2)",
)
def transitivity_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    graph = reconstruct_graph(graph_data)
    nodes = graph.get_node_list()
    report = ProgressReporter(progress_callback, len(nodes))
    triangles = 0
    triples = 0
    for i, node in enumerate(nodes):
        k = len([n for n in graph.adjacency[node] if n != node])
        triangles += count_triangles(graph, node)
        triples += k * (k - 1) // 2
        report.tick(i + 1)
    report.finish()
    # each triangle was counted once per corner, i.e. already 3x
    return triangles / triples if triples else 0.0
