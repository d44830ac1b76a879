"""
Layered layouts: bipartite, multipartite and BFS layers.

Each partitions the nodes into ordered groups (caller supplied, or an
automatic fallback) and puts every group on its own line with even spacing.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Dict, List

from netlab_dispatch.core.errors import InputError
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..compute_utils import ProgressCallback, bfs_layers, node_sort_key
from ..graph import Graph
from .utils import finalize_positions, layered_positions, parse_align, prepare, trivial_layout


def bfs_parity_partition(graph: Graph) -> List[Any]:
    """Nodes at even BFS depth, component by component in node order."""
    depth: Dict[Any, int] = {}
    for root in graph.get_node_list():
        if root in depth:
            continue
        depth[root] = 0
        queue = deque([root])
        while queue:
            node = queue.popleft()
            for nbr in graph.adjacency[node]:
                if nbr not in depth:
                    depth[nbr] = depth[node] + 1
                    queue.append(nbr)
    return [n for n in graph.get_node_list() if depth[n] % 2 == 0]


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="bipartite",
    label="Bipartite",
    kind="layout",
    description="Two parallel lines; the first holds 'partition' (or the nodes "
                "at even BFS depth), the second everything else.",
    complexity="O(V+E)",
    default_options={"scale": 1.0, "align": "vertical", "aspect_ratio": 4.0 / 3.0, "partition": None},
)
def bipartite_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    align = parse_align(opts)
    aspect_ratio = float(opts.get("aspect_ratio", opts.get("aspectRatio")) or 4.0 / 3.0)
    partition = opts.get("partition")
    if partition is None:
        partition = bfs_parity_partition(graph)
    top_set = {n for n in partition if graph.has_node(n)}
    top = [n for n in graph.get_node_list() if n in top_set]
    bottom = [n for n in graph.get_node_list() if n not in top_set]

    # lines are 2 units tall and aspect_ratio * 2 apart
    layers = [layer for layer in (top, bottom) if layer]
    nodes, pos = layered_positions(layers, "vertical")
    tallest = max(len(layer) for layer in layers)
    if tallest > 1:
        pos[:, 1] *= 2.0 / (tallest - 1)
    pos[:, 0] *= 2.0 * aspect_ratio
    if align == "horizontal":
        pos = pos[:, ::-1]

    report.finish()
    return finalize_positions(nodes, pos, opts)


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="multipartite",
    label="Multipartite",
    kind="layout",
    description="One line per layer from 'subsets' ({layer: [nodes]}); without "
                "subsets nodes are dealt round-robin into 'num_layers' layers.",
    complexity="O(V)",
    default_options={"scale": 1.0, "align": "vertical", "subsets": None, "num_layers": 3},
)
def multipartite_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    align = parse_align(opts)
    subsets = opts.get("subsets")
    nodes = graph.get_node_list()
    if subsets:
        if not isinstance(subsets, dict):
            raise InputError("multipartite 'subsets' must map a layer key to a node list")
        seen: set = set()
        layers = []
        for key in sorted(subsets, key=node_sort_key):
            members = [n for n in subsets[key] if graph.has_node(n) and n not in seen]
            seen.update(members)
            layers.append(members)
        leftovers = [n for n in nodes if n not in seen]
        if leftovers:
            layers.append(leftovers)
        layers = [layer for layer in layers if layer]
    else:
        num_layers = max(1, int(opts.get("num_layers") or 3))
        layers = [nodes[i::num_layers] for i in range(num_layers)]
        layers = [layer for layer in layers if layer]

    ordered, pos = layered_positions(layers, align)
    report.finish()
    return finalize_positions(ordered, pos, opts)


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="bfs",
    label="BFS Layers",
    kind="layout",
    description="One line per BFS distance from 'start'; unreachable nodes get "
                "a final extra layer.",
    complexity="O(V+E)",
    default_options={"scale": 1.0, "align": "vertical", "start": None},
)
def bfs_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    align = parse_align(opts)
    start = opts.get("start")
    if start is None:
        start = graph.get_node_list()[0]
    elif not graph.has_node(start):
        raise InputError(f"BFS layout start node {start!r} is not in the graph")

    layers = bfs_layers(graph, start)
    reached = {n for layer in layers for n in layer}
    unreachable = [n for n in graph.get_node_list() if n not in reached]
    if unreachable:
        layers.append(unreachable)

    nodes, pos = layered_positions(layers, align)
    report.finish()
    return finalize_positions(nodes, pos, opts)
