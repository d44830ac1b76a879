"""
Geometric layouts: random, circular, spiral and shell.

All are compute functions with the layout signature
``fn(graph_data, options, progress_callback=None) -> {node: {"x", "y"}}``.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Any, Dict, List, Optional

import numpy as np

from netlab_dispatch.core.errors import InputError
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..compute_utils import ProgressCallback
from .utils import circle_points, finalize_positions, parse_center, parse_scale, prepare, to_positions, trivial_layout


# --------------------------------------------------------------------------- #
# Random
# --------------------------------------------------------------------------- #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="random",
    label="Random",
    kind="layout",
    description="Uniformly random positions; pass 'seed' for reproducible output.",
    complexity="O(V)",
    default_options={"scale": 1.0, "seed": None},
)
def random_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial
    rng = np.random.default_rng(opts.get("seed"))
    pos = rng.random((graph.number_of_nodes(), 2))
    report.finish()
    return finalize_positions(graph.get_node_list(), pos, opts)


# --------------------------------------------------------------------------- #
# Circular
# --------------------------------------------------------------------------- #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="circular",
    label="Circular",
    kind="layout",
    description="Nodes evenly spaced on a circle.",
    complexity="O(V)",
    default_options={"scale": 1.0},
)
def circular_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    nodes = graph.get_node_list()
    order = [n for n in (opts.get("order") or []) if graph.has_node(n)]
    seen = set(order)
    nodes = order + [n for n in nodes if n not in seen]

    pos = circle_points(len(nodes))
    report.finish()
    return finalize_positions(nodes, pos, {**opts, "scale": parse_scale(opts, "radius")})


# --------------------------------------------------------------------------- #
# Spiral
# --------------------------------------------------------------------------- #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="spiral",
    label="Spiral",
    kind="layout",
    description="Nodes along an Archimedean spiral, optionally equidistant.",
    complexity="O(V)",
    default_options={"scale": 1.0, "resolution": 0.35, "equidistant": False},
)
def spiral_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    n = graph.number_of_nodes()
    resolution = float(opts.get("resolution", 0.35))
    if opts.get("equidistant"):
        if resolution <= 0:
            raise InputError(f"equidistant spiral needs a positive resolution, got {resolution!r}")
        chord = 1.0
        step = 0.5
        theta = resolution
        theta += chord / (step * theta)
        coords = []
        for _ in range(n):
            r = step * theta
            theta += chord / r
            coords.append((math.cos(theta) * r, math.sin(theta) * r))
        pos = np.array(coords)
    else:
        idx = np.arange(n, dtype=float)
        angle = resolution * idx
        pos = np.column_stack([np.cos(angle) * idx, np.sin(angle) * idx])

    report.finish()
    return finalize_positions(graph.get_node_list(), pos, opts)


# --------------------------------------------------------------------------- #
# Shell
# --------------------------------------------------------------------------- #

def degree_shells(graph) -> List[List[Any]]:
    """Group nodes by degree, highest degree innermost."""
    groups: Dict[int, List[Any]] = defaultdict(list)
    for node in graph.get_node_list():
        groups[graph.degree(node)].append(node)
    return [groups[d] for d in sorted(groups, reverse=True)]


def _shell_list(graph, nlist: Optional[List[List[Any]]]) -> List[List[Any]]:
    if not nlist:
        return degree_shells(graph)
    seen: set = set()
    shells = []
    for shell in nlist:
        members = [n for n in shell if graph.has_node(n) and n not in seen]
        seen.update(members)
        if members:
            shells.append(members)
    leftovers = [n for n in graph.get_node_list() if n not in seen]
    if leftovers:
        shells.append(leftovers)
    return shells


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="shell",
    label="Shell",
    kind="layout",
    description="Concentric circles, one per group; a single-node first group "
                "sits at the center. Defaults to degree shells.",
    complexity="O(V)",
    default_options={"scale": 1.0, "nlist": None, "rotate": 0.0},
)
def shell_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    scale = parse_scale(opts)
    rotate = float(opts.get("rotate") or 0.0)
    shells = _shell_list(graph, opts.get("nlist"))
    count = len(shells)
    report.total = count

    # Shells are placed directly inside [-scale, scale]; no centroid shift
    # so that a singleton first shell stays exactly on the center.
    if len(shells[0]) == 1 and count > 1:
        radii = [scale * i / (count - 1) for i in range(count)]
    else:
        radii = [scale * (i + 1) / count for i in range(count)]

    nodes: List[Any] = []
    blocks = []
    for i, shell in enumerate(shells):
        nodes.extend(shell)
        blocks.append(circle_points(len(shell), radii[i], offset=rotate * i))
        report.tick(i + 1)

    pos = np.vstack(blocks)
    report.finish()
    return to_positions(nodes, pos, parse_center(opts.get("center")))
