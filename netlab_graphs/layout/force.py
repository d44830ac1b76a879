"""
Energy-based layouts.

    - force-directed : Fruchterman-Reingold spring embedder with linear cooling
    - kamada-kawai   : gradient descent on spring energy between all
                       mutually reachable pairs

Both are vectorised with numpy and report progress once per iteration.
Without a ``seed`` (or ``initial_positions``) they start from a circle, so
their output is deterministic.
"""

from __future__ import annotations

import math
from typing import Any, List, Mapping

import numpy as np

from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..compute_utils import ProgressCallback, all_pairs_distances
from ..graph import Graph
from .utils import circle_points, finalize_positions, prepare, trivial_layout


def _adjacency_matrix(graph: Graph, nodes: List[Any], weighted: bool) -> np.ndarray:
    index = {node: i for i, node in enumerate(nodes)}
    A = np.zeros((len(nodes), len(nodes)), dtype=float)
    for u, nbrs in graph.adjacency.items():
        for v, w in nbrs.items():
            if u != v:
                A[index[u], index[v]] = float(w) if weighted else 1.0
    return A


def _initial_positions(nodes: List[Any], opts: Mapping[str, Any]) -> np.ndarray:
    seed = opts.get("seed")
    if seed is not None:
        pos = np.random.default_rng(seed).random((len(nodes), 2))
    else:
        pos = circle_points(len(nodes))
    given = opts.get("initial_positions") or {}
    for i, node in enumerate(nodes):
        p = given.get(node)
        if isinstance(p, Mapping):
            pos[i] = (float(p.get("x", 0.0)), float(p.get("y", 0.0)))
        elif isinstance(p, (list, tuple)) and len(p) == 2:
            pos[i] = (float(p[0]), float(p[1]))
    return pos


# =========================================================================== #
# Fruchterman-Reingold
# =========================================================================== #

@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="force-directed",
    label="Force-Directed (Fruchterman-Reingold)",
    kind="layout",
    description="Nodes repel each other while edges pull their endpoints "
                "together; movement is capped by a cooling temperature.",
    complexity="O(iterations * V^2)",
    default_options={"scale": 1.0, "iterations": 50, "threshold": 1e-4, "k": None, "weighted": True},
)
def force_directed_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    nodes = graph.get_node_list()
    n = len(nodes)
    iterations = max(1, int(opts.get("iterations") or 50))
    threshold = float(opts.get("threshold") or 1e-4)
    A = _adjacency_matrix(graph, nodes, weighted=opts.get("weighted", True) is not False)
    pos = _initial_positions(nodes, opts)
    k = float(opts.get("k") or math.sqrt(1.0 / n))

    span = pos.max(axis=0) - pos.min(axis=0)
    t = max(float(span.max()), 1e-3) * 0.1
    dt = t / (iterations + 1)
    report.total = iterations

    for it in range(iterations):
        delta = pos[:, np.newaxis, :] - pos[np.newaxis, :, :]
        distance = np.linalg.norm(delta, axis=-1)
        np.clip(distance, 0.01, None, out=distance)
        # repulsion k^2/d minus attraction d^2/k, applied along the unit vector
        force = k * k / distance ** 2 - A * distance / k
        displacement = np.einsum("ijk,ij->ik", delta, force)
        length = np.linalg.norm(displacement, axis=-1)
        length = np.where(length < 0.01, 0.1, length)
        delta_pos = displacement * (t / length)[:, np.newaxis]
        pos += delta_pos
        t -= dt
        report.tick(it + 1)
        if np.linalg.norm(delta_pos) / n < threshold:
            break

    report.finish()
    return finalize_positions(nodes, pos, opts)


# =========================================================================== #
# Kamada-Kawai
# =========================================================================== #

def _spring_energy(pos: np.ndarray, ideal: np.ndarray, stiffness: np.ndarray) -> float:
    delta = pos[:, np.newaxis, :] - pos[np.newaxis, :, :]
    r = np.linalg.norm(delta, axis=-1)
    return float(0.25 * np.sum(stiffness * (r - ideal) ** 2))


def _spring_gradient(pos: np.ndarray, ideal: np.ndarray, stiffness: np.ndarray) -> np.ndarray:
    delta = pos[:, np.newaxis, :] - pos[np.newaxis, :, :]
    r = np.maximum(np.linalg.norm(delta, axis=-1), 1e-9)
    coeff = stiffness * (1.0 - ideal / r)
    return np.einsum("ij,ijk->ik", coeff, delta)


def _distance_matrix(graph: Graph, nodes: List[Any]) -> np.ndarray:
    index = {node: i for i, node in enumerate(nodes)}
    D = np.full((len(nodes), len(nodes)), np.inf)
    for u, row in all_pairs_distances(graph).items():
        for v, d in row.items():
            D[index[u], index[v]] = d
    return D


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="kamada-kawai",
    label="Kamada-Kawai",
    kind="layout",
    description="Springs between every reachable pair with rest length "
                "proportional to graph distance; energy minimised by gradient descent.",
    complexity="O(iterations * V^2) after O(V(V+E)) shortest paths",
    default_options={"scale": 1.0, "max_iter": 500, "threshold": 1e-4, "learning_rate": 0.1},
)
def kamada_kawai_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    nodes = graph.get_node_list()
    n = len(nodes)
    max_iter = max(1, int(opts.get("max_iter", opts.get("maxIter")) or 500))
    threshold = float(opts.get("threshold") or 1e-4)
    lr = float(opts.get("learning_rate", opts.get("learningRate")) or 0.1)
    report.total = max_iter

    D = _distance_matrix(graph, nodes)
    # unreachable pairs carry no spring at all
    reachable = np.isfinite(D) & ~np.eye(n, dtype=bool)
    pos = _initial_positions(nodes, opts)
    if not reachable.any():
        report.finish()
        return finalize_positions(nodes, pos, opts)

    d_max = float(D[reachable].max())
    K = float(opts.get("K") or 2.0 / d_max)
    D_safe = np.where(reachable, D, 1.0)
    ideal = np.where(reachable, K * D_safe, 0.0)
    stiffness = np.where(reachable, 1.0 / D_safe ** 2, 0.0)

    energy = _spring_energy(pos, ideal, stiffness)
    for it in range(max_iter):
        grad = _spring_gradient(pos, ideal, stiffness)
        if float(np.linalg.norm(grad, axis=1).sum()) < threshold:
            break
        candidate = pos - lr * grad
        new_energy = _spring_energy(candidate, ideal, stiffness)
        if new_energy <= energy:
            pos, energy = candidate, new_energy
        else:
            lr *= 0.5
            if lr < 1e-10:
                break
        report.tick(it + 1)

    report.finish()
    return finalize_positions(nodes, pos, opts)
