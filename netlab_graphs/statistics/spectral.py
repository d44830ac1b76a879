"""
Laplacian spectral coordinates.

Approximates the eigenvectors of ``L = D - A`` belonging to the 2nd and 3rd
smallest eigenvalues by power iteration on the shifted operator
``M = c*I - L`` (``c`` bounds the spectrum of L, so M is positive
semi-definite and its dominant modes are L's smallest). The constant vector
is the known trivial mode and is deflated out of every iterate; the second
coordinate is additionally deflated against the first.

The result feeds the spectral layout. It is an approximation, not an exact
eigendecomposition.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np

from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..compute_utils import ProgressCallback, ProgressReporter, reconstruct_graph, resolve_node_subset
from ..graph import Graph

LAPLACIAN_KEY = "eigenvector-laplacian"


def laplacian_matrix(graph: Graph, weighted: bool = False) -> np.ndarray:
    nodes = graph.get_node_list()
    index = {node: i for i, node in enumerate(nodes)}
    n = len(nodes)
    A = np.zeros((n, n), dtype=float)
    for u, nbrs in graph.adjacency.items():
        for v, w in nbrs.items():
            if u != v:
                A[index[u], index[v]] = float(w) if weighted else 1.0
    return np.diag(A.sum(axis=1)) - A


def _deflate(vec: np.ndarray, basis: List[np.ndarray]) -> np.ndarray:
    for b in basis:
        vec = vec - np.dot(vec, b) * b
    return vec


def _power_iterate(
    M: np.ndarray,
    seed_vec: np.ndarray,
    basis: List[np.ndarray],
    max_iter: int,
    tolerance: float,
    report: ProgressReporter,
    offset: int,
) -> np.ndarray:
    vec = _deflate(seed_vec, basis)
    vec /= np.linalg.norm(vec) or 1.0
    for it in range(max_iter):
        nxt = _deflate(M @ vec, basis)
        norm = np.linalg.norm(nxt)
        if norm < 1e-12:
            break
        nxt /= norm
        delta = float(np.abs(nxt - vec).sum())
        vec = nxt
        report.tick(offset + it + 1)
        if delta < tolerance:
            break
    return vec


def laplacian_coordinates(
    graph: Graph,
    max_iter: int = 300,
    tolerance: float = 1e-6,
    seed: Optional[int] = None,
    weighted: bool = False,
    report: Optional[ProgressReporter] = None,
) -> Dict[Any, Dict[str, float]]:
    report = report or ProgressReporter(None)
    nodes = graph.get_node_list()
    n = len(nodes)
    rng = np.random.default_rng(seed)

    if n < 3:
        coords = rng.uniform(-1.0, 1.0, size=(n, 2))
        return {
            node: {"laplacian_x": float(coords[i, 0]), "laplacian_y": float(coords[i, 1])}
            for i, node in enumerate(nodes)
        }

    L = laplacian_matrix(graph, weighted=weighted)
    shift = float(2.0 * np.max(np.diag(L))) or 1.0
    M = shift * np.eye(n) - L

    trivial = np.full(n, 1.0 / np.sqrt(n))
    first = _power_iterate(M, rng.standard_normal(n), [trivial], max_iter, tolerance, report, 0)
    second = _power_iterate(
        M, rng.standard_normal(n), [trivial, first], max_iter, tolerance, report, max_iter
    )
    return {
        node: {"laplacian_x": float(first[i]), "laplacian_y": float(second[i])}
        for i, node in enumerate(nodes)
    }


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key=LAPLACIAN_KEY,
    label="Laplacian Eigenvectors",
    kind="statistic",
    scope="node",
    description="Approximate 2nd and 3rd smallest Laplacian eigenvectors, used "
                "as coordinates by the spectral layout.",
    complexity="O(k * V^2)",
    applicability="Graphs with at least 3 nodes; smaller graphs get random coordinates",
    default_options={"max_iter": 300, "tolerance": 1e-6},
)
def laplacian_compute(graph_data, node_ids=None, options=None, progress_callback: ProgressCallback = None):
    opts = dict(options or {})
    max_iter = int(opts.get("max_iter", opts.get("maxIter")) or 300)
    graph = reconstruct_graph(graph_data)
    report = ProgressReporter(progress_callback, 2 * max_iter)
    coords = laplacian_coordinates(
        graph,
        max_iter=max_iter,
        tolerance=float(opts.get("tolerance") or 1e-6),
        seed=opts.get("seed"),
        weighted=bool(opts.get("weighted", False)),
        report=report,
    )
    report.finish()
    return {node: coords[node] for node in resolve_node_subset(graph, node_ids) if node in coords}
