"""
Spectral layout.

Positions come straight from precomputed Laplacian coordinates (the
``eigenvector-laplacian`` statistic) passed as ``options["node_properties"]``;
this module performs no eigen-computation itself.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import numpy as np

from netlab_dispatch.core.errors import PreconditionError
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..compute_utils import ProgressCallback
from ..statistics.spectral import LAPLACIAN_KEY
from .utils import finalize_positions, prepare, trivial_layout


def _coordinates(props: Mapping[Any, Any], node: Any) -> Optional[tuple]:
    entry = props.get(node)
    if entry is None and not isinstance(node, str):
        entry = props.get(str(node))
    if not isinstance(entry, Mapping):
        return None
    x, y = entry.get("laplacian_x"), entry.get("laplacian_y")
    if x is None or y is None:
        return None
    return float(x), float(y)


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="spectral",
    label="Spectral",
    kind="layout",
    description="Places nodes at their Laplacian eigenvector coordinates.",
    complexity="O(V) given precomputed coordinates",
    requires=[LAPLACIAN_KEY],
    default_options={"scale": 1.0},
)
def spectral_layout_compute(graph_data, options=None, progress_callback: ProgressCallback = None):
    graph, opts, report = prepare(graph_data, options, progress_callback)
    trivial = trivial_layout(graph, opts)
    if trivial is not None:
        report.finish()
        return trivial

    props = opts.get("node_properties") or {}
    nodes = graph.get_node_list()
    coords = []
    for node in nodes:
        xy = _coordinates(props, node)
        if xy is None:
            raise PreconditionError(
                f"Spectral layout needs the '{LAPLACIAN_KEY}' statistic: node {node!r} "
                "has no laplacian_x/laplacian_y. Compute it first and pass it as "
                "options['node_properties'].",
                requirement=LAPLACIAN_KEY,
            )
        coords.append(xy)

    report.finish()
    return finalize_positions(nodes, np.array(coords, dtype=float), opts)
