"""
Shared layout helpers.

Every layout produces an (n, 2) numpy array in node order and hands it to
``finalize_positions``, which rescales it into ``[-scale, scale]^2`` around
the requested center and converts it to ``{node: {"x": .., "y": ..}}``.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from netlab_dispatch.core.errors import InputError

from ..compute_utils import ProgressCallback, ProgressReporter, reconstruct_graph
from ..graph import Graph

Positions = Dict[Any, Dict[str, float]]


# --------------------------------------------------------------------------- #
# Options
# --------------------------------------------------------------------------- #

def parse_center(center: Any) -> Tuple[float, float]:
    if center is None:
        return 0.0, 0.0
    if isinstance(center, Mapping):
        return float(center.get("x", 0.0)), float(center.get("y", 0.0))
    if isinstance(center, (list, tuple)) and len(center) == 2:
        return float(center[0]), float(center[1])
    raise InputError(f"center must be {{'x', 'y'}} or a pair, got {center!r}")


def parse_scale(options: Mapping[str, Any], fallback_key: Optional[str] = None) -> float:
    value = options.get("scale")
    if value is None and fallback_key is not None:
        value = options.get(fallback_key)
    return float(1.0 if value is None else value)


def parse_align(options: Mapping[str, Any]) -> str:
    align = str(options.get("align", "vertical")).lower()
    if align not in ("vertical", "horizontal"):
        raise InputError(f"align must be 'vertical' or 'horizontal', got {align!r}")
    return align


# --------------------------------------------------------------------------- #
# Rescaling
# --------------------------------------------------------------------------- #

def rescale_layout(pos: np.ndarray, scale: float = 1.0) -> np.ndarray:
    """
    Centroid-subtract, divide by the largest absolute coordinate and multiply
    by ``scale``. Coincident points all collapse onto the origin.
    """
    if pos.size == 0:
        return pos
    pos = pos - pos.mean(axis=0)
    lim = float(np.abs(pos).max())
    if lim < 1e-12:
        return np.zeros_like(pos)
    return pos * (scale / lim)


def to_positions(nodes: Sequence[Any], pos: np.ndarray, center: Tuple[float, float]) -> Positions:
    cx, cy = center
    return {
        node: {"x": float(pos[i, 0] + cx), "y": float(pos[i, 1] + cy)}
        for i, node in enumerate(nodes)
    }


def finalize_positions(
    nodes: Sequence[Any],
    pos: np.ndarray,
    options: Mapping[str, Any],
    rescale: bool = True,
) -> Positions:
    scale = parse_scale(options)
    center = parse_center(options.get("center"))
    if rescale:
        pos = rescale_layout(np.asarray(pos, dtype=float), scale)
    return to_positions(nodes, pos, center)


def trivial_layout(graph: Graph, options: Mapping[str, Any]) -> Optional[Positions]:
    """Explicit base cases: no nodes -> {}, one node -> the center."""
    n = graph.number_of_nodes()
    if n == 0:
        return {}
    if n == 1:
        cx, cy = parse_center(options.get("center"))
        return {graph.get_node_list()[0]: {"x": cx, "y": cy}}
    return None


def prepare(graph_data: Any, options: Optional[Mapping[str, Any]], progress_callback: ProgressCallback):
    """Common preamble: reconstruct the graph, copy options, build a reporter."""
    return reconstruct_graph(graph_data), dict(options or {}), ProgressReporter(progress_callback)


# --------------------------------------------------------------------------- #
# Line placement for layered layouts
# --------------------------------------------------------------------------- #

def layered_positions(
    layers: List[List[Any]],
    align: str = "vertical",
    layer_spacing: float = 1.0,
) -> Tuple[List[Any], np.ndarray]:
    """
    Layer i sits on the line x = i * layer_spacing with its members spread
    evenly along y and centered on 0. ``align='horizontal'`` swaps the axes.
    """
    nodes: List[Any] = []
    coords: List[Tuple[float, float]] = []
    for i, layer in enumerate(layers):
        m = len(layer)
        for j, node in enumerate(layer):
            nodes.append(node)
            coords.append((i * layer_spacing, j - (m - 1) / 2.0))
    pos = np.array(coords, dtype=float).reshape(-1, 2)
    if align == "horizontal":
        pos = pos[:, ::-1]
    return nodes, pos


def circle_points(count: int, radius: float = 1.0, offset: float = 0.0) -> np.ndarray:
    theta = np.linspace(0.0, 2.0 * math.pi, count, endpoint=False) + offset
    return np.column_stack([np.cos(theta), np.sin(theta)]) * radius
