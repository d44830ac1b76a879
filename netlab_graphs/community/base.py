"""
Community detection building blocks shared by every algorithm.

Exports:
    - CommunityResult      : assignment + modularity, with to_dict()
    - CommunityAlgorithm   : strategy interface
    - calculate_modularity : modularity of an arbitrary partition
    - community_groups / community_sizes
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from netlab_dispatch.core.errors import InputError

from ..compute_utils import ProgressCallback, node_sort_key
from ..graph import Graph, NodeId


@dataclass
class CommunityResult:
    communities: Dict[NodeId, int]
    modularity: float
    algorithm: str = "louvain"
    levels: int = 1
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def num_communities(self) -> int:
        return len(set(self.communities.values()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "communities": dict(self.communities),
            "modularity": self.modularity,
            "num_communities": self.num_communities,
            "algorithm": self.algorithm,
            "levels": self.levels,
        }


class CommunityAlgorithm:
    """Strategy interface: subclasses implement ``detect``."""

    name: str = ""
    description: str = ""

    def __init__(self, **options: Any) -> None:
        self.options = options

    def detect(self, graph: Graph, progress_callback: ProgressCallback = None) -> CommunityResult:
        raise NotImplementedError

    def get_info(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "options": dict(self.options)}


def calculate_modularity(
    graph: Graph,
    communities: Mapping[NodeId, Any],
    resolution: float = 1.0,
) -> float:
    """
    Q = 1/(2m) * sum over same-community pairs (A_ij - k_i k_j / 2m),
    evaluated community by community as sum_c [L_c/m - (d_c/2m)^2] with
    weighted degrees (self loops count twice towards a degree).
    """
    missing = [n for n in graph.get_node_list() if n not in communities]
    if missing:
        raise InputError(f"Partition does not assign a community to {missing[:5]!r}")

    m = sum(w for _, _, w in graph.unique_edges())
    if m == 0:
        return 0.0

    internal: Dict[Any, float] = defaultdict(float)
    degree: Dict[Any, float] = defaultdict(float)
    for node in graph.get_node_list():
        nbrs = graph.adjacency[node]
        degree[communities[node]] += sum(nbrs.values()) + nbrs.get(node, 0)
    for u, v, w in graph.unique_edges():
        if communities[u] == communities[v]:
            internal[communities[u]] += w

    return float(sum(
        internal[c] / m - resolution * (degree[c] / (2.0 * m)) ** 2 for c in degree
    ))


def community_groups(communities: Mapping[NodeId, Any]) -> Dict[Any, List[NodeId]]:
    groups: Dict[Any, List[NodeId]] = defaultdict(list)
    for node, cid in communities.items():
        groups[cid].append(node)
    return {cid: sorted(members, key=node_sort_key) for cid, members in groups.items()}


def community_sizes(communities: Mapping[NodeId, Any]) -> Dict[Any, int]:
    return {cid: len(members) for cid, members in community_groups(communities).items()}
