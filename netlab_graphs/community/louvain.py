"""
Louvain modularity optimisation.

The level structure, the per-level bookkeeping and the move-gain formulas
follow python-louvain (community_louvain.py):

    Copyright (c) 2009, Thomas Aynaud <thomas.aynaud@lip6.fr>
    All rights reserved.

    Redistribution and use in source and binary forms, with or without
    modification, are permitted provided that the following conditions are
    met:

    * Redistributions of source code must retain the above copyright
      notice, this list of conditions and the following disclaimer.
    * Redistributions in binary form must reproduce the above copyright
      notice, this list of conditions and the following disclaimer in the
      documentation and/or other materials provided with the distribution.
    * Neither the name of the author nor the names of its contributors may
      be used to endorse or promote products derived from this software
      without specific prior written permission.

    THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS
    "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT
    LIMITED TO, THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A
    PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT OWNER
    OR CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL,
    EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
    PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR
    PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
    LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING
    NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS
    SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

Level by level:

    1. every node starts in its own community (or an initial partition);
    2. nodes are visited in a fixed order and moved to the neighbouring
       community with the largest positive modularity gain, repeating until
       a full pass improves modularity by less than MIN_GAIN;
    3. communities are collapsed into super-nodes and the process repeats on
       the induced graph, until a level no longer improves modularity.

Determinism: nodes are visited in ``node_sort_key`` order (or a seeded
shuffle of it) and gain ties go to the lowest community id.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from ..compute_utils import ProgressReporter, sorted_nodes
from ..graph import Graph, NodeId

MIN_GAIN = 1e-7
PASS_MAX = -1


class _Status:
    """Bookkeeping for one level: community membership and weight sums."""

    def __init__(self) -> None:
        self.node2com: Dict[Any, int] = {}
        self.total_weight = 0.0
        self.internals: Dict[int, float] = {}
        self.degrees: Dict[int, float] = {}
        self.gdegrees: Dict[Any, float] = {}
        self.loops: Dict[Any, float] = {}

    def init(self, graph: Graph, order: List[Any], part: Optional[Mapping[Any, int]] = None) -> None:
        self.node2com = {}
        self.internals = defaultdict(float)
        self.degrees = defaultdict(float)
        self.gdegrees = {}
        self.loops = {}
        self.total_weight = float(sum(w for _, _, w in graph.unique_edges()))

        for count, node in enumerate(order):
            nbrs = graph.adjacency[node]
            loop = float(nbrs.get(node, 0.0))
            deg = float(sum(nbrs.values())) + loop
            com = part[node] if part is not None else count
            self.node2com[node] = com
            self.degrees[com] += deg
            self.gdegrees[node] = deg
            self.loops[node] = loop

        if part is None:
            for node in order:
                self.internals[self.node2com[node]] = self.loops[node]
        else:
            for u, v, w in graph.unique_edges():
                if self.node2com[u] == self.node2com[v]:
                    self.internals[self.node2com[u]] += float(w)


def _neighcom(node: Any, graph: Graph, status: _Status) -> Dict[int, float]:
    weights: Dict[int, float] = defaultdict(float)
    for nbr, w in graph.adjacency[node].items():
        if nbr != node:
            weights[status.node2com[nbr]] += float(w)
    return weights


def _remove(node: Any, com: int, weight: float, status: _Status) -> None:
    status.degrees[com] -= status.gdegrees[node]
    status.internals[com] -= weight + status.loops[node]
    status.node2com[node] = -1


def _insert(node: Any, com: int, weight: float, status: _Status) -> None:
    status.node2com[node] = com
    status.degrees[com] += status.gdegrees[node]
    status.internals[com] += weight + status.loops[node]


def _modularity(status: _Status, resolution: float) -> float:
    links = status.total_weight
    if links == 0:
        return 0.0
    result = 0.0
    for com in set(status.node2com.values()):
        in_degree = status.internals.get(com, 0.0)
        degree = status.degrees.get(com, 0.0)
        result += in_degree / links - resolution * (degree / (2.0 * links)) ** 2
    return result


def _one_level(graph: Graph, status: _Status, order: List[Any], resolution: float, max_passes: int) -> None:
    modified = True
    passes = 0
    new_mod = _modularity(status, resolution)

    while modified and passes != max_passes:
        cur_mod = new_mod
        modified = False
        passes += 1

        for node in order:
            com_node = status.node2com[node]
            degc_totw = status.gdegrees[node] / (status.total_weight * 2.0)
            neigh = _neighcom(node, graph, status)
            remove_cost = -neigh.get(com_node, 0.0) + resolution * (
                status.degrees[com_node] - status.gdegrees[node]
            ) * degc_totw
            _remove(node, com_node, neigh.get(com_node, 0.0), status)

            best_com = com_node
            best_increase = 0.0
            for com in sorted(neigh):
                incr = remove_cost + neigh[com] - resolution * status.degrees[com] * degc_totw
                if incr > best_increase:
                    best_increase = incr
                    best_com = com
            _insert(node, best_com, neigh.get(best_com, 0.0), status)
            if best_com != com_node:
                modified = True

        new_mod = _modularity(status, resolution)
        if new_mod - cur_mod < MIN_GAIN:
            break


def renumber(partition: Mapping[Any, int], order: List[Any]) -> Dict[Any, int]:
    """Relabel communities 0..k-1 by first appearance along ``order``."""
    mapping: Dict[int, int] = {}
    out = {}
    for node in order:
        com = partition[node]
        if com not in mapping:
            mapping[com] = len(mapping)
        out[node] = mapping[com]
    return out


def induced_graph(partition: Mapping[Any, int], graph: Graph) -> Graph:
    """Collapse each community into one node; intra-community weight becomes a self loop."""
    ret = Graph()
    ret.add_nodes_from(sorted(set(partition.values())))
    for u, v, w in graph.unique_edges():
        c1, c2 = partition[u], partition[v]
        prev = ret.get_edge_weight(c1, c2)
        if prev is None:
            ret.add_edge(c1, c2, float(w))
        else:
            ret.update_edge_weight(c1, c2, prev + float(w))
    return ret


def _visit_order(graph: Graph, rng: Optional[np.random.Generator]) -> List[Any]:
    order = sorted_nodes(graph.get_node_list())
    if rng is not None:
        order = [order[i] for i in rng.permutation(len(order))]
    return order


def generate_dendrogram(
    graph: Graph,
    initial_partition: Optional[Mapping[Any, Any]] = None,
    resolution: float = 1.0,
    seed: Optional[int] = None,
    max_levels: Optional[int] = None,
    max_passes: int = PASS_MAX,
    report: Optional[ProgressReporter] = None,
) -> List[Dict[Any, int]]:
    """
    Return the list of partitions, one per level. Level 0 maps original
    nodes to communities; level i maps the communities of level i-1.
    """
    nodes = sorted_nodes(graph.get_node_list())
    # no positive total weight: every gain is undefined, keep singletons
    if sum(float(w) for _, _, w in graph.unique_edges()) <= 0:
        return [{node: i for i, node in enumerate(nodes)}]

    rng = np.random.default_rng(seed) if seed is not None else None
    part = None
    if initial_partition is not None:
        part = renumber({n: initial_partition.get(n, ("__own__", n)) for n in nodes}, nodes)

    current = graph
    status = _Status()
    order = _visit_order(current, rng)
    status.init(current, order, part)

    dendrogram: List[Dict[Any, int]] = []
    _one_level(current, status, order, resolution, max_passes)
    mod = _modularity(status, resolution)
    partition = renumber(status.node2com, sorted_nodes(current.get_node_list()))
    dendrogram.append(partition)
    if report is not None:
        report.report(0.5)

    while max_levels is None or len(dendrogram) < max_levels:
        current = induced_graph(partition, current)
        order = _visit_order(current, rng)
        status.init(current, order)
        _one_level(current, status, order, resolution, max_passes)
        new_mod = _modularity(status, resolution)
        if new_mod - mod < MIN_GAIN:
            break
        partition = renumber(status.node2com, sorted_nodes(current.get_node_list()))
        dendrogram.append(partition)
        mod = new_mod
        if report is not None:
            report.report(1.0 - 0.5 ** len(dendrogram))

    return dendrogram


def partition_at_level(dendrogram: List[Dict[Any, int]], level: int) -> Dict[Any, int]:
    partition = dict(dendrogram[0])
    for index in range(1, level + 1):
        for node, community in partition.items():
            partition[node] = dendrogram[index][community]
    return partition


def best_partition(graph: Graph, **kwargs: Any) -> Dict[NodeId, int]:
    dendrogram = generate_dendrogram(graph, **kwargs)
    return partition_at_level(dendrogram, len(dendrogram) - 1)
