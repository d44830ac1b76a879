"""
NetworkStatistics - facade over the registered statistics.

Responsibilities
----------------
* calculate one statistic by name or instance (dispatched to a worker)
* calculate several at once, split into node-level and graph-level results
* list available statistics and their metadata
* ``analyze`` / ``analyze_frame``: in-process per-node feature records
  (or a pandas DataFrame), the tabular view used by dashboards
  (``[{"id": n, "degree": .., "modularity": community}, ...]``)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from netlab_dispatch.core.errors import InputError
from netlab_dispatch.core.manager import ComputeManager
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

from ..graph import Graph
from .base import StatisticAlgorithm, create_statistic

logger = logging.getLogger(__name__)

StatisticLike = Union[str, StatisticAlgorithm]

DEFAULT_FEATURES = ("degree", "closeness", "betweenness", "clustering")


class NetworkStatistics:
    def __init__(self, manager: Optional[ComputeManager] = None) -> None:
        self.manager = manager

    # ------------------------------------------------------------------ #

    def calculate(
        self,
        graph: Graph,
        statistic: StatisticLike,
        node_ids: Optional[Sequence[Any]] = None,
        on_progress=None,
        **options: Any,
    ) -> Any:
        algorithm = create_statistic(statistic, **options)
        return algorithm.calculate(graph, node_ids, on_progress, manager=self.manager)

    def calculate_multiple(
        self,
        graph: Graph,
        statistics: Iterable[StatisticLike],
        node_ids: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Submit every statistic before waiting on any, so they run in
        parallel across the pool.
        """
        algorithms = [create_statistic(s) for s in statistics]
        handles = [(a, a.submit(graph, node_ids, manager=self.manager)) for a in algorithms]
        out: Dict[str, Dict[str, Any]] = {"node": {}, "graph": {}}
        for algorithm, handle in handles:
            out[algorithm.scope][algorithm.name] = handle.result()
        return out

    # ------------------------------------------------------------------ #

    @staticmethod
    def list_statistics(scope: Optional[str] = None) -> List[Dict[str, Any]]:
        return [s.as_dict() for s in GLOBAL_ALGORITHM_REGISTRY.list("statistic", scope)]

    @staticmethod
    def list_node_statistics() -> List[str]:
        return [s.key for s in GLOBAL_ALGORITHM_REGISTRY.list("statistic", "node")]

    @staticmethod
    def list_graph_statistics() -> List[str]:
        return [s.key for s in GLOBAL_ALGORITHM_REGISTRY.list("statistic", "graph")]

    @staticmethod
    def get_algorithm_info(name: str) -> Dict[str, Any]:
        return StatisticAlgorithm(name).get_info()

    # ------------------------------------------------------------------ #

    def analyze(
        self,
        graph: Graph,
        features: Iterable[str] = DEFAULT_FEATURES,
    ) -> List[Dict[str, Any]]:
        """
        Per-node records for the requested node-level features, computed in
        the current process. The pseudo-feature ``modularity`` adds each
        node's Louvain community id.
        """
        columns: Dict[str, Dict[Any, Any]] = {}
        for feature in features:
            if feature == "modularity":
                from ..community.detection import CommunityDetection
                columns["modularity"] = CommunityDetection().detect_communities(graph).communities
                continue
            algorithm = create_statistic(feature)
            if not algorithm.is_node_level():
                raise InputError(f"'{feature}' is a graph-level statistic and cannot be a per-node feature")
            columns[feature] = algorithm.compute_inline(graph)
            logger.debug("analyze: computed %s", algorithm.name)

        records = []
        for node in graph.get_node_list():
            record: Dict[str, Any] = {"id": node}
            for name, values in columns.items():
                record[name] = values.get(node)
            records.append(record)
        return records

    def analyze_frame(
        self,
        graph: Graph,
        features: Iterable[str] = DEFAULT_FEATURES,
    ) -> pd.DataFrame:
        """``analyze`` as a DataFrame indexed by node id."""
        features = list(features)
        records = self.analyze(graph, features)
        frame = pd.DataFrame.from_records(records, columns=["id", *features])
        return frame.set_index("id")
