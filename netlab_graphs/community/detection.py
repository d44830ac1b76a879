"""
CommunityDetection - strategy facade over the community algorithms.

``detect_communities`` runs in the calling process; ``submit`` ships the
same computation to the worker pool through ``louvain_compute``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type, Union

from netlab_dispatch.core.errors import InputError
from netlab_dispatch.core.manager import ComputeManager, get_manager
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY, normalize_key
from netlab_dispatch.core.tasks import ProgressCallback, TaskDescriptor, TaskHandle

from ..compute_utils import ProgressReporter, reconstruct_graph, serialize_graph
from ..graph import Graph
from .base import (
    CommunityAlgorithm,
    CommunityResult,
    calculate_modularity,
    community_groups,
    community_sizes,
)
from .louvain import generate_dendrogram, partition_at_level


class LouvainAlgorithm(CommunityAlgorithm):
    name = "louvain"
    description = "Multi-level greedy modularity optimisation (Blondel et al., 2008)."

    def detect(self, graph: Graph, progress_callback: ProgressCallback = None) -> CommunityResult:
        opts = self.options
        resolution = float(opts.get("resolution", 1.0))
        report = ProgressReporter(progress_callback)
        dendrogram = generate_dendrogram(
            graph,
            initial_partition=opts.get("initial_partition"),
            resolution=resolution,
            seed=opts.get("seed"),
            max_levels=opts.get("max_levels"),
            max_passes=-1 if opts.get("max_passes") is None else int(opts["max_passes"]),
            report=report,
        )
        partition = partition_at_level(dendrogram, len(dendrogram) - 1)
        result = CommunityResult(
            communities=partition,
            modularity=calculate_modularity(graph, partition, resolution),
            algorithm=self.name,
            levels=len(dendrogram),
            options=dict(opts),
        )
        report.finish()
        return result


ALGORITHMS: Dict[str, Type[CommunityAlgorithm]] = {
    "louvain": LouvainAlgorithm,
}


@GLOBAL_ALGORITHM_REGISTRY.decorator(
    key="louvain",
    label="Louvain",
    kind="community",
    description=LouvainAlgorithm.description,
    complexity="O(E log V) typical",
    default_options={"resolution": 1.0},
)
def louvain_compute(graph_data, options=None, progress_callback: ProgressCallback = None) -> Dict[str, Any]:
    graph = reconstruct_graph(graph_data)
    return LouvainAlgorithm(**dict(options or {})).detect(graph, progress_callback).to_dict()


class CommunityDetection:
    def __init__(self, manager: Optional[ComputeManager] = None) -> None:
        self.manager = manager

    @staticmethod
    def create_algorithm(algorithm: Union[str, CommunityAlgorithm] = "louvain", **options: Any) -> CommunityAlgorithm:
        if isinstance(algorithm, CommunityAlgorithm):
            return algorithm
        cls = ALGORITHMS.get(normalize_key(algorithm))
        if cls is None:
            raise InputError(
                f"Unknown community algorithm '{algorithm}'. Available: {', '.join(ALGORITHMS)}"
            )
        return cls(**options)

    def detect_communities(
        self,
        graph: Graph,
        algorithm: Union[str, CommunityAlgorithm] = "louvain",
        on_progress: ProgressCallback = None,
        **options: Any,
    ) -> CommunityResult:
        return self.create_algorithm(algorithm, **options).detect(graph, on_progress)

    def submit(
        self,
        graph: Graph,
        algorithm: str = "louvain",
        on_progress: ProgressCallback = None,
        **options: Any,
    ) -> TaskHandle:
        spec = GLOBAL_ALGORITHM_REGISTRY.get(algorithm)
        if spec.kind != "community":
            raise InputError(f"'{algorithm}' is not a community algorithm")
        task = TaskDescriptor(spec.module, spec.function_name, [serialize_graph(graph), dict(options)])
        return (self.manager or get_manager()).execute(task, on_progress)

    @staticmethod
    def calculate_modularity(graph: Graph, communities: Mapping[Any, Any], resolution: float = 1.0) -> float:
        return calculate_modularity(graph, communities, resolution)

    @staticmethod
    def get_community_groups(communities: Mapping[Any, Any]) -> Dict[Any, List[Any]]:
        return community_groups(communities)

    @staticmethod
    def get_community_sizes(communities: Mapping[Any, Any]) -> Dict[Any, int]:
        return community_sizes(communities)

    @staticmethod
    def list_algorithms() -> List[Dict[str, Any]]:
        return [s.as_dict() for s in GLOBAL_ALGORITHM_REGISTRY.list("community")]
