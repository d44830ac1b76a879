"""
StatisticAlgorithm - one selectable statistic variant plus its options.

The variant is chosen by registry key (``StatisticAlgorithm("ego_density")``
and ``StatisticAlgorithm("ego-density")`` are the same), so call sites stay
uniform whether the caller holds a name or an instance.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Union

from netlab_dispatch.core.errors import InputError
from netlab_dispatch.core.manager import ComputeManager, get_manager
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY, AlgorithmSpec
from netlab_dispatch.core.tasks import ProgressCallback, TaskDescriptor, TaskHandle

from ..compute_utils import serialize_graph, validate_graph_data
from ..graph import Graph


class StatisticAlgorithm:
    def __init__(self, name: str, **options: Any) -> None:
        spec = GLOBAL_ALGORITHM_REGISTRY.get(name)
        if spec.kind != "statistic":
            raise InputError(f"'{name}' is a {spec.kind}, not a statistic")
        self.spec: AlgorithmSpec = spec
        self.options: Dict[str, Any] = {**spec.default_options, **options}

    @property
    def name(self) -> str:
        return self.spec.key

    @property
    def scope(self) -> str:
        return self.spec.scope or "node"

    def is_node_level(self) -> bool:
        return self.scope == "node"

    def is_graph_level(self) -> bool:
        return self.scope == "graph"

    def get_info(self) -> Dict[str, Any]:
        info = self.spec.as_dict()
        info["options"] = dict(self.options)
        return info

    def task_for(self, graph: Union[Graph, Dict[str, Any]], node_ids: Optional[Sequence[Any]] = None) -> TaskDescriptor:
        if isinstance(graph, Graph):
            graph_data = serialize_graph(graph)
        else:
            validate_graph_data(graph)
            graph_data = graph
        return TaskDescriptor(
            module=self.spec.module,
            function_name=self.spec.function_name,
            args=[graph_data, list(node_ids) if node_ids is not None else None, dict(self.options)],
        )

    def submit(
        self,
        graph: Union[Graph, Dict[str, Any]],
        node_ids: Optional[Sequence[Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        manager: Optional[ComputeManager] = None,
        **execute_kwargs: Any,
    ) -> TaskHandle:
        manager = manager or get_manager()
        return manager.execute(self.task_for(graph, node_ids), on_progress, **execute_kwargs)

    def calculate(self, graph, node_ids=None, on_progress=None, manager=None, **execute_kwargs) -> Any:
        """Blocking convenience around ``submit``."""
        return self.submit(graph, node_ids, on_progress, manager, **execute_kwargs).result()

    async def calculate_async(self, graph, node_ids=None, on_progress=None, manager=None, **execute_kwargs) -> Any:
        return await self.submit(graph, node_ids, on_progress, manager, **execute_kwargs)

    def compute_inline(self, graph, node_ids=None, on_progress=None) -> Any:
        """Run the compute function in the current process."""
        task = self.task_for(graph, node_ids)
        return self.spec.func(*task.args, on_progress)

    def __repr__(self) -> str:
        return f"StatisticAlgorithm({self.name!r}, scope={self.scope!r})"


def create_statistic(name_or_algorithm: Union[str, StatisticAlgorithm], **options: Any) -> StatisticAlgorithm:
    if isinstance(name_or_algorithm, StatisticAlgorithm):
        return name_or_algorithm
    return StatisticAlgorithm(name_or_algorithm, **options)
