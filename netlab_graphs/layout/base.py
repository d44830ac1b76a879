"""
Layout - one selectable layout variant plus its options.

``get_positions`` makes sure statistics listed in the layout's ``requires``
metadata are available before dispatching: the spectral layout, for
instance, pulls the ``eigenvector-laplacian`` coordinates first and hands
them over as ``options["node_properties"]``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from netlab_dispatch.core.errors import InputError
from netlab_dispatch.core.manager import ComputeManager, get_manager
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY, AlgorithmSpec
from netlab_dispatch.core.tasks import ProgressCallback, TaskDescriptor, TaskHandle

from ..compute_utils import serialize_graph, validate_graph_data
from ..graph import Graph
from ..statistics.base import StatisticAlgorithm

logger = logging.getLogger(__name__)

GraphLike = Union[Graph, Dict[str, Any]]


class Layout:
    def __init__(self, name: str, **options: Any) -> None:
        spec = GLOBAL_ALGORITHM_REGISTRY.get(name)
        if spec.kind != "layout":
            raise InputError(f"'{name}' is a {spec.kind}, not a layout")
        self.spec: AlgorithmSpec = spec
        self.options: Dict[str, Any] = {**spec.default_options, **options}

    @property
    def name(self) -> str:
        return self.spec.key

    @property
    def required_stats(self) -> List[str]:
        return list(self.spec.requires)

    def get_info(self) -> Dict[str, Any]:
        info = self.spec.as_dict()
        info["options"] = dict(self.options)
        return info

    def task_for(self, graph: GraphLike, options: Optional[Dict[str, Any]] = None) -> TaskDescriptor:
        if isinstance(graph, Graph):
            graph_data = serialize_graph(graph)
        else:
            validate_graph_data(graph)
            graph_data = graph
        merged = {k: v for k, v in {**self.options, **(options or {})}.items() if v is not None}
        return TaskDescriptor(self.spec.module, self.spec.function_name, [graph_data, merged])

    def ensure_stats(self, graph: GraphLike, manager: Optional[ComputeManager] = None) -> Dict[str, Any]:
        """
        Compute every required statistic not already supplied and merge the
        per-node results into ``node_properties``. Returns extra options.
        """
        if not self.required_stats or self.options.get("node_properties"):
            return {}
        props: Dict[Any, Dict[str, Any]] = {}
        for stat in self.required_stats:
            logger.info("layout %s: computing required statistic %s", self.name, stat)
            values = StatisticAlgorithm(stat).calculate(graph, manager=manager)
            for node, value in values.items():
                entry = props.setdefault(node, {})
                if isinstance(value, dict):
                    entry.update(value)
                else:
                    entry[stat] = value
        return {"node_properties": props}

    def submit(
        self,
        graph: GraphLike,
        on_progress: Optional[ProgressCallback] = None,
        manager: Optional[ComputeManager] = None,
        extra_options: Optional[Dict[str, Any]] = None,
        **execute_kwargs: Any,
    ) -> TaskHandle:
        return (manager or get_manager()).execute(
            self.task_for(graph, extra_options), on_progress, **execute_kwargs
        )

    def get_positions(self, graph: GraphLike, on_progress=None, manager=None, **execute_kwargs) -> Dict[Any, Dict[str, float]]:
        extra = self.ensure_stats(graph, manager)
        return self.submit(graph, on_progress, manager, extra, **execute_kwargs).result()

    async def get_positions_async(self, graph: GraphLike, on_progress=None, manager=None, **execute_kwargs):
        extra = self.ensure_stats(graph, manager)
        return await self.submit(graph, on_progress, manager, extra, **execute_kwargs)

    def compute_inline(self, graph: GraphLike, on_progress=None) -> Dict[Any, Dict[str, float]]:
        """Run in the current process; required statistics are not fetched."""
        task = self.task_for(graph)
        return self.spec.func(*task.args, on_progress)

    def __repr__(self) -> str:
        return f"Layout({self.name!r})"


def list_layouts() -> List[Dict[str, Any]]:
    return GLOBAL_ALGORITHM_REGISTRY.describe("layout")
