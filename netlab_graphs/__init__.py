"""
netlab_graphs
=============

Graph model and the pure compute functions that run on it.

Public API
----------
- Graph, Connection
- serialize_graph, reconstruct_graph, validate_graph_data
- StatisticAlgorithm, NetworkStatistics
- CommunityDetection, calculate_modularity
- Layout, list_layouts

Importing the package registers every statistic, community and layout
compute function with ``netlab_dispatch.GLOBAL_ALGORITHM_REGISTRY``.
"""

from .graph import Connection, Graph
from .compute_utils import reconstruct_graph, serialize_graph, validate_graph_data
from .statistics import NetworkStatistics, StatisticAlgorithm, create_statistic
from .community import CommunityDetection, CommunityResult, calculate_modularity
from .layout import Layout, list_layouts

__all__ = [
    "Graph",
    "Connection",
    "serialize_graph",
    "reconstruct_graph",
    "validate_graph_data",
    "StatisticAlgorithm",
    "create_statistic",
    "NetworkStatistics",
    "CommunityDetection",
    "CommunityResult",
    "calculate_modularity",
    "Layout",
    "list_layouts",
]
