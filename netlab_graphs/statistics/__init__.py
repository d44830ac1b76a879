"""
Statistics package.

Importing this package registers every statistic compute function with
GLOBAL_ALGORITHM_REGISTRY.
"""

from . import node_stats, spectral, graph_stats  # noqa: F401  (registration)
from .base import StatisticAlgorithm, create_statistic
from .network_statistics import NetworkStatistics
from .node_stats import find_maximal_cliques
from .spectral import LAPLACIAN_KEY, laplacian_coordinates

__all__ = [
    "StatisticAlgorithm",
    "create_statistic",
    "NetworkStatistics",
    "find_maximal_cliques",
    "laplacian_coordinates",
    "LAPLACIAN_KEY",
]
