from .base import (
    CommunityAlgorithm,
    CommunityResult,
    calculate_modularity,
    community_groups,
    community_sizes,
)
from .detection import CommunityDetection, LouvainAlgorithm, louvain_compute
from .louvain import best_partition, generate_dendrogram, induced_graph, partition_at_level

__all__ = [
    "CommunityAlgorithm",
    "CommunityResult",
    "CommunityDetection",
    "LouvainAlgorithm",
    "louvain_compute",
    "calculate_modularity",
    "community_groups",
    "community_sizes",
    "best_partition",
    "generate_dendrogram",
    "induced_graph",
    "partition_at_level",
]
