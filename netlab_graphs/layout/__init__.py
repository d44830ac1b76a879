"""
Layout algorithms.

Importing this package registers every layout compute function.
"""

from . import geometric, spectral, force, layered  # noqa: F401  (registration)
from .base import Layout, list_layouts
from .geometric import (
    circular_layout_compute,
    random_layout_compute,
    shell_layout_compute,
    spiral_layout_compute,
)
from .force import force_directed_layout_compute, kamada_kawai_layout_compute
from .layered import bfs_layout_compute, bipartite_layout_compute, multipartite_layout_compute
from .spectral import spectral_layout_compute
from .utils import rescale_layout

__all__ = [
    "Layout",
    "list_layouts",
    "rescale_layout",
    "random_layout_compute",
    "circular_layout_compute",
    "spiral_layout_compute",
    "shell_layout_compute",
    "spectral_layout_compute",
    "force_directed_layout_compute",
    "kamada_kawai_layout_compute",
    "bipartite_layout_compute",
    "multipartite_layout_compute",
    "bfs_layout_compute",
]
