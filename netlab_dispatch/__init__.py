"""
netlab_dispatch
===============

Runs registered compute functions in isolated worker processes.

Public API
----------
- WorkerPool, ComputeManager, get_manager
- TaskDescriptor, TaskHandle
- GLOBAL_ALGORITHM_REGISTRY
- error classes
"""

from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all

__all__ = list(_core_all)
