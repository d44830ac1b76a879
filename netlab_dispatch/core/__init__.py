"""
Core components for the dispatch layer.
"""

from .errors import (
    CancellationError,
    InputError,
    NetlabError,
    NotFoundError,
    PreconditionError,
    TaskTimeoutError,
    WorkerFailure,
)
from .registry import GLOBAL_ALGORITHM_REGISTRY, AlgorithmRegistry, AlgorithmSpec
from .settings import DispatchSettings, load_settings
from .tasks import TaskDescriptor, TaskHandle, TaskState, ensure_plain_data
from .pool import WorkerPool
from .manager import ComputeManager, get_manager, reset_manager

__all__ = [
    "NetlabError",
    "InputError",
    "NotFoundError",
    "PreconditionError",
    "TaskTimeoutError",
    "WorkerFailure",
    "CancellationError",
    "AlgorithmRegistry",
    "AlgorithmSpec",
    "GLOBAL_ALGORITHM_REGISTRY",
    "DispatchSettings",
    "load_settings",
    "TaskDescriptor",
    "TaskHandle",
    "TaskState",
    "ensure_plain_data",
    "WorkerPool",
    "ComputeManager",
    "get_manager",
    "reset_manager",
]
