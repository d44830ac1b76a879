"""
netlab_dispatch/core/tasks.py
=============================

Static task types used across the dispatch layer:

    • TaskDescriptor - what to run (module, function name, plain-data args)
    • TaskState      - runtime status of one submitted task
    • TaskHandle     - caller-facing handle wrapping a Future

IMPORTANT:
    This module MUST NOT import the pool or the worker entrypoint.
"""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from .errors import InputError


TaskStatus = Literal[
    "pending", "running", "completed", "failed", "cancelled", "timed_out"
]
TERMINAL_STATUSES = ("completed", "failed", "cancelled", "timed_out")

ProgressCallback = Callable[[float], None]


def ensure_plain_data(value: Any, path: str = "args") -> None:
    """
    Reject anything that is not structurally clonable plain data.

    Allowed: dict, list, tuple, str, int, float, bool, None.
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            ensure_plain_data(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for k, item in value.items():
            if not isinstance(k, (str, int, float, bool)) and k is not None:
                raise InputError(f"{path} has a non-plain key of type {type(k).__name__}")
            ensure_plain_data(item, f"{path}[{k!r}]")
        return
    raise InputError(
        f"{path} is not plain data (got {type(value).__name__}); "
        "only dicts, lists and scalars can cross the worker boundary"
    )


# ============================================================================
# Task Descriptor
# ============================================================================

@dataclass(frozen=True)
class TaskDescriptor:
    """
    A pure, idempotent invocation: ``module.function_name(*args)``.

    For statistic and layout tasks ``args[0]`` is always the serialized
    graph.
    """

    module: str
    function_name: str
    args: List[Any] = field(default_factory=list)

    def validate(self) -> None:
        if not self.module or not isinstance(self.module, str):
            raise InputError("Task descriptor requires a module path")
        if not self.function_name or not isinstance(self.function_name, str):
            raise InputError("Task descriptor requires a function name")
        ensure_plain_data(list(self.args))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "function_name": self.function_name,
            "args": list(self.args),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskDescriptor":
        if not isinstance(data, dict):
            raise InputError("Task descriptor must be a mapping")
        name = data.get("function_name", data.get("functionName"))
        return cls(
            module=data.get("module", ""),
            function_name=name or "",
            args=list(data.get("args") or []),
        )


# ============================================================================
# Task Runtime State
# ============================================================================

@dataclass
class TaskState:
    """
    Runtime state for a submitted task, tracking:

        - lifecycle status
        - timestamps
        - which worker ran it
        - the error message, if any
    """

    status: TaskStatus = "pending"
    submitted_ts: float = field(default_factory=time.time)
    start_ts: Optional[float] = None
    end_ts: Optional[float] = None
    worker_id: Optional[int] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def duration(self) -> Optional[float]:
        """Execution time of the last attempt, or None if incomplete."""
        if self.start_ts is None or self.end_ts is None:
            return None
        return self.end_ts - self.start_ts

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ============================================================================
# Task Handle
# ============================================================================

@dataclass(eq=False)
class TaskHandle:
    """
    Caller-facing view of one task.

    The handle's Future resolves with the compute function's return value
    or fails with one of the errors in ``netlab_dispatch.core.errors``.
    ``progress`` never decreases.
    """

    task_id: str
    descriptor: TaskDescriptor
    timeout: Optional[float] = None
    on_progress: Optional[ProgressCallback] = None
    retries_on_timeout: int = 0

    state: TaskState = field(default_factory=TaskState)
    progress: float = 0.0
    future: Future = field(default_factory=Future)

    _canceller: Optional[Callable[["TaskHandle"], bool]] = field(
        default=None, repr=False
    )

    @property
    def status(self) -> TaskStatus:
        return self.state.status

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> Any:
        return self.future.result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout)

    def cancel(self) -> bool:
        """Abort the task. Returns False if it had already finished."""
        if self.future.done() or self._canceller is None:
            return False
        return self._canceller(self)

    def add_done_callback(self, fn: Callable[[Future], None]) -> None:
        self.future.add_done_callback(fn)

    def __await__(self):
        return asyncio.wrap_future(self.future).__await__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "module": self.descriptor.module,
            "function_name": self.descriptor.function_name,
            "status": self.state.status,
            "progress": self.progress,
            "worker_id": self.state.worker_id,
            "attempts": self.state.attempts,
            "duration": self.state.duration,
            "error": self.state.error,
        }
