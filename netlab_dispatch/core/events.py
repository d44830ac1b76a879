"""
Dispatch events.

These dataclasses are passed (via ``to_dict()``) to the ``emit(kind,
payload)`` callback configured on a pool, so that a UI or log sink can follow
task lifecycles without touching pool internals.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .tasks import TaskHandle


def _ts() -> float:
    return time.time()


@dataclass
class TaskSubmittedEvent:
    handle: TaskHandle
    queue_depth: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "task_submitted",
            "task_id": self.handle.task_id,
            "module": self.handle.descriptor.module,
            "function_name": self.handle.descriptor.function_name,
            "queue_depth": self.queue_depth,
            "ts": _ts(),
        }


@dataclass
class TaskStartEvent:
    handle: TaskHandle
    worker_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "task_start",
            "task_id": self.handle.task_id,
            "function_name": self.handle.descriptor.function_name,
            "worker_id": self.worker_id,
            "attempt": self.handle.state.attempts,
            "ts": _ts(),
        }


@dataclass
class TaskProgressEvent:
    handle: TaskHandle

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "task_progress",
            "task_id": self.handle.task_id,
            "progress": self.handle.progress,
            "ts": _ts(),
        }


@dataclass
class TaskEndEvent:
    """
    Emitted whenever a task settles (completed, failed, cancelled or timed out).
    """

    handle: TaskHandle
    worker_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        state = self.handle.state
        return {
            "event": "task_end",
            "task_id": self.handle.task_id,
            "function_name": self.handle.descriptor.function_name,
            "status": state.status,
            "error": state.error,
            "duration": state.duration,
            "worker_id": self.worker_id,
            "ts": _ts(),
        }


__all__ = [
    "TaskSubmittedEvent",
    "TaskStartEvent",
    "TaskProgressEvent",
    "TaskEndEvent",
]
