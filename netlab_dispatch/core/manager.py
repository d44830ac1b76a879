"""
Process-wide compute manager.

Exports:
    ComputeManager  – lazily initialised facade over a WorkerPool, with an
                      inline mode that runs compute functions in-process
    get_manager()   – the shared manager used by the algorithm facades
    reset_manager() – terminate and drop the shared manager
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from typing import Any, Dict, Optional, Union

from .errors import NetlabError, WorkerFailure
from .pool import WorkerPool, EmitFn, _USE_DEFAULT, clamp_progress
from .settings import DispatchSettings, load_settings
from .tasks import ProgressCallback, TaskDescriptor, TaskHandle
from .worker import resolve_compute_function, run_descriptor

logger = logging.getLogger(__name__)


class ComputeManager:
    def __init__(
        self,
        settings: Optional[DispatchSettings] = None,
        emit: Optional[EmitFn] = None,
    ) -> None:
        self.settings = settings
        self.emit = emit
        self._pool: Optional[WorkerPool] = None
        self._lock = threading.Lock()
        self._inline_ids = 0

    # ------------------------------------------------------------------ #

    def initialize(self, settings: Optional[DispatchSettings] = None) -> None:
        with self._lock:
            if settings is not None:
                self.settings = settings
            if self.settings is None:
                self.settings = load_settings()
            if self.settings.inline or self._pool is not None:
                return
            self._pool = WorkerPool(self.settings, emit=self.emit)
            self._pool.start()

    @property
    def pool(self) -> Optional[WorkerPool]:
        return self._pool

    def execute(
        self,
        task: Union[TaskDescriptor, Dict[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
        timeout: Any = _USE_DEFAULT,
        retry_on_timeout: bool = False,
    ) -> TaskHandle:
        self.initialize()
        assert self.settings is not None
        if self.settings.inline:
            return self._execute_inline(task, on_progress)
        assert self._pool is not None
        return self._pool.execute(
            task,
            on_progress=on_progress,
            timeout=timeout,
            retries_on_timeout=1 if retry_on_timeout else 0,
        )

    async def execute_async(
        self,
        task: Union[TaskDescriptor, Dict[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
        timeout: Any = _USE_DEFAULT,
        retry_on_timeout: bool = False,
    ) -> Any:
        return await self.execute(task, on_progress, timeout, retry_on_timeout)

    def get_status(self) -> Dict[str, Any]:
        if self._pool is None:
            return {
                "initialized": False,
                "inline": bool(self.settings and self.settings.inline),
            }
        return self._pool.get_status()

    def terminate(self, wait: bool = False) -> None:
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.terminate(wait=wait)

    # ------------------------------------------------------------------ #

    def _execute_inline(
        self,
        task: Union[TaskDescriptor, Dict[str, Any]],
        on_progress: Optional[ProgressCallback],
    ) -> TaskHandle:
        descriptor = task if isinstance(task, TaskDescriptor) else TaskDescriptor.from_dict(task)
        descriptor.validate()
        resolve_compute_function(descriptor.module, descriptor.function_name)
        self._inline_ids += 1
        handle = TaskHandle(task_id=f"inline-{self._inline_ids}", descriptor=descriptor)

        def report(value: float) -> None:
            value = clamp_progress(value)
            if value < handle.progress:
                return
            handle.progress = value
            if on_progress is not None:
                on_progress(value)

        handle.future.set_running_or_notify_cancel()
        handle.state.status = "running"
        handle.state.start_ts = time.time()
        handle.state.attempts = 1
        try:
            result = run_descriptor(descriptor, report)
        except NetlabError as exc:
            exc.remote_traceback = traceback.format_exc()
            self._settle_inline(handle, "failed", error=exc)
        except Exception as exc:
            self._settle_inline(handle, "failed", error=WorkerFailure(
                str(exc), type(exc).__name__, traceback.format_exc()
            ))
        else:
            if handle.progress < 1.0:
                report(1.0)
            self._settle_inline(handle, "completed", result=result)
        return handle

    @staticmethod
    def _settle_inline(handle: TaskHandle, status: str, result: Any = None,
                       error: Optional[BaseException] = None) -> None:
        handle.state.status = status  # type: ignore[assignment]
        handle.state.end_ts = time.time()
        if error is not None:
            handle.state.error = str(error)
            handle.future.set_exception(error)
        else:
            handle.future.set_result(result)


_MANAGER: Optional[ComputeManager] = None
_MANAGER_LOCK = threading.Lock()


def get_manager() -> ComputeManager:
    global _MANAGER
    with _MANAGER_LOCK:
        if _MANAGER is None:
            _MANAGER = ComputeManager()
        return _MANAGER


def reset_manager(settings: Optional[DispatchSettings] = None) -> ComputeManager:
    """Terminate the shared manager and replace it (used by tests and CLIs)."""
    global _MANAGER
    with _MANAGER_LOCK:
        old, _MANAGER = _MANAGER, ComputeManager(settings)
    if old is not None:
        old.terminate()
    return _MANAGER
