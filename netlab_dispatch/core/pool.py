"""
Bounded pool of isolated worker processes.

Responsibilities
----------------
* Admission: tasks queue FIFO until a worker is free; capacity equals the
  number of workers.
* Isolation: every worker is a separate process that only sees the pickled
  task descriptor. Nothing is shared with the caller.
* Progress: workers stream progress messages which are clamped, made
  monotonic and relayed to the task's ``on_progress`` callback.
* Timeouts: a task that overruns its time limit is considered stuck; its worker
  is terminated and a replacement is started lazily.
* Cancellation: a queued task is dropped, a running one takes its worker
  down with it. Other tasks are never affected.

A single monitor thread owns every worker. Public methods only touch the
queue under the pool lock and wake the monitor through a pipe. Callbacks
(progress, future callbacks, emit) always run outside the lock, on the
monitor thread; only ``terminate`` delivers the remainder itself, after the
monitor has been joined.
"""

from __future__ import annotations

import itertools
import logging
import multiprocessing
import threading
import time
from collections import deque
from concurrent.futures import wait as wait_futures
from multiprocessing import connection as mp_connection
from typing import Any, Callable, Deque, Dict, List, Optional, Set, Union

from .errors import (
    CancellationError,
    NetlabError,
    TaskTimeoutError,
    WorkerFailure,
    rebuild_remote_error,
)
from .events import TaskEndEvent, TaskProgressEvent, TaskStartEvent, TaskSubmittedEvent
from .settings import DispatchSettings, configure_logging, load_settings
from .tasks import ProgressCallback, TaskDescriptor, TaskHandle
from .worker import resolve_compute_function, worker_main

logger = logging.getLogger(__name__)

EmitFn = Callable[[str, Dict[str, Any]], None]

_USE_DEFAULT: Any = object()


def clamp_progress(value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if v != v:  # NaN
        return 0.0
    return min(1.0, max(0.0, v))


class _WorkerSlot:
    def __init__(self, worker_id: int, process, conn) -> None:
        self.worker_id = worker_id
        self.process = process
        self.conn = conn
        self.handle: Optional[TaskHandle] = None
        self.deadline: Optional[float] = None

    @property
    def busy(self) -> bool:
        return self.handle is not None


class WorkerPool:
    def __init__(
        self,
        settings: Optional[DispatchSettings] = None,
        emit: Optional[EmitFn] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.max_workers = max(1, int(self.settings.max_workers))
        self._ctx = multiprocessing.get_context(self.settings.start_method)
        self._emit_fn = emit

        self._lock = threading.RLock()
        self._wake_lock = threading.Lock()
        self._slots: List[_WorkerSlot] = []
        self._queue: Deque[TaskHandle] = deque()
        self._cancel_requests: Set[str] = set()
        self._deferred: List[Callable[[], None]] = []

        self._task_ids = itertools.count(1)
        self._worker_ids = itertools.count(1)
        self._wake_r = None
        self._wake_w = None
        self._monitor: Optional[threading.Thread] = None
        self._closed = False

        self.completed_count = 0
        self.failed_count = 0

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def initialized(self) -> bool:
        return self._monitor is not None

    def start(self) -> None:
        with self._lock:
            if self._closed:
                raise CancellationError("Worker pool has been terminated")
            if self._monitor is not None:
                return
            configure_logging(self.settings)
            self._wake_r, self._wake_w = self._ctx.Pipe(duplex=False)
            for _ in range(self.max_workers):
                self._slots.append(self._spawn_worker())
            self._monitor = threading.Thread(
                target=self._monitor_loop, name="netlab-pool-monitor", daemon=True
            )
            self._monitor.start()
            logger.info("worker pool started with %d workers", self.max_workers)

    def terminate(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """
        Stop every worker. With ``wait=True`` queued and running tasks are
        given up to ``timeout`` seconds to finish first; whatever is still
        unfinished is rejected with CancellationError.
        """
        if wait:
            with self._lock:
                active = list(self._queue) + [s.handle for s in self._slots if s.handle]
            wait_futures([h.future for h in active], timeout=timeout)

        with self._lock:
            if self._closed:
                return
            self._closed = True

        if self._monitor is not None:
            self._wake()
            if threading.current_thread() is not self._monitor:
                self._monitor.join()

        with self._lock:
            leftovers = [
                h for h in list(self._queue) + [s.handle for s in self._slots if s.handle]
                if not h.state.finished and not h.future.done()
            ]
            self._queue.clear()
            for slot in list(self._slots):
                slot.handle = None
                try:
                    slot.conn.send(None)
                except (OSError, ValueError):
                    pass
                slot.process.join(0.5)
                self._retire(slot)
            for handle in leftovers:
                self._finish(handle, "cancelled", error=CancellationError(
                    f"Task {handle.task_id} cancelled: worker pool terminated"
                ))
            for conn in (self._wake_r, self._wake_w):
                if conn is not None:
                    conn.close()
        self._flush()
        logger.info("worker pool terminated")

    def __enter__(self) -> "WorkerPool":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.terminate()

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    def execute(
        self,
        task: Union[TaskDescriptor, Dict[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
        timeout: Any = _USE_DEFAULT,
        retries_on_timeout: int = 0,
    ) -> TaskHandle:
        """
        Queue ``task`` and return its handle immediately.

        A malformed descriptor, non-plain arguments or an unregistered
        function raise InputError here, before anything is queued.
        ``timeout=None`` disables the time limit for this task; omitting it uses
        the pool default. ``retries_on_timeout`` (0 or 1 in practice) reruns
        a timed-out task on a fresh worker.
        """
        descriptor = task if isinstance(task, TaskDescriptor) else TaskDescriptor.from_dict(task)
        descriptor.validate()
        resolve_compute_function(descriptor.module, descriptor.function_name)
        if timeout is _USE_DEFAULT:
            timeout = self.settings.task_timeout

        self.start()
        handle = TaskHandle(
            task_id=f"task-{next(self._task_ids)}",
            descriptor=descriptor,
            timeout=timeout,
            on_progress=on_progress,
            retries_on_timeout=max(0, int(retries_on_timeout)),
            _canceller=self.cancel,
        )
        with self._lock:
            if self._closed:
                raise CancellationError("Worker pool has been terminated")
            self._queue.append(handle)
            self._defer_emit("task_submitted", TaskSubmittedEvent(handle, len(self._queue)))
        self._wake()
        return handle

    async def execute_async(
        self,
        task: Union[TaskDescriptor, Dict[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
        timeout: Any = _USE_DEFAULT,
        retries_on_timeout: int = 0,
    ) -> Any:
        handle = self.execute(task, on_progress, timeout, retries_on_timeout)
        return await handle

    def cancel(self, handle: TaskHandle) -> bool:
        with self._lock:
            if handle.future.done():
                return False
            if handle in self._queue:
                self._queue.remove(handle)
                self._finish(handle, "cancelled", error=CancellationError(
                    f"Task {handle.task_id} cancelled before it started"
                ))
            elif handle.state.status == "running":
                self._cancel_requests.add(handle.task_id)
            else:
                return False
        self._wake()
        return True

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            busy = sum(1 for s in self._slots if s.busy)
            return {
                "initialized": self.initialized,
                "closed": self._closed,
                "max_workers": self.max_workers,
                "total_workers": len(self._slots),
                "busy_workers": busy,
                "available_workers": len(self._slots) - busy,
                "queued_tasks": len(self._queue),
                "completed_tasks": self.completed_count,
                "failed_tasks": self.failed_count,
            }

    # ------------------------------------------------------------------ #
    # Monitor thread
    # ------------------------------------------------------------------ #

    def _monitor_loop(self) -> None:
        try:
            self._monitor_body()
        except Exception:
            logger.exception("worker pool monitor crashed")
            with self._lock:
                self._closed = True
                stranded = list(self._queue) + [s.handle for s in self._slots if s.handle]
                self._queue.clear()
                for handle in stranded:
                    self._finish(handle, "failed", error=WorkerFailure(
                        "worker pool monitor crashed", error_type="PoolFailure"
                    ))
            self._flush()

    def _monitor_body(self) -> None:
        while True:
            with self._lock:
                if self._closed:
                    break
                self._process_cancellations()
                self._enforce_timeouts()
                self._replenish_workers()
                self._dispatch_queued()
                watched = {slot.conn: slot for slot in self._slots if slot.busy}
                delay = self._next_deadline_delay()
            self._flush()

            ready = mp_connection.wait(list(watched) + [self._wake_r], timeout=delay)
            for conn in ready:
                if conn is self._wake_r:
                    self._drain_wake()
                    continue
                with self._lock:
                    slot = watched[conn]
                    if slot in self._slots:
                        self._drain_slot(slot)
                self._flush()

    def _drain_wake(self) -> None:
        try:
            while self._wake_r.poll():
                self._wake_r.recv_bytes()
        except (EOFError, OSError):
            pass

    def _drain_slot(self, slot: _WorkerSlot) -> None:
        try:
            while slot in self._slots and slot.conn.poll():
                self._handle_message(slot, slot.conn.recv())
        except (EOFError, OSError):
            self._worker_died(slot)

    def _handle_message(self, slot: _WorkerSlot, message: Any) -> None:
        kind, task_id, payload = message
        handle = slot.handle
        if handle is None or handle.task_id != task_id:
            logger.debug("dropping stale %s message for %s", kind, task_id)
            return

        if kind == "progress":
            self._record_progress(handle, payload)
        elif kind == "complete":
            slot.handle = None
            slot.deadline = None
            if handle.progress < 1.0:
                self._record_progress(handle, 1.0)
            self.completed_count += 1
            self._finish(handle, "completed", result=payload, worker_id=slot.worker_id)
        elif kind == "error":
            slot.handle = None
            slot.deadline = None
            error = rebuild_remote_error(
                payload.get("type", "Exception"),
                payload.get("message", ""),
                payload.get("traceback"),
                payload.get("requirement"),
            )
            self.failed_count += 1
            self._finish(handle, "failed", error=error, worker_id=slot.worker_id)
            if payload.get("fatal"):
                logger.warning(
                    "worker %s retired after %s", slot.worker_id, payload.get("type")
                )
                self._retire(slot)
        else:
            logger.warning("unknown worker message kind %r", kind)

    def _worker_died(self, slot: _WorkerSlot) -> None:
        handle = slot.handle
        slot.handle = None
        self._retire(slot)
        code = slot.process.exitcode
        logger.warning("worker %s exited unexpectedly (exit code %s)", slot.worker_id, code)
        if handle is not None:
            self.failed_count += 1
            self._finish(handle, "failed", worker_id=slot.worker_id, error=WorkerFailure(
                f"worker {slot.worker_id} exited unexpectedly (exit code {code})",
                error_type="WorkerExit",
            ))

    def _process_cancellations(self) -> None:
        if not self._cancel_requests:
            return
        for slot in list(self._slots):
            handle = slot.handle
            if handle is not None and handle.task_id in self._cancel_requests:
                slot.handle = None
                self._retire(slot)
                self._finish(handle, "cancelled", worker_id=slot.worker_id, error=CancellationError(
                    f"Task {handle.task_id} cancelled while running"
                ))
        self._cancel_requests.clear()

    def _enforce_timeouts(self) -> None:
        now = time.monotonic()
        for slot in list(self._slots):
            handle = slot.handle
            if handle is None or slot.deadline is None or now < slot.deadline:
                continue
            slot.handle = None
            self._retire(slot)
            if handle.retries_on_timeout > 0:
                handle.retries_on_timeout -= 1
                handle.state.status = "pending"
                self._queue.appendleft(handle)
                logger.warning(
                    "task %s timed out on worker %s; retrying on a fresh worker",
                    handle.task_id, slot.worker_id,
                )
                continue
            self._finish(handle, "timed_out", worker_id=slot.worker_id, error=TaskTimeoutError(
                f"Task {handle.task_id} ({handle.descriptor.function_name}) exceeded "
                f"{handle.timeout:g}s; worker {slot.worker_id} was replaced"
            ))

    def _replenish_workers(self) -> None:
        idle = sum(1 for s in self._slots if not s.busy)
        missing = min(len(self._queue) - idle, self.max_workers - len(self._slots))
        for _ in range(max(0, missing)):
            self._slots.append(self._spawn_worker())

    def _dispatch_queued(self) -> None:
        for slot in list(self._slots):
            if slot.busy or slot not in self._slots:
                continue
            while self._queue:
                handle = self._queue.popleft()
                if not handle.future.running() and not handle.future.set_running_or_notify_cancel():
                    handle.state.status = "cancelled"
                    handle.state.end_ts = time.time()
                    continue
                if self._assign(slot, handle):
                    break
                self._queue.appendleft(handle)
                break

    def _assign(self, slot: _WorkerSlot, handle: TaskHandle) -> bool:
        descriptor = handle.descriptor
        try:
            slot.conn.send({
                "task_id": handle.task_id,
                "module": descriptor.module,
                "function_name": descriptor.function_name,
                "args": list(descriptor.args),
            })
        except (OSError, ValueError):
            logger.warning("worker %s unreachable; replacing", slot.worker_id)
            self._retire(slot)
            return False

        slot.handle = handle
        slot.deadline = time.monotonic() + handle.timeout if handle.timeout else None
        handle.state.status = "running"
        handle.state.start_ts = time.time()
        handle.state.worker_id = slot.worker_id
        handle.state.attempts += 1
        self._defer_emit("task_start", TaskStartEvent(handle, slot.worker_id))
        return True

    def _next_deadline_delay(self) -> Optional[float]:
        deadlines = [s.deadline for s in self._slots if s.busy and s.deadline is not None]
        if not deadlines:
            return None
        return max(0.0, min(deadlines) - time.monotonic())

    # ------------------------------------------------------------------ #
    # Workers
    # ------------------------------------------------------------------ #

    def _spawn_worker(self) -> _WorkerSlot:
        worker_id = next(self._worker_ids)
        parent_conn, child_conn = self._ctx.Pipe()
        process = self._ctx.Process(
            target=worker_main,
            args=(child_conn, worker_id),
            name=f"netlab-worker-{worker_id}",
            daemon=True,
        )
        process.start()
        child_conn.close()
        logger.debug("spawned worker %s (pid %s)", worker_id, process.pid)
        return _WorkerSlot(worker_id, process, parent_conn)

    def _retire(self, slot: _WorkerSlot) -> None:
        if slot in self._slots:
            self._slots.remove(slot)
        process = slot.process
        if process.is_alive():
            process.terminate()
            process.join(1.0)
            if process.is_alive():
                process.kill()
                process.join(1.0)
        slot.conn.close()

    # ------------------------------------------------------------------ #
    # Settlement and callbacks
    # ------------------------------------------------------------------ #

    def _record_progress(self, handle: TaskHandle, value: Any) -> None:
        value = clamp_progress(value)
        if value < handle.progress:
            return
        handle.progress = value
        callback = handle.on_progress
        if callback is not None:
            def relay(cb=callback, v=value, tid=handle.task_id) -> None:
                try:
                    cb(v)
                except Exception:
                    logger.exception("progress callback for %s raised", tid)
            self._deferred.append(relay)
        self._defer_emit("task_progress", TaskProgressEvent(handle))

    def _finish(
        self,
        handle: TaskHandle,
        status: str,
        result: Any = None,
        error: Optional[NetlabError] = None,
        worker_id: Optional[int] = None,
    ) -> None:
        handle.state.status = status  # type: ignore[assignment]
        handle.state.end_ts = time.time()
        handle.state.error = str(error) if error is not None else None
        future = handle.future

        def settle() -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        self._deferred.append(settle)
        self._defer_emit("task_end", TaskEndEvent(handle, worker_id))

    def _defer_emit(self, kind: str, event: Any) -> None:
        if self._emit_fn is None:
            return
        payload = event.to_dict()
        emit = self._emit_fn

        def send() -> None:
            try:
                emit(kind, payload)
            except Exception:
                logger.exception("emit callback raised for %s", kind)

        self._deferred.append(send)

    def _flush(self) -> None:
        with self._lock:
            pending, self._deferred = self._deferred, []
        for fn in pending:
            fn()

    def _wake(self) -> None:
        with self._wake_lock:
            if self._wake_w is None:
                return
            try:
                self._wake_w.send_bytes(b"1")
            except (OSError, ValueError):
                pass
