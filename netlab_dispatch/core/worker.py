"""
Worker-side execution.

Exports:
    resolve_compute_function(module, function_name)
        Import ``module`` and return the registered callable.

    run_descriptor(descriptor, progress)
        Call the compute function in the current process.

    worker_main(conn, worker_id)
        Process entrypoint. Receives task messages over a duplex pipe and
        answers with ``progress``, ``complete`` or ``error`` messages.

Message protocol (parent -> worker):
    {"task_id": str, "module": str, "function_name": str, "args": list}
    None  (shutdown)

Message protocol (worker -> parent):
    ("progress", task_id, float)
    ("complete", task_id, result)
    ("error", task_id, {"type", "message", "traceback", "requirement", "fatal"})
"""

from __future__ import annotations

import importlib
import logging
import traceback
from typing import Any, Callable, Dict, Optional

from .errors import InputError, PreconditionError
from .registry import GLOBAL_ALGORITHM_REGISTRY
from .tasks import TaskDescriptor

logger = logging.getLogger(__name__)

# Exceptions after which the interpreter state is not trusted any more.
FATAL_ERRORS = (MemoryError, RecursionError)


def resolve_compute_function(module: str, function_name: str) -> Callable[..., Any]:
    """
    Import ``module`` and return ``function_name`` if it was registered in
    the algorithm registry. Importing the module performs the registration.
    """
    try:
        importlib.import_module(module)
    except ImportError as exc:
        raise InputError(f"Cannot import compute module '{module}': {exc}") from exc

    spec = GLOBAL_ALGORITHM_REGISTRY.find(module, function_name)
    if spec is None or spec.func is None:
        raise InputError(
            f"Function '{function_name}' is not a registered compute function "
            f"of module '{module}'"
        )
    return spec.func


def run_descriptor(
    descriptor: TaskDescriptor,
    progress: Optional[Callable[[float], None]] = None,
) -> Any:
    func = resolve_compute_function(descriptor.module, descriptor.function_name)
    args = list(descriptor.args)
    if progress is not None:
        args.append(progress)
    return func(*args)


def error_payload(exc: BaseException) -> Dict[str, Any]:
    return {
        "type": type(exc).__name__,
        "message": str(exc),
        "traceback": traceback.format_exc(),
        "requirement": exc.requirement if isinstance(exc, PreconditionError) else None,
        "fatal": isinstance(exc, FATAL_ERRORS),
    }


def _execute_message(conn, message: Dict[str, Any]) -> bool:
    """Run one task message. Returns False when the worker should exit."""
    task_id = message["task_id"]
    descriptor = TaskDescriptor(
        module=message["module"],
        function_name=message["function_name"],
        args=message.get("args") or [],
    )

    def report(value: float) -> None:
        conn.send(("progress", task_id, float(value)))

    try:
        result = run_descriptor(descriptor, report)
    except Exception as exc:  # noqa: BLE001 - every failure is reported to the parent
        payload = error_payload(exc)
        conn.send(("error", task_id, payload))
        return not payload["fatal"]

    try:
        conn.send(("complete", task_id, result))
    except Exception as exc:  # unpicklable result
        conn.send(("error", task_id, error_payload(exc)))
    return True


def worker_main(conn, worker_id: int) -> None:
    logger.debug("worker %s started", worker_id)
    while True:
        try:
            message = conn.recv()
        except (EOFError, OSError, KeyboardInterrupt):
            break
        if message is None:
            break
        if not _execute_message(conn, message):
            break
    conn.close()
    logger.debug("worker %s exiting", worker_id)
