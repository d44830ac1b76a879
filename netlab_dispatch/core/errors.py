# netlab_dispatch/core/errors.py
"""
Error taxonomy shared by the compute library and the dispatch layer.

    • InputError         – malformed graph data or task arguments
    • NotFoundError      – strict graph mutation on a missing node/edge
    • PreconditionError  – an algorithm needs an upstream computation
    • TaskTimeoutError   – a task exceeded its time limit; its worker was torn down
    • WorkerFailure      – an uncaught exception inside a worker
    • CancellationError  – the caller aborted the task

Every class pickles cleanly so instances can cross the process boundary.
"""

from __future__ import annotations

from typing import Optional


class NetlabError(Exception):
    """Base class for all engine errors."""

    remote_traceback: Optional[str] = None


class InputError(NetlabError, ValueError):
    pass


class NotFoundError(NetlabError, LookupError):
    pass


class PreconditionError(NetlabError):
    """Raised when an algorithm is called without a required upstream result."""

    def __init__(self, message: str, requirement: Optional[str] = None) -> None:
        super().__init__(message)
        self.requirement = requirement

    def __reduce__(self):
        return (type(self), (super().__str__(), self.requirement))


class TaskTimeoutError(NetlabError, TimeoutError):
    pass


class CancellationError(NetlabError):
    pass


class WorkerFailure(NetlabError):
    """
    Wraps an exception raised inside a worker.

    ``error_type`` is the class name of the original exception and
    ``remote_traceback`` the formatted traceback captured in the worker.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "Exception",
        remote_traceback: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.remote_traceback = remote_traceback

    def __reduce__(self):
        return (type(self), (super().__str__(), self.error_type, self.remote_traceback))

    def __str__(self) -> str:
        base = super().__str__()
        return f"{self.error_type}: {base}" if self.error_type else base


# Domain errors raised deliberately by compute functions keep their class
# when they come back from a worker; everything else becomes WorkerFailure.
DOMAIN_ERRORS = {
    "InputError": InputError,
    "PreconditionError": PreconditionError,
    "NotFoundError": NotFoundError,
}


def rebuild_remote_error(
    error_type: str,
    message: str,
    remote_traceback: Optional[str] = None,
    requirement: Optional[str] = None,
) -> NetlabError:
    """Turn an error payload received from a worker back into an exception."""
    cls = DOMAIN_ERRORS.get(error_type)
    if cls is PreconditionError:
        err: NetlabError = PreconditionError(message, requirement)
    elif cls is not None:
        err = cls(message)
    else:
        err = WorkerFailure(message, error_type, remote_traceback)
    err.remote_traceback = remote_traceback
    return err


__all__ = [
    "NetlabError",
    "InputError",
    "NotFoundError",
    "PreconditionError",
    "TaskTimeoutError",
    "CancellationError",
    "WorkerFailure",
    "rebuild_remote_error",
]
