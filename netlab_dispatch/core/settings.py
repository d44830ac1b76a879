"""
Runtime settings for the dispatch layer.

This module centralizes configuration for:

    - worker pool size
    - default per-task timeout
    - multiprocessing start method
    - inline (in-process) execution for debugging
    - feature flags (logging)

It provides:
    DispatchSettings – structured settings object
    load_settings()  – load from environment variables or defaults
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Any, Dict, Optional


def _default_workers() -> int:
    return max(1, min(4, os.cpu_count() or 1))


@dataclass
class DispatchSettings:
    """
    Canonical configuration for the worker pool.

    Attributes
    ----------
    max_workers:
        Number of worker processes (pool admission capacity).

    task_timeout:
        Default per-task time limit in seconds, counted from the moment the
        task starts on a worker. ``None`` disables the timeout.

    start_method:
        multiprocessing start method ("spawn", "forkserver" or "fork").

    inline:
        Run compute functions in the calling process instead of a worker.
        Timeouts and cancellation of running tasks are not enforced.

    enable_logging:
        Whether to configure root logging at INFO level on initialisation.
    """

    max_workers: int = _default_workers()
    task_timeout: Optional[float] = 60.0
    start_method: str = "spawn"
    inline: bool = False
    enable_logging: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "max_workers": self.max_workers,
            "task_timeout": self.task_timeout,
            "start_method": self.start_method,
            "inline": self.inline,
            "enable_logging": self.enable_logging,
        }


def _env_flag(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    seconds = float(val)
    return seconds if seconds > 0 else None


def load_settings() -> DispatchSettings:
    """
    Load DispatchSettings from environment variables, falling back to defaults.

    Recognized variables:
        NETLAB_MAX_WORKERS      (positive int)
        NETLAB_TASK_TIMEOUT     (seconds; 0 disables)
        NETLAB_START_METHOD     (spawn|forkserver|fork)
        NETLAB_INLINE           ("true" / "false" / "1" / "0")
        NETLAB_ENABLE_LOGGING   ("true" / "false" / "1" / "0")
    """
    workers = os.getenv("NETLAB_MAX_WORKERS")
    return DispatchSettings(
        max_workers=max(1, int(workers)) if workers else _default_workers(),
        task_timeout=_env_float("NETLAB_TASK_TIMEOUT", 60.0),
        start_method=os.getenv("NETLAB_START_METHOD", "spawn"),
        inline=_env_flag("NETLAB_INLINE", default=False),
        enable_logging=_env_flag("NETLAB_ENABLE_LOGGING", default=False),
    )


def configure_logging(settings: DispatchSettings) -> None:
    if settings.enable_logging:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )
