"""
Small compute functions used to exercise the worker pool.

Workers import this module by name, which registers the functions below in
the worker's own registry.
"""

import os
import time

from netlab_dispatch.core.errors import PreconditionError
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY

MODULE = __name__


def _fixture(key):
    return GLOBAL_ALGORITHM_REGISTRY.decorator(
        key=key, label=key, kind="statistic", scope="graph"
    )


@_fixture("fixture-fail-fast")
def fail_fast(graph_data, node_ids=None, options=None, progress_callback=None):
    raise RuntimeError("failed before doing anything")


@_fixture("fixture-sleep")
def sleep_for(graph_data, node_ids=None, options=None, progress_callback=None):
    progress_callback(0.1)
    time.sleep((options or {}).get("seconds", 30))
    progress_callback(1.0)
    return "slept"


@_fixture("fixture-progress")
def jittery_progress(graph_data, node_ids=None, options=None, progress_callback=None):
    for value in (0.2, 0.1, 0.5, 1.5):
        progress_callback(value)
    return len(graph_data["nodes"])


@_fixture("fixture-silent")
def silent(graph_data, node_ids=None, options=None, progress_callback=None):
    return {"nodes": len(graph_data["nodes"])}


@_fixture("fixture-precondition")
def needs_upstream(graph_data, node_ids=None, options=None, progress_callback=None):
    raise PreconditionError("upstream statistic missing", requirement="fixture-upstream")


@_fixture("fixture-unpicklable")
def unpicklable(graph_data, node_ids=None, options=None, progress_callback=None):
    return lambda: None


@_fixture("fixture-crash")
def crash(graph_data, node_ids=None, options=None, progress_callback=None):
    os._exit(3)


@_fixture("fixture-chatty")
def chatty(graph_data, node_ids=None, options=None, progress_callback=None):
    ticks = (options or {}).get("ticks", 2000)
    for i in range(ticks):
        progress_callback(i / ticks)
    return ticks
