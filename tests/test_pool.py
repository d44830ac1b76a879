"""
Worker pool behaviour, exercised against real spawned worker processes.
"""

import asyncio
import threading
import time

import pytest

import compute_fixtures  # noqa: F401  (registers the fixture compute functions)
from conftest import graph_from_edges
from netlab_dispatch.core.errors import (
    CancellationError,
    InputError,
    PreconditionError,
    TaskTimeoutError,
    WorkerFailure,
)
from netlab_dispatch.core.manager import ComputeManager
from netlab_dispatch.core.pool import WorkerPool, clamp_progress
from netlab_dispatch.core.registry import GLOBAL_ALGORITHM_REGISTRY
from netlab_dispatch.core.settings import DispatchSettings
from netlab_dispatch.core.tasks import TaskDescriptor
from netlab_graphs import Layout, StatisticAlgorithm

WAIT = 60


def task(key, options=None, graph_data=None):
    spec = GLOBAL_ALGORITHM_REGISTRY.get(key)
    graph_data = graph_data or {"nodes": ["a"], "edges": []}
    return TaskDescriptor(spec.module, spec.function_name, [graph_data, None, options or {}])


class Recorder:
    def __init__(self):
        self.events = []
        self.lock = threading.Lock()

    def __call__(self, kind, payload):
        with self.lock:
            self.events.append((kind, payload))

    def for_task(self, task_id):
        with self.lock:
            return [kind for kind, payload in self.events if payload["task_id"] == task_id]


@pytest.fixture(scope="module")
def recorder():
    return Recorder()


@pytest.fixture(scope="module")
def pool(recorder):
    pool = WorkerPool(DispatchSettings(max_workers=2, task_timeout=None), emit=recorder)
    pool.start()
    yield pool
    pool.terminate()


@pytest.fixture
def single_pool():
    pool = WorkerPool(DispatchSettings(max_workers=1, task_timeout=None))
    pool.start()
    yield pool
    pool.terminate()


def test_clamp_progress():
    assert clamp_progress(1.5) == 1.0
    assert clamp_progress(-2) == 0.0
    assert clamp_progress(float("nan")) == 0.0
    assert clamp_progress("x") == 0.0


class TestCompletion:
    def test_progress_is_clamped_and_monotonic(self, pool):
        seen = []
        handle = pool.execute(task("fixture-progress"), on_progress=seen.append)
        assert handle.result(WAIT) == 1
        assert seen == [0.2, 0.5, 1.0]
        assert handle.status == "completed"
        assert handle.state.attempts == 1

    def test_completion_reports_full_progress(self, pool):
        seen = []
        handle = pool.execute(task("fixture-silent"), on_progress=seen.append)
        assert handle.result(WAIT) == {"nodes": 1}
        assert seen == [1.0]
        assert handle.progress == 1.0

    def test_handles_are_awaitable(self, pool):
        async def run():
            return await pool.execute_async(task("fixture-silent"))

        assert asyncio.run(run()) == {"nodes": 1}

    def test_events_follow_the_lifecycle(self, pool, recorder):
        handle = pool.execute(task("fixture-progress"))
        handle.result(WAIT)
        deadline = time.monotonic() + 5
        while "task_end" not in recorder.for_task(handle.task_id) and time.monotonic() < deadline:
            time.sleep(0.01)
        kinds = recorder.for_task(handle.task_id)
        assert {"task_submitted", "task_start", "task_progress"} <= set(kinds)
        assert kinds[-1] == "task_end"

    def test_status_counters(self, pool):
        pool.execute(task("fixture-silent")).result(WAIT)
        status = pool.get_status()
        assert status["initialized"] is True
        assert status["max_workers"] == 2
        assert status["completed_tasks"] >= 1
        assert status["queued_tasks"] == 0


class TestFailures:
    def test_worker_exception_becomes_worker_failure(self, pool):
        seen = []
        handle = pool.execute(task("fixture-fail-fast"), on_progress=seen.append)
        with pytest.raises(WorkerFailure) as info:
            handle.result(WAIT)
        assert info.value.error_type == "RuntimeError"
        assert "failed before doing anything" in str(info.value)
        assert "Traceback" in info.value.remote_traceback
        assert seen == []
        assert handle.status == "failed"

    def test_precondition_keeps_its_class(self, pool):
        handle = pool.execute(task("fixture-precondition"))
        with pytest.raises(PreconditionError) as info:
            handle.result(WAIT)
        assert info.value.requirement == "fixture-upstream"

    def test_unpicklable_result(self, pool):
        with pytest.raises(WorkerFailure):
            pool.execute(task("fixture-unpicklable")).result(WAIT)

    def test_crashed_worker_is_replaced(self, pool):
        with pytest.raises(WorkerFailure) as info:
            pool.execute(task("fixture-crash")).result(WAIT)
        assert info.value.error_type == "WorkerExit"
        assert pool.execute(task("fixture-silent")).result(WAIT) == {"nodes": 1}

    def test_bad_descriptors_fail_at_submission(self, pool):
        with pytest.raises(InputError):
            pool.execute({"module": compute_fixtures.MODULE, "function_name": "not_registered"})
        with pytest.raises(InputError):
            pool.execute({"module": "no.such.module", "function_name": "f"})
        with pytest.raises(InputError):
            pool.execute(TaskDescriptor(compute_fixtures.MODULE, "silent", [{1, 2}]))


class TestTimeoutsAndCancellation:
    def test_timeout_replaces_the_worker(self, single_pool):
        handle = single_pool.execute(task("fixture-sleep"), timeout=1.0)
        with pytest.raises(TaskTimeoutError):
            handle.result(WAIT)
        assert handle.status == "timed_out"
        assert single_pool.execute(task("fixture-silent")).result(WAIT) == {"nodes": 1}

    def test_timeout_retry_runs_twice(self, single_pool):
        handle = single_pool.execute(task("fixture-sleep"), timeout=1.0, retries_on_timeout=1)
        with pytest.raises(TaskTimeoutError):
            handle.result(WAIT)
        assert handle.state.attempts == 2

    def test_cancel_queued_task(self, single_pool):
        blocker = single_pool.execute(task("fixture-sleep"))
        queued = single_pool.execute(task("fixture-silent"))
        assert queued.cancel() is True
        assert queued.status == "cancelled"
        with pytest.raises(CancellationError):
            queued.result(WAIT)
        assert blocker.cancel() is True

    def test_cancel_running_task(self, single_pool):
        started = threading.Event()
        handle = single_pool.execute(task("fixture-sleep"), on_progress=lambda _: started.set())
        assert started.wait(WAIT)
        assert handle.cancel() is True
        with pytest.raises(CancellationError):
            handle.result(WAIT)
        assert handle.status == "cancelled"
        assert handle.cancel() is False
        assert single_pool.execute(task("fixture-silent")).result(WAIT) == {"nodes": 1}

    def test_fifo_admission(self):
        recorder = Recorder()
        with WorkerPool(DispatchSettings(max_workers=1, task_timeout=None), emit=recorder) as pool:
            handles = [pool.execute(task("fixture-silent")) for _ in range(4)]
            for handle in handles:
                handle.result(WAIT)
        with recorder.lock:
            started = [p["task_id"] for kind, p in recorder.events if kind == "task_start"]
        assert started == [h.task_id for h in handles]

    def test_terminate_rejects_unfinished_tasks(self):
        with WorkerPool(DispatchSettings(max_workers=1, task_timeout=None)) as pool:
            running = pool.execute(task("fixture-sleep"))
            queued = pool.execute(task("fixture-silent"))
        assert isinstance(running.exception(WAIT), CancellationError)
        assert isinstance(queued.exception(WAIT), CancellationError)
        with pytest.raises(CancellationError):
            pool.execute(task("fixture-silent"))


class TestCallbackDelivery:
    def test_callbacks_run_on_the_monitor_thread(self):
        threads = set()
        seen = []

        def on_progress(value):
            threads.add(threading.current_thread().name)
            seen.append(value)

        def emit(kind, payload):
            threads.add(threading.current_thread().name)

        with WorkerPool(DispatchSettings(max_workers=2, task_timeout=None), emit=emit) as pool:
            handle = pool.execute(task("fixture-chatty"), on_progress=on_progress)
            while not handle.done():
                pool.execute(task("fixture-silent")).cancel()
            assert handle.result(WAIT) == 2000
            delivered_on = set(threads)

        assert delivered_on == {"netlab-pool-monitor"}
        assert seen == sorted(seen)
        assert seen[-1] == 1.0

    def test_terminate_keeps_finished_results(self):
        pool = WorkerPool(DispatchSettings(max_workers=1, task_timeout=None))
        pool.start()
        handle = pool.execute(task("fixture-silent"))
        assert handle.result(WAIT) == {"nodes": 1}
        # a settled handle still visible when shutdown collects leftovers
        with pool._lock:
            pool._queue.append(handle)
        pool.terminate()
        assert handle.status == "completed"
        assert handle.result(0) == {"nodes": 1}


class TestManager:
    def test_statistic_through_worker_pool(self, karate):
        manager = ComputeManager(DispatchSettings(max_workers=1, task_timeout=None))
        try:
            degrees = StatisticAlgorithm("degree").calculate(karate, manager=manager)
            assert degrees == {n: karate.degree(n) for n in karate.get_node_list()}
            assert manager.get_status()["initialized"] is True
        finally:
            manager.terminate()

    def test_inline_mode(self):
        manager = ComputeManager(DispatchSettings(inline=True))
        seen = []
        handle = manager.execute(task("fixture-progress"), on_progress=seen.append)
        assert handle.result() == 1
        assert seen == [0.2, 0.5, 1.0]
        assert manager.pool is None
        with pytest.raises(PreconditionError):
            manager.execute(task("fixture-precondition")).result()
        with pytest.raises(WorkerFailure) as info:
            manager.execute(task("fixture-fail-fast")).result()
        assert info.value.error_type == "RuntimeError"

    def test_layout_fetches_required_statistics(self):
        manager = ComputeManager(DispatchSettings(inline=True))
        graph = graph_from_edges([("A", "B"), ("B", "C"), ("C", "D"), ("D", "E")])
        positions = Layout("spectral", scale=2).get_positions(graph, manager=manager)
        assert set(positions) == {"A", "B", "C", "D", "E"}
        assert max(max(abs(p["x"]), abs(p["y"])) for p in positions.values()) == pytest.approx(2.0)
