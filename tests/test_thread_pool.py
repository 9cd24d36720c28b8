"""
Tests for the Qt-backed worker pool.
"""

import threading
import time

import pytest

from filesync.workers.thread_pool import WorkerPool


class TestWorkerPool:

    def test_runs_every_item(self):
        results = []
        lock = threading.Lock()

        def work(item):
            with lock:
                results.append(item * 2)

        count = WorkerPool(max_workers=4).run_all(range(20), work)

        assert count == 20
        assert sorted(results) == [i * 2 for i in range(20)]

    def test_run_all_is_a_barrier(self):
        finished = []

        def slow(item):
            time.sleep(0.01)
            finished.append(item)

        pool = WorkerPool(max_workers=3)
        pool.run_all(range(6), slow)

        assert len(finished) == 6
        assert pool.pending_count == 0

    def test_concurrency_bounded(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def work(item):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1

        WorkerPool(max_workers=2).run_all(range(10), work)

        assert 1 <= peak <= 2

    def test_errors_do_not_escape(self, caplog):
        done = []

        def work(item):
            if item == 1:
                raise RuntimeError("bad item")
            done.append(item)

        WorkerPool(max_workers=2).run_all(range(3), work)

        assert sorted(done) == [0, 2]
        assert "Unhandled error in task" in caplog.text

    def test_max_workers(self):
        assert WorkerPool(max_workers=5).max_workers == 5

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            WorkerPool(max_workers=0)

    def test_pools_are_independent(self):
        first = WorkerPool(max_workers=1)
        second = WorkerPool(max_workers=3)

        assert first.max_workers == 1
        assert second.max_workers == 3
