"""
Thread pool management for sync actions.

Provides a bounded pool of worker threads with an explicit
join barrier: a batch submitted through `run_all` is finished
before the call returns.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, TypeVar

from PyQt6.QtCore import QObject, QThreadPool, QRunnable, QMutex, QMutexLocker


T = TypeVar('T')


class WorkerPool(QObject):
    """
    Fixed-size pool of worker threads.

    Each pool owns a private QThreadPool rather than the global
    instance, so two synchronization runs never share threads.

    Usage:
        pool = WorkerPool(max_workers=4)
        pool.run_all(items, process_item)   # returns when all are done
    """

    def __init__(
        self,
        max_workers: int = 1,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        if max_workers < 1:
            raise ValueError(f"max_workers must be a positive integer (value provided: {max_workers})")

        self._pool = QThreadPool(self)
        self._pool.setMaxThreadCount(max_workers)

        self._mutex = QMutex()
        self._pending_count = 0

    @property
    def max_workers(self) -> int:
        """Maximum number of worker threads."""
        return self._pool.maxThreadCount()

    @property
    def pending_count(self) -> int:
        """Number of submitted tasks that have not finished."""
        with QMutexLocker(self._mutex):
            return self._pending_count

    def submit(self, func: Callable[[T], None], item: T) -> None:
        """Queue one call of func(item)."""
        with QMutexLocker(self._mutex):
            self._pending_count += 1

        self._pool.start(_PoolRunnable(func, item, self._on_task_done))

    def run_all(self, items: Iterable[T], func: Callable[[T], None]) -> int:
        """
        Run func over every item and wait for all of them.

        Items are started in iteration order but may finish in any
        order. Returns the number of items submitted.
        """
        count = 0
        for item in items:
            self.submit(func, item)
            count += 1

        self.wait_all()
        return count

    def wait_all(self, timeout: int = -1) -> bool:
        """
        Wait for all tasks to complete.

        Args:
            timeout: Timeout in milliseconds (-1 for infinite)

        Returns:
            True if all tasks completed, False if timeout
        """
        return self._pool.waitForDone(timeout)

    def _on_task_done(self) -> None:
        with QMutexLocker(self._mutex):
            self._pending_count -= 1


class _PoolRunnable(QRunnable):
    """Internal runnable for pool execution."""

    def __init__(
        self,
        func: Callable,
        item: object,
        on_done: Callable[[], None]
    ):
        super().__init__()
        self.func = func
        self.item = item
        self.on_done = on_done
        self.setAutoDelete(True)

    def run(self) -> None:
        """Execute the task."""
        # An exception escaping into Qt would abort the process
        try:
            self.func(self.item)
        except Exception:
            logging.exception(f"WorkerPool - Unhandled error in task for {self.item!r}")
        finally:
            self.on_done()
