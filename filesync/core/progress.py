"""
Progress aggregation for a single synchronization run.

A ProgressTracker owns the run clock and the counters of the
phase in flight. Workers report completions through a PhaseCounter;
each increment and the report it produces happen under one lock, so
an observer sees non-decreasing counts and elapsed times per phase.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from threading import Lock
from typing import Callable, Optional

from filesync.core.models import ProgressPhase, ProgressReport


ProgressCallback = Callable[[ProgressReport], None]


class ProgressTracker:
    """
    Builds ProgressReport snapshots and hands them to a callback.

    One tracker per run; nothing here is module-level state, so
    independent runs never share counters.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callback = callback
        self._lock = Lock()
        self._start = time.monotonic()
        self._last_report: Optional[ProgressReport] = None

    @property
    def last_report(self) -> Optional[ProgressReport]:
        """Most recent report emitted."""
        return self._last_report

    def elapsed(self) -> timedelta:
        """Time since the run began."""
        return timedelta(seconds=time.monotonic() - self._start)

    def emit(
        self,
        phase: ProgressPhase,
        items_processed: int,
        total_items: int,
        bytes_processed: int = 0,
        total_bytes: int = 0,
        current_item: Optional[str] = None
    ) -> ProgressReport:
        """Emit a report outside any phase counter."""
        with self._lock:
            return self._emit_locked(
                phase, items_processed, total_items,
                bytes_processed, total_bytes, current_item
            )

    def begin_phase(
        self,
        phase: ProgressPhase,
        total_items: int,
        total_bytes: int = 0
    ) -> PhaseCounter:
        """Emit the opening report of a phase and return its counter."""
        counter = PhaseCounter(self, phase, total_items, total_bytes)
        self.emit(phase, 0, total_items, 0, total_bytes)
        return counter

    def _emit_locked(
        self,
        phase: ProgressPhase,
        items_processed: int,
        total_items: int,
        bytes_processed: int,
        total_bytes: int,
        current_item: Optional[str]
    ) -> ProgressReport:
        report = ProgressReport(
            phase=phase,
            items_processed=items_processed,
            total_items=total_items,
            bytes_processed=bytes_processed,
            total_bytes=total_bytes,
            elapsed=self.elapsed(),
            current_item=current_item,
        )
        self._last_report = report

        if self._callback:
            try:
                self._callback(report)
            except Exception as e:
                logging.warning(f"ProgressTracker - Progress callback failed: {e}")

        return report


class PhaseCounter:
    """Thread-safe item/byte counters for one phase."""

    def __init__(
        self,
        tracker: ProgressTracker,
        phase: ProgressPhase,
        total_items: int,
        total_bytes: int = 0
    ):
        self.tracker = tracker
        self.phase = phase
        self.total_items = total_items
        self.total_bytes = total_bytes
        self._items = 0
        self._bytes = 0
        self._failures = 0

    @property
    def items_processed(self) -> int:
        return self._items

    @property
    def bytes_processed(self) -> int:
        return self._bytes

    @property
    def failures(self) -> int:
        return self._failures

    def advance(self, current_item: Optional[str] = None, nbytes: int = 0) -> ProgressReport:
        """Count one finished item (success or failure) and report it."""
        with self.tracker._lock:
            self._items += 1
            self._bytes += nbytes
            return self.tracker._emit_locked(
                self.phase, self._items, self.total_items,
                self._bytes, self.total_bytes, current_item
            )

    def record_failure(self) -> None:
        with self.tracker._lock:
            self._failures += 1
