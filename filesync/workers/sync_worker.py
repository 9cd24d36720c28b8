"""
Qt worker for folder synchronization.

Hosts a FolderSync run on a background thread and relays its
progress stream to the UI thread through Qt signals.
"""

from __future__ import annotations

from enum import Enum, auto
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt, QObject, QThread, pyqtSignal, pyqtSlot, QMutex, QMutexLocker

from filesync.core.folder.sync import FolderSync, SyncOptions
from filesync.core.models import ProgressReport, SyncOutcome


class WorkerState(Enum):
    """State of a worker."""
    PENDING = auto()
    RUNNING = auto()
    CANCELLING = auto()
    CANCELLED = auto()
    COMPLETED = auto()
    FAILED = auto()


class SyncWorkerSignals(QObject):
    """
    Signals emitted by a SyncWorker.

    `progress_report` fires from pool threads while actions run;
    connect with a queued (default) connection from UI code.
    """
    started = pyqtSignal()

    # ProgressReport snapshot
    progress_report = pyqtSignal(object)

    # Status message
    status = pyqtSignal(str)

    # SyncOutcome on success
    finished = pyqtSignal(object)

    # Fatal error: (error_type, message)
    error = pyqtSignal(str, str)

    cancelled = pyqtSignal()

    # One per abandoned action after the run: (kind, path, message)
    action_failed = pyqtSignal(str, str, str)

    state_changed = pyqtSignal(object)  # WorkerState


class SyncWorker(QObject):
    """
    Worker for executing folder synchronization.

    Usage:
        worker = SyncWorker(source, destination, SyncOptions(mode=SyncMode.MIRROR))
        worker.signals.progress_report.connect(on_progress)
        thread = SyncWorkerThread(worker)
        thread.start()
    """

    def __init__(
        self,
        source_root: str | Path,
        destination_root: str | Path,
        options: Optional[SyncOptions] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self.source_root = Path(source_root)
        self.destination_root = Path(destination_root)
        self.options = options or SyncOptions()
        self.signals = SyncWorkerSignals()

        self._mutex = QMutex()
        self._state = WorkerState.PENDING
        self._cancelled = False
        self._sync: Optional[FolderSync] = None
        self._outcome: Optional[SyncOutcome] = None
        self._error: Optional[tuple[str, str]] = None

    @property
    def state(self) -> WorkerState:
        with QMutexLocker(self._mutex):
            return self._state

    def _set_state(self, value: WorkerState) -> None:
        with QMutexLocker(self._mutex):
            self._state = value
        self.signals.state_changed.emit(value)

    @property
    def is_cancelled(self) -> bool:
        with QMutexLocker(self._mutex):
            return self._cancelled

    @property
    def outcome(self) -> Optional[SyncOutcome]:
        """The run's outcome, once finished or cancelled."""
        return self._outcome

    @property
    def error(self) -> Optional[tuple[str, str]]:
        return self._error

    def cancel(self) -> None:
        """Stop starting new actions; running ones complete."""
        with QMutexLocker(self._mutex):
            self._cancelled = True
            if self._state == WorkerState.RUNNING:
                self._state = WorkerState.CANCELLING
            sync = self._sync
        self.signals.state_changed.emit(WorkerState.CANCELLING)

        if sync:
            sync.cancel()

    @pyqtSlot()
    def run(self) -> None:
        """Run the synchronization. Called when the hosting thread starts."""
        self._set_state(WorkerState.RUNNING)
        self.signals.started.emit()

        try:
            outcome = self._do_sync()
        except Exception as e:
            self._error = (type(e).__name__, str(e))
            self._set_state(WorkerState.FAILED)
            self.signals.error.emit(type(e).__name__, str(e))
            return

        self._outcome = outcome

        for failure in outcome.result.errors:
            self.signals.action_failed.emit(failure.kind.label, failure.path, failure.message)

        if self.is_cancelled:
            self._set_state(WorkerState.CANCELLED)
            self.signals.cancelled.emit()
        else:
            self._set_state(WorkerState.COMPLETED)
            self.signals.finished.emit(outcome)

    def _do_sync(self) -> SyncOutcome:
        sync = FolderSync(self.options)
        with QMutexLocker(self._mutex):
            self._sync = sync
            cancelled = self._cancelled

        if cancelled:
            sync.cancel()

        self.signals.status.emit("Synchronizing...")
        try:
            return sync.sync(self.source_root, self.destination_root, self._relay_progress)
        finally:
            with QMutexLocker(self._mutex):
                self._sync = None

    def _relay_progress(self, report: ProgressReport) -> None:
        self.signals.progress_report.emit(report)


class SyncWorkerThread(QThread):
    """
    Runs a SyncWorker in its own thread.

    Usage:
        thread = SyncWorkerThread(worker)
        thread.start()
        thread.wait()
    """

    def __init__(self, worker: SyncWorker, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.worker = worker
        self.worker.moveToThread(self)

        self.started.connect(self.worker.run)

        # quit() is thread-safe; a direct connection works without a
        # running event loop in the owning thread
        direct = Qt.ConnectionType.DirectConnection
        self.worker.signals.finished.connect(self.quit, direct)
        self.worker.signals.error.connect(self.quit, direct)
        self.worker.signals.cancelled.connect(self.quit, direct)

    def cancel(self) -> None:
        self.worker.cancel()

    @property
    def outcome(self) -> Optional[SyncOutcome]:
        return self.worker.outcome
