"""
Sync plan executor.

Applies planned actions to the destination tree:
- Action kinds run as groups, in a fixed order, with a barrier
  between groups (directories exist before files are copied into
  them; files are gone before their directories are removed)
- Directory creation is sequential; copies and deletions run on a
  bounded worker pool
- A failed action is logged and abandoned; everything else continues
- Progress is reported after every action
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
import time
from functools import partial
from threading import Lock
from typing import Callable, Iterable, Optional

from filesync.core.folder.scanner import is_symlink_mode
from filesync.core.models import (
    ActionError,
    ActionKind,
    CopyFile,
    ExecutionResult,
    ProgressPhase,
    SyncAction,
    SyncPlan,
    group_actions,
)
from filesync.core.progress import PhaseCounter, ProgressCallback, ProgressTracker
from filesync.workers.thread_pool import WorkerPool

# Marks in-flight copies in the destination tree
TEMP_SUFFIX = ".filesync-tmp"


class ActionExecutor:
    """
    Executes sync actions with bounded parallelism.

    One executor may run several plans in sequence; each `execute`
    call builds its own pool, counters and result.
    """

    def __init__(
        self,
        concurrency: int = 1,
        verbose: bool = False,
        dry_run: bool = False,
        buffer_size: int = 65536,
        preserve_timestamps: bool = True,
        preserve_permissions: bool = True
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer (value provided: {concurrency})")

        self.concurrency = concurrency
        self.verbose = verbose
        self.dry_run = dry_run
        self.buffer_size = buffer_size
        self.preserve_timestamps = preserve_timestamps
        self.preserve_permissions = preserve_permissions
        self._cancelled = False

        self._handlers: dict[ActionKind, Callable[[SyncAction], None]] = {
            ActionKind.CREATE_DIRECTORY: self._create_directory,
            ActionKind.COPY_FILE: self._copy_file,
            ActionKind.DELETE_FILE: self._delete_file,
            ActionKind.DELETE_DIRECTORY: self._delete_directory,
        }

    def cancel(self) -> None:
        """Skip actions that have not started yet. Running actions finish."""
        self._cancelled = True

    def execute(
        self,
        actions: SyncPlan | Iterable[SyncAction],
        progress_callback: Optional[ProgressCallback] = None,
        tracker: Optional[ProgressTracker] = None
    ) -> ExecutionResult:
        """
        Execute a sync plan.

        Args:
            actions: A SyncPlan or any iterable of actions
            progress_callback: Receives ProgressReport snapshots
            tracker: Shared run tracker (overrides progress_callback)

        Returns:
            ExecutionResult with counts and per-action errors
        """
        start_time = time.time()

        tracker = tracker or ProgressTracker(progress_callback)

        groups = group_actions(actions.actions if isinstance(actions, SyncPlan) else actions)

        result = ExecutionResult()
        result_lock = Lock()

        total_items = sum(len(items) for _, items in groups)
        total_bytes = sum(action.size_bytes for _, items in groups for action in items)
        processed_items = 0
        processed_bytes = 0

        pool = WorkerPool(self.concurrency) if groups else None

        for kind, items in groups:
            if self._cancelled:
                logging.info(f"ActionExecutor - Cancelled before {kind.label} actions")
                break

            if self.verbose:
                logging.info(f"ActionExecutor - Executing {len(items)} {kind.label} actions")

            group_bytes = sum(action.size_bytes for action in items) if kind == ActionKind.COPY_FILE else 0
            counter = tracker.begin_phase(ProgressPhase.for_action(kind), len(items), group_bytes)
            run = partial(self._run_action, counter, result, result_lock)

            if kind == ActionKind.CREATE_DIRECTORY:
                for action in items:
                    run(action)
            else:
                pool.run_all(items, run)

            processed_items += counter.items_processed
            processed_bytes += counter.bytes_processed

        result.cancelled = self._cancelled
        result.duration = time.time() - start_time

        tracker.emit(
            ProgressPhase.FINISHED,
            processed_items,
            total_items,
            processed_bytes,
            total_bytes,
        )

        if self.verbose:
            logging.info(
                f"ActionExecutor - Synchronization actions finished: {result.items_succeeded} succeeded, "
                f"{result.items_failed} failed"
            )

        return result

    def _run_action(
        self,
        counter: PhaseCounter,
        result: ExecutionResult,
        result_lock: Lock,
        action: SyncAction
    ) -> None:
        """Apply one action, record the outcome and report progress."""
        if self._cancelled:
            return

        if self.verbose:
            logging.info(f"ActionExecutor - Starting {action.describe()}")

        error: Optional[str] = None
        try:
            if self.dry_run:
                logging.info(f"ActionExecutor - Dry run, skipping {action.describe()}")
            else:
                self._handlers[action.kind](action)
        except Exception as e:
            error = str(e)
            logging.error(f"ActionExecutor - ERROR during {action.kind.label} for '{action.target_path}': {e}")
            counter.record_failure()

        with result_lock:
            result.items_processed += 1
            if error is None:
                result.items_succeeded += 1
                result.bytes_copied += action.size_bytes
            else:
                result.items_failed += 1
                result.errors.append(ActionError(action.kind, action.target_path, error))

        if self.verbose and error is None:
            logging.info(f"ActionExecutor - Finished {action.describe()}")

        counter.advance(action.relative_path, action.size_bytes)

    # -------------------------------------------------------------------------
    # Per-action operations
    # -------------------------------------------------------------------------

    def _create_directory(self, action: SyncAction) -> None:
        os.makedirs(action.target_path, exist_ok=True)

    def _copy_file(self, action: CopyFile) -> None:
        """
        Copy source over target, creating the parent if it went missing.

        Content goes to a temporary file beside the target which then
        replaces it, so the target is never written through (a symlink
        at the target is replaced, not followed) and a failed copy
        leaves the previous file untouched.
        """
        source = action.source_path
        dest = action.target_path

        parent = os.path.dirname(dest)
        if parent:
            os.makedirs(parent, exist_ok=True)

        if is_symlink_mode(action.entry.raw_attributes.get('st_mode', 0)):
            self._copy_symlink(source, dest)
            return

        fd, temp_path = tempfile.mkstemp(
            dir=parent or None,
            prefix=f".{os.path.basename(dest)}.",
            suffix=TEMP_SUFFIX
        )
        try:
            with os.fdopen(fd, 'wb') as dst, open(source, 'rb') as src:
                while chunk := src.read(self.buffer_size):
                    dst.write(chunk)

            if self.preserve_permissions:
                shutil.copymode(source, temp_path)

            # Keep the mtime so an unchanged file is not copied again next run
            if self.preserve_timestamps:
                stat_result = os.stat(source)
                os.utime(temp_path, ns=(stat_result.st_atime_ns, stat_result.st_mtime_ns))

            os.replace(temp_path, dest)
        except BaseException:
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass
            raise

    def _copy_symlink(self, source: str, dest: str) -> None:
        if os.path.islink(dest) or (os.path.lexists(dest) and not os.path.isdir(dest)):
            os.unlink(dest)
        shutil.copy2(source, dest, follow_symlinks=False)

    def _delete_file(self, action: SyncAction) -> None:
        try:
            os.unlink(action.target_path)
        except FileNotFoundError:
            pass

    def _delete_directory(self, action: SyncAction) -> None:
        path = action.target_path

        if os.path.islink(path):
            self._delete_file(action)
            return

        try:
            if sys.version_info >= (3, 12):
                shutil.rmtree(path, onexc=_ignore_missing)
            else:
                shutil.rmtree(path, onerror=_ignore_missing)
        except FileNotFoundError:
            pass


def _ignore_missing(func, path, exc) -> None:
    """rmtree error hook: entries removed by a concurrent deletion are fine."""
    error = exc[1] if isinstance(exc, tuple) else exc
    if isinstance(error, FileNotFoundError):
        return
    raise error
