"""
Folder synchronization engine.

Runs a complete one-way synchronization:
- Scan source and destination metadata
- Plan the actions (update-only or mirror)
- Execute them with bounded parallelism
- Report progress for the whole run on one clock
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from filesync.core.folder.executor import ActionExecutor
from filesync.core.folder.planner import SyncPlanner
from filesync.core.folder.scanner import FolderScanner, ScanOptions
from filesync.core.models import (
    ExecutionResult,
    ProgressPhase,
    SyncMode,
    SyncOutcome,
)
from filesync.core.progress import ProgressCallback, ProgressTracker


@dataclass
class SyncOptions:
    """Options for synchronization."""
    mode: SyncMode = SyncMode.UPDATE_ONLY

    # Performance
    concurrency: int = os.cpu_count() or 1

    # Scanning
    follow_symlinks: bool = False

    # Behaviour
    verbose: bool = False
    dry_run: bool = False

    def validate(self) -> None:
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise ValueError(
                f"concurrency must be a positive integer (value provided: {self.concurrency})"
            )


class FolderSync:
    """
    Makes a destination folder match a source folder.

    Scan errors on the roots abort before anything is modified;
    everything after that is best effort.
    """

    def __init__(self, options: Optional[SyncOptions] = None):
        self.options = options or SyncOptions()
        self.options.validate()

        self._scanner = FolderScanner(ScanOptions(follow_symlinks=self.options.follow_symlinks))
        self._planner = SyncPlanner(verbose=self.options.verbose)
        self._executor = ActionExecutor(
            concurrency=self.options.concurrency,
            verbose=self.options.verbose,
            dry_run=self.options.dry_run,
        )
        self._cancelled = False

    def sync(
        self,
        source_root: Path | str,
        destination_root: Path | str,
        progress_callback: Optional[ProgressCallback] = None
    ) -> SyncOutcome:
        """
        Perform full sync: scan, plan and execute.

        Args:
            source_root: Directory to copy from (never modified)
            destination_root: Directory brought in line with the source
            progress_callback: Called with every ProgressReport

        Returns:
            SyncOutcome with the plan, the execution result and both scans

        Raises:
            DirectoryNotFoundError: either root is missing or not a directory
        """
        tracker = ProgressTracker(progress_callback)
        verbose = self.options.verbose

        source_root = os.path.abspath(os.fspath(source_root))
        destination_root = os.path.abspath(os.fspath(destination_root))

        if verbose:
            logging.info(f"FolderSync - Scanning source directory: {source_root}")
        source_scan = self._scanner.scan(source_root, tracker)
        if verbose:
            logging.info(
                f"FolderSync - Found {len(source_scan)} items in source ({source_scan.total_size} bytes)."
            )

        if verbose:
            logging.info(f"FolderSync - Scanning destination directory: {destination_root}")
        destination_scan = self._scanner.scan(destination_root, tracker)
        if verbose:
            logging.info(f"FolderSync - Found {len(destination_scan)} items in destination.")

        if verbose:
            logging.info(
                f"FolderSync - Comparing source and destination items "
                f"(Mode: {self.options.mode.name}, Threads: {self.options.concurrency})..."
            )
        tracker.emit(ProgressPhase.COMPARING, 0, -1, 0, -1)

        plan = self._planner.plan(
            source_scan,
            destination_scan,
            self.options.mode,
            destination_root,
            source_root=source_root,
        )

        tracker.emit(ProgressPhase.COMPARING, plan.total_items, plan.total_items, 0, -1)

        if plan.is_empty:
            if verbose:
                logging.info("FolderSync - No actions needed. Directories are in sync.")
            tracker.emit(ProgressPhase.FINISHED, 0, 0, 0, 0)
            return SyncOutcome(plan, ExecutionResult(), source_scan, destination_scan)

        if self._cancelled:
            logging.info("FolderSync - Cancelled before executing the plan")
            result = ExecutionResult(cancelled=True)
        else:
            result = self._executor.execute(plan, tracker=tracker)

        return SyncOutcome(plan, result, source_scan, destination_scan)

    def cancel(self) -> None:
        """Cancel ongoing synchronization."""
        self._cancelled = True
        self._scanner.cancel()
        self._executor.cancel()
