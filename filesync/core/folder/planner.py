"""
Synchronization planner.

Turns two metadata snapshots into an ordered SyncPlan:
- New source items become directory creations or file copies
- Source files newer than their destination copy are recopied
- In mirror mode, destination-only items are deleted
- File/directory type mismatches are reported and left alone

Planning is pure: no file system access.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

from filesync.core.models import (
    CopyFile,
    CreateDirectory,
    DeleteDirectory,
    DeleteFile,
    Entry,
    SyncAction,
    SyncMode,
    SyncPlan,
    TypeMismatch,
)


class SyncPlanner:
    """
    Compares source and destination entries by relative path.

    Equal timestamps count as in sync; only a strictly newer source
    file is recopied.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def plan(
        self,
        source_entries: Iterable[Entry],
        destination_entries: Iterable[Entry],
        mode: SyncMode,
        destination_root: str,
        source_root: str = ""
    ) -> SyncPlan:
        """
        Build the action list for one synchronization.

        Args:
            source_entries: Scan of the source tree
            destination_entries: Scan of the destination tree
            mode: UPDATE_ONLY keeps extra destination items, MIRROR deletes them
            destination_root: Root that source relative paths are placed under
            source_root: Recorded on the plan for reporting

        Returns:
            SyncPlan with actions sorted into execution order
        """
        source_entries = list(source_entries)
        destination_entries = list(destination_entries)

        destination_lookup = {entry.relative_path: entry for entry in destination_entries}
        source_lookup: Optional[dict[str, Entry]] = None
        if mode == SyncMode.MIRROR:
            source_lookup = {entry.relative_path: entry for entry in source_entries}

        actions: list[SyncAction] = []
        mismatches = self._find_type_mismatches(source_entries, destination_lookup)
        blocked_dirs = {m.relative_path for m in mismatches if m.source_is_directory}

        for source in source_entries:
            if self._is_blocked(source, blocked_dirs):
                logging.debug(f"SyncPlanner - Skipping {source.relative_path}: parent path type mismatch")
                continue

            dest = destination_lookup.get(source.relative_path)

            if dest is None:
                target = self._target_path(destination_root, source.relative_path)
                if source.is_directory:
                    self._schedule(actions, CreateDirectory(source, target), "new")
                else:
                    self._schedule(actions, CopyFile(source, target), "new")

            elif source.is_directory != dest.is_directory:
                continue

            elif not source.is_directory and source.modified_time > dest.modified_time:
                self._schedule(actions, CopyFile(source, dest.full_path), "newer")

        if source_lookup is not None:
            for dest in destination_entries:
                if dest.relative_path in source_lookup:
                    continue
                if dest.is_directory:
                    self._schedule(actions, DeleteDirectory(dest, dest.full_path), "extra")
                else:
                    self._schedule(actions, DeleteFile(dest, dest.full_path), "extra")

        actions.sort(key=lambda action: action.sort_key)

        logging.debug(f"SyncPlanner - Comparison complete. Found {len(actions)} actions required.")

        return SyncPlan(
            actions=actions,
            mode=mode,
            source_root=source_root,
            destination_root=destination_root,
            type_mismatches=mismatches,
        )

    def _schedule(self, actions: list[SyncAction], action: SyncAction, reason: str) -> None:
        actions.append(action)
        if self.verbose:
            logging.info(f"SyncPlanner - Scheduling {action.kind.label} ({reason}): {action.relative_path}")

    @staticmethod
    def _find_type_mismatches(
        source_entries: list[Entry],
        destination_lookup: dict[str, Entry]
    ) -> list[TypeMismatch]:
        """Find paths that are a file on one side and a directory on the other."""
        mismatches = []
        for source in source_entries:
            dest = destination_lookup.get(source.relative_path)
            if dest is not None and dest.is_directory != source.is_directory:
                mismatch = TypeMismatch(source.relative_path, source.is_directory)
                mismatches.append(mismatch)
                logging.warning(f"SyncPlanner - Type mismatch, skipping: {mismatch.describe()}")
        return mismatches

    @staticmethod
    def _is_blocked(entry: Entry, blocked_dirs: set[str]) -> bool:
        """Check if any ancestor of the entry is a blocked directory."""
        parent = entry.parent_relative_path
        while parent and blocked_dirs:
            if parent in blocked_dirs:
                return True
            parent = parent.rpartition('/')[0]
        return False

    @staticmethod
    def _target_path(destination_root: str, relative_path: str) -> str:
        return os.path.join(destination_root, *relative_path.split('/'))


def plan(
    source_entries: Iterable[Entry],
    destination_entries: Iterable[Entry],
    mode: SyncMode,
    destination_root: str
) -> SyncPlan:
    """Convenience wrapper around SyncPlanner.plan."""
    return SyncPlanner().plan(source_entries, destination_entries, mode, destination_root)
