"""
Directory scanner for synchronization.

Provides metadata-only directory traversal with:
- Iterative depth-first walk (no recursion limit)
- One directory enumeration per directory
- Symlink handling
- Progress reporting
- Error resilience (unreadable items are skipped, not fatal)
"""

from __future__ import annotations

import logging
import os
import stat
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from filesync.core.models import Entry, ProgressPhase
from filesync.core.progress import ProgressTracker


class DirectoryNotFoundError(FileNotFoundError):
    """Raised when a scan root is missing or is not a directory."""
    pass


@dataclass
class ScanOptions:
    """Options for directory scanning."""
    follow_symlinks: bool = False


@dataclass
class ScanResult:
    """
    Result of a directory scan.

    Behaves as the list of entries found, in scan order.
    """
    root_path: Path
    entries: list[Entry] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)  # (path, error message)
    scan_time: float = 0.0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> Entry:
        return self.entries[index]

    @property
    def file_count(self) -> int:
        return sum(1 for entry in self.entries if not entry.is_directory)

    @property
    def directory_count(self) -> int:
        return sum(1 for entry in self.entries if entry.is_directory)

    @property
    def total_size(self) -> int:
        return sum(entry.size_bytes for entry in self.entries)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def get_all_paths(self) -> set[str]:
        """Get all relative paths (files and directories)."""
        return {entry.relative_path for entry in self.entries}

    def get_entry(self, relative_path: str) -> Optional[Entry]:
        for entry in self.entries:
            if entry.relative_path == relative_path:
                return entry
        return None


class FolderScanner:
    """
    Scans a directory tree into a flat list of Entry records.

    Only metadata is read; file contents are never opened.
    """

    def __init__(self, options: Optional[ScanOptions] = None):
        self.options = options or ScanOptions()
        self._cancelled = False

    def scan(
        self,
        root_path: Path | str,
        tracker: Optional[ProgressTracker] = None
    ) -> ScanResult:
        """
        Scan a directory tree.

        Args:
            root_path: Root directory to scan (not itself recorded)
            tracker: Receives a SCANNING report per entry found

        Returns:
            ScanResult with every file and directory below the root

        Raises:
            DirectoryNotFoundError: root is missing or not a directory
        """
        start_time = time.time()

        root = os.path.abspath(os.fspath(root_path))

        if not os.path.isdir(root):
            logging.error(f"FolderScanner - Root path not found or not a directory: {root}")
            raise DirectoryNotFoundError(f"Directory not found: {root}")

        self._cancelled = False

        # Exactly one trailing separator, so 'data' never trims 'data2/...'
        root_prefix = root.rstrip(os.sep) + os.sep
        prefix_length = len(root_prefix)

        result = ScanResult(root_path=Path(root))
        visited: set[tuple[int, int]] = set()
        if self.options.follow_symlinks:
            visited.add(self._identity(os.stat(root)))

        pending = [root]

        while pending:
            if self._cancelled:
                logging.info("FolderScanner - Scan cancelled")
                break

            current = pending.pop()

            try:
                with os.scandir(current) as children:
                    for child in children:
                        entry = self._make_entry(child, prefix_length, result)
                        if entry is None:
                            continue

                        result.entries.append(entry)

                        if tracker:
                            tracker.emit(
                                ProgressPhase.SCANNING,
                                len(result.entries),
                                -1,
                                current_item=entry.relative_path,
                            )

                        if entry.is_directory and self._should_expand(child, visited, result):
                            pending.append(child.path)

            except PermissionError as e:
                self._record_error(result, current, "Access denied enumerating directory", e)
            except OSError as e:
                self._record_error(result, current, "IO error enumerating directory", e)

        result.scan_time = time.time() - start_time

        logging.debug(
            f"FolderScanner - Scanned {root}: {result.file_count} files, "
            f"{result.directory_count} directories, {result.error_count} errors"
        )

        return result

    def cancel(self) -> None:
        """Cancel an ongoing scan."""
        self._cancelled = True

    def _make_entry(
        self,
        child: os.DirEntry,
        prefix_length: int,
        result: ScanResult
    ) -> Optional[Entry]:
        """Build an Entry from a directory listing item, or None if unreadable."""
        follow = self.options.follow_symlinks

        try:
            is_directory = child.is_dir(follow_symlinks=follow)
        except OSError as e:
            self._record_error(result, child.path, "IO error scanning item", e)
            return None

        kind = "directory" if is_directory else "file"
        try:
            stat_result = child.stat(follow_symlinks=follow)
        except PermissionError as e:
            self._record_error(result, child.path, f"Access denied scanning {kind}", e)
            return None
        except OSError as e:
            self._record_error(result, child.path, f"IO error scanning {kind}", e)
            return None

        relative_path = child.path[prefix_length:]
        if os.sep != '/':
            relative_path = relative_path.replace(os.sep, '/')

        raw_attributes = {'st_mode': stat_result.st_mode}
        file_attributes = getattr(stat_result, 'st_file_attributes', None)
        if file_attributes is not None:
            raw_attributes['st_file_attributes'] = file_attributes

        return Entry(
            full_path=child.path,
            relative_path=relative_path,
            name=child.name,
            size_bytes=0 if is_directory else stat_result.st_size,
            modified_time=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc),
            is_directory=is_directory,
            raw_attributes=raw_attributes,
        )

    def _should_expand(
        self,
        child: os.DirEntry,
        visited: set[tuple[int, int]],
        result: ScanResult
    ) -> bool:
        """Check whether a directory's contents should be scanned."""
        if not self.options.follow_symlinks:
            return True

        try:
            identity = self._identity(child.stat(follow_symlinks=True))
        except OSError as e:
            self._record_error(result, child.path, "IO error scanning directory", e)
            return False

        if identity in visited:
            logging.debug(f"FolderScanner - Skipping already visited directory: {child.path}")
            return False

        visited.add(identity)
        return True

    @staticmethod
    def _identity(stat_result: os.stat_result) -> tuple[int, int]:
        return (stat_result.st_dev, stat_result.st_ino)

    @staticmethod
    def _record_error(result: ScanResult, path: str, what: str, error: OSError) -> None:
        message = error.strerror or str(error)
        result.errors.append((path, message))
        logging.warning(f"FolderScanner - {what}: {path}. Skipping. Error: {message}")


def is_symlink_mode(mode: int) -> bool:
    """Check if a raw st_mode value describes a symbolic link."""
    return stat.S_ISLNK(mode)
