"""
Core data models for the synchronization engine.

This module defines the data structures shared by the scanner,
planner and executor:
- Scanned file metadata (Entry)
- Sync actions (one class per action kind)
- Sync plans and execution results
- Progress reports

All models are:
- UI-agnostic (the Qt workers and the console only consume them)
- Immutable where practical
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, auto
from pathlib import PurePosixPath
from typing import ClassVar, Iterable, Iterator, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from filesync.core.folder.scanner import ScanResult


# =============================================================================
# Enumerations
# =============================================================================

class SyncMode(Enum):
    """How destination-only items are treated."""
    UPDATE_ONLY = auto()  # Copy new/newer items, keep extra destination items
    MIRROR = auto()       # Destination becomes an exact copy of source

    @classmethod
    def from_string(cls, value: str) -> 'SyncMode':
        """Create from a name such as 'mirror' or 'UPDATE_ONLY'."""
        normalized = value.strip().upper().replace('-', '_')
        aliases = {'UPDATE': 'UPDATE_ONLY', 'ONEWAY': 'MIRROR'}
        try:
            return cls[aliases.get(normalized, normalized)]
        except KeyError:
            raise ValueError(f"Unknown sync mode: {value!r}") from None


class ActionKind(Enum):
    """Kind of sync action. Values give the execution order."""
    CREATE_DIRECTORY = 1
    COPY_FILE = 2
    DELETE_FILE = 3
    DELETE_DIRECTORY = 4

    @property
    def label(self) -> str:
        """CamelCase name used in log lines ('CopyFile')."""
        return ''.join(part.capitalize() for part in self.name.split('_'))

    @property
    def is_delete(self) -> bool:
        return self in (ActionKind.DELETE_FILE, ActionKind.DELETE_DIRECTORY)


class ProgressPhase(Enum):
    """Activity named by a progress report."""
    SCANNING = auto()
    COMPARING = auto()
    CREATE_DIRECTORY = auto()
    COPY_FILE = auto()
    DELETE_FILE = auto()
    DELETE_DIRECTORY = auto()
    FINISHED = auto()

    @classmethod
    def for_action(cls, kind: ActionKind) -> 'ProgressPhase':
        return cls[kind.name]

    @property
    def label(self) -> str:
        return ''.join(part.capitalize() for part in self.name.split('_'))


# =============================================================================
# Metadata
# =============================================================================

@dataclass(frozen=True)
class Entry:
    """
    Metadata for one scanned file or directory.

    `relative_path` always uses '/' separators and is unique within
    one scan. `modified_time` is timezone-aware UTC.
    """
    full_path: str
    relative_path: str
    name: str
    size_bytes: int
    modified_time: datetime
    is_directory: bool
    raw_attributes: Mapping[str, int] = field(
        default_factory=dict, compare=False, hash=False
    )

    @property
    def depth(self) -> int:
        """Number of separators in the relative path (0 for top level)."""
        return self.relative_path.count('/')

    @property
    def parent_relative_path(self) -> str:
        """Relative path of the parent directory ('' for the scan root)."""
        parent = str(PurePosixPath(self.relative_path).parent)
        return '' if parent == '.' else parent


# =============================================================================
# Actions
# =============================================================================

@dataclass(frozen=True)
class SyncAction:
    """
    Base class for a single planned change to the destination tree.

    Creates and copies carry the source entry, deletes carry the
    destination entry. `target_path` is always inside the destination.
    """
    entry: Entry
    target_path: str

    kind: ClassVar[ActionKind]

    @property
    def relative_path(self) -> str:
        return self.entry.relative_path

    @property
    def size_bytes(self) -> int:
        """Bytes this action transfers (only copies transfer data)."""
        return 0

    @property
    def sort_key(self) -> tuple[int, int, str]:
        """
        Execution order key.

        Kind order first; deletions run deepest first, creations and
        copies shallowest first; ties break on relative path.
        """
        depth = self.entry.depth
        if self.kind.is_delete:
            depth = -depth
        return (self.kind.value, depth, self.entry.relative_path)

    def describe(self) -> str:
        return f"{self.kind.label}: {self.relative_path}"


@dataclass(frozen=True)
class CreateDirectory(SyncAction):
    """Create a directory that exists only in the source."""
    kind: ClassVar[ActionKind] = ActionKind.CREATE_DIRECTORY


@dataclass(frozen=True)
class CopyFile(SyncAction):
    """Copy a new or newer source file over the destination."""
    kind: ClassVar[ActionKind] = ActionKind.COPY_FILE

    @property
    def source_path(self) -> str:
        return self.entry.full_path

    @property
    def size_bytes(self) -> int:
        return self.entry.size_bytes


@dataclass(frozen=True)
class DeleteFile(SyncAction):
    """Remove a destination file missing from the source."""
    kind: ClassVar[ActionKind] = ActionKind.DELETE_FILE


@dataclass(frozen=True)
class DeleteDirectory(SyncAction):
    """Remove a destination directory tree missing from the source."""
    kind: ClassVar[ActionKind] = ActionKind.DELETE_DIRECTORY


# =============================================================================
# Plan Models
# =============================================================================

@dataclass(frozen=True)
class TypeMismatch:
    """A path that is a file on one side and a directory on the other."""
    relative_path: str
    source_is_directory: bool

    def describe(self) -> str:
        if self.source_is_directory:
            return f"{self.relative_path} is a directory in source but a file in destination"
        return f"{self.relative_path} is a file in source but a directory in destination"


@dataclass
class SyncPlan:
    """An ordered list of actions for one synchronization."""
    actions: list[SyncAction]
    mode: SyncMode
    source_root: str = ""
    destination_root: str = ""
    type_mismatches: list[TypeMismatch] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.actions)

    @property
    def total_bytes(self) -> int:
        """Total bytes to be copied."""
        return sum(action.size_bytes for action in self.actions)

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def count(self, kind: ActionKind) -> int:
        return sum(1 for _ in self.iter_by_kind(kind))

    def iter_by_kind(self, kind: ActionKind) -> Iterator[SyncAction]:
        """Iterate over actions of the given kind, in plan order."""
        for action in self.actions:
            if action.kind == kind:
                yield action

    def groups(self) -> list[tuple[ActionKind, list[SyncAction]]]:
        """Non-empty action groups in execution order."""
        return group_actions(self.actions)


def group_actions(actions: Iterable[SyncAction]) -> list[tuple[ActionKind, list[SyncAction]]]:
    """Split actions into non-empty kind groups, in execution order."""
    by_kind: dict[ActionKind, list[SyncAction]] = {}
    for action in actions:
        by_kind.setdefault(action.kind, []).append(action)

    return [
        (kind, sorted(by_kind[kind], key=lambda a: a.sort_key))
        for kind in sorted(by_kind, key=lambda k: k.value)
    ]


# =============================================================================
# Progress Models
# =============================================================================

@dataclass(frozen=True)
class ProgressReport:
    """Immutable snapshot of synchronization progress."""
    phase: ProgressPhase
    items_processed: int
    total_items: int
    bytes_processed: int
    total_bytes: int
    elapsed: timedelta
    current_item: Optional[str] = None

    @property
    def is_indeterminate(self) -> bool:
        return self.total_items < 0

    @property
    def percent_items(self) -> float:
        if self.total_items <= 0:
            return 0.0
        return (self.items_processed / self.total_items) * 100

    @property
    def percent_bytes(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return (self.bytes_processed / self.total_bytes) * 100


# =============================================================================
# Result Models
# =============================================================================

@dataclass(frozen=True)
class ActionError:
    """A failed action, attributable by kind and path."""
    kind: ActionKind
    path: str
    message: str


@dataclass
class ExecutionResult:
    """Result of executing a sync plan."""
    items_processed: int = 0
    items_succeeded: int = 0
    items_failed: int = 0
    bytes_copied: int = 0
    errors: list[ActionError] = field(default_factory=list)
    duration: float = 0.0
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def success(self) -> bool:
        return not self.has_errors and not self.cancelled


@dataclass
class SyncOutcome:
    """Everything a full scan, plan and execute run produced."""
    plan: SyncPlan
    result: ExecutionResult
    source_scan: Optional[ScanResult] = None
    destination_scan: Optional[ScanResult] = None
