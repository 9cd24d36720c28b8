"""
Folder synchronization module.

Provides functionality for:
- Metadata-only directory scanning
- Diff planning (update-only and mirror modes)
- Grouped, bounded-parallel execution of sync actions
- Full scan/plan/execute runs
"""

from filesync.core.folder.scanner import (
    DirectoryNotFoundError,
    FolderScanner,
    ScanOptions,
    ScanResult,
)
from filesync.core.folder.planner import (
    SyncPlanner,
)
from filesync.core.folder.executor import (
    ActionExecutor,
)
from filesync.core.folder.sync import (
    FolderSync,
    SyncOptions,
)

__all__ = [
    # Scanner
    'DirectoryNotFoundError',
    'FolderScanner',
    'ScanOptions',
    'ScanResult',
    # Planner
    'SyncPlanner',
    # Executor
    'ActionExecutor',
    # Sync
    'FolderSync',
    'SyncOptions',
]
