"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from PyQt6.QtCore import QCoreApplication

from filesync.core.models import Entry

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """One QCoreApplication for the whole session; the worker pool needs it."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


def make_entry(
    relative_path: str,
    is_directory: bool = False,
    size: int = 0,
    modified: datetime = BASE_TIME,
    root: str = "/root",
) -> Entry:
    """Build an Entry without touching the file system."""
    return Entry(
        full_path=os.path.join(root, *relative_path.split("/")),
        relative_path=relative_path,
        name=relative_path.rsplit("/", 1)[-1],
        size_bytes=0 if is_directory else size,
        modified_time=modified,
        is_directory=is_directory,
    )


def minutes(n: int) -> datetime:
    return BASE_TIME + timedelta(minutes=n)


def write_file(path: Path, content: str | bytes = "data", mtime: datetime | None = None) -> Path:
    """Create a file (and its parents), optionally pinning its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    if mtime is not None:
        stamp = mtime.timestamp()
        os.utime(path, (stamp, stamp))
    return path


def tree_snapshot(root: Path) -> dict[str, str | None]:
    """Map every relative path below root to file content (None for directories)."""
    snapshot = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            rel = Path(dirpath, name).relative_to(root).as_posix()
            snapshot[rel] = None
        for name in filenames:
            full = Path(dirpath, name)
            snapshot[full.relative_to(root).as_posix()] = full.read_text()
    return snapshot


@pytest.fixture
def source_dir(tmp_path):
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def destination_dir(tmp_path):
    path = tmp_path / "destination"
    path.mkdir()
    return path
