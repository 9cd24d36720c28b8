"""
Tests for the metadata scanner.
"""

import os
import sys
from contextlib import contextmanager
from datetime import timezone

import pytest

from filesync.core.folder.scanner import DirectoryNotFoundError, FolderScanner, ScanOptions
from filesync.core.models import ProgressPhase
from filesync.core.progress import ProgressTracker

from conftest import minutes, write_file


class TestScanCompleteness:

    def test_every_file_and_directory_found(self, source_dir):
        write_file(source_dir / "a.txt", "a")
        write_file(source_dir / "sub" / "b.txt", "bb")
        write_file(source_dir / "sub" / "deeper" / "c.txt", "ccc")
        (source_dir / "empty").mkdir()

        result = FolderScanner().scan(source_dir)

        assert result.get_all_paths() == {
            "a.txt",
            "sub",
            "sub/b.txt",
            "sub/deeper",
            "sub/deeper/c.txt",
            "empty",
        }
        assert result.file_count == 3
        assert result.directory_count == 3
        assert result.error_count == 0

    def test_relative_paths_are_unique(self, source_dir):
        for i in range(5):
            write_file(source_dir / f"d{i}" / f"f{i}.txt")

        result = FolderScanner().scan(source_dir)
        paths = [entry.relative_path for entry in result]

        assert len(paths) == len(set(paths))

    def test_root_itself_not_recorded(self, source_dir):
        write_file(source_dir / "a.txt")

        result = FolderScanner().scan(source_dir)

        assert "" not in result.get_all_paths()
        assert len(result) == 1

    def test_empty_root(self, source_dir):
        result = FolderScanner().scan(source_dir)

        assert len(result) == 0
        assert result.errors == []


class TestEntryMetadata:

    def test_file_metadata(self, source_dir):
        write_file(source_dir / "sub" / "file.bin", b"12345", mtime=minutes(5))

        entry = FolderScanner().scan(source_dir).get_entry("sub/file.bin")

        assert entry is not None
        assert entry.name == "file.bin"
        assert entry.size_bytes == 5
        assert not entry.is_directory
        assert entry.modified_time == minutes(5)
        assert entry.modified_time.tzinfo == timezone.utc
        assert entry.full_path == os.path.join(str(source_dir), "sub", "file.bin")
        assert entry.depth == 1
        assert entry.parent_relative_path == "sub"

    def test_directory_size_is_zero(self, source_dir):
        write_file(source_dir / "sub" / "file.bin", b"12345")

        entry = FolderScanner().scan(source_dir).get_entry("sub")

        assert entry.is_directory
        assert entry.size_bytes == 0
        assert entry.parent_relative_path == ""

    def test_relative_paths_use_forward_slashes(self, source_dir):
        write_file(source_dir / "x" / "y" / "z.txt")

        result = FolderScanner().scan(source_dir)

        assert "x/y/z.txt" in result.get_all_paths()

    def test_root_with_trailing_separator(self, source_dir):
        write_file(source_dir / "a.txt")

        result = FolderScanner().scan(str(source_dir) + os.sep)

        assert result.get_all_paths() == {"a.txt"}

    def test_sibling_with_common_prefix(self, tmp_path):
        # 'data' must not mangle paths of a sibling named 'data2'
        write_file(tmp_path / "data" / "inner.txt")
        write_file(tmp_path / "data2" / "other.txt")

        result = FolderScanner().scan(tmp_path / "data")

        assert result.get_all_paths() == {"inner.txt"}


class TestScanErrors:

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(DirectoryNotFoundError):
            FolderScanner().scan(tmp_path / "does-not-exist")

    def test_file_root_raises(self, tmp_path):
        path = write_file(tmp_path / "plain.txt")

        with pytest.raises(DirectoryNotFoundError):
            FolderScanner().scan(path)

    def test_missing_root_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FolderScanner().scan(tmp_path / "missing")

    @pytest.mark.skipif(
        sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="permission bits are not enforced"
    )
    def test_unreadable_directory_is_skipped(self, source_dir, caplog):
        write_file(source_dir / "ok.txt")
        locked = source_dir / "locked"
        write_file(locked / "hidden.txt")
        locked.chmod(0)

        try:
            result = FolderScanner().scan(source_dir)
        finally:
            locked.chmod(0o755)

        assert "ok.txt" in result.get_all_paths()
        assert "locked" in result.get_all_paths()
        assert "locked/hidden.txt" not in result.get_all_paths()
        assert result.error_count == 1
        assert "Access denied" in caplog.text

    def test_listing_and_stat_failures_are_skipped(self, source_dir, monkeypatch, caplog):
        write_file(source_dir / "ok.txt")
        write_file(source_dir / "broken.txt")
        write_file(source_dir / "locked" / "hidden.txt")
        write_file(source_dir / "sub" / "deep.txt")
        real_scandir = os.scandir

        class UnreadableEntry:
            def __init__(self, entry):
                self._entry = entry

            def __getattr__(self, name):
                return getattr(self._entry, name)

            def stat(self, follow_symlinks=True):
                raise PermissionError(13, "Permission denied", self._entry.path)

        @contextmanager
        def failing_scandir(path):
            if os.path.basename(os.fspath(path)) == "locked":
                raise PermissionError(13, "Permission denied", os.fspath(path))
            with real_scandir(path) as children:
                yield [UnreadableEntry(child) if child.name == "broken.txt" else child
                       for child in children]

        monkeypatch.setattr(os, "scandir", failing_scandir)

        result = FolderScanner().scan(source_dir)

        assert sorted(result.get_all_paths()) == ["locked", "ok.txt", "sub", "sub/deep.txt"]
        assert result.error_count == 2
        assert f"Access denied scanning file: {source_dir / 'broken.txt'}" in caplog.text
        assert f"Access denied enumerating directory: {source_dir / 'locked'}" in caplog.text


class TestSymlinks:

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
    def test_symlinked_directory_not_followed_by_default(self, source_dir, tmp_path):
        write_file(tmp_path / "elsewhere" / "far.txt")
        os.symlink(tmp_path / "elsewhere", source_dir / "link")

        result = FolderScanner().scan(source_dir)

        entry = result.get_entry("link")
        assert entry is not None
        assert not entry.is_directory
        assert "link/far.txt" not in result.get_all_paths()

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
    def test_follow_symlinks_stops_at_cycles(self, source_dir):
        write_file(source_dir / "sub" / "a.txt")
        os.symlink(source_dir, source_dir / "sub" / "loop")

        result = FolderScanner(ScanOptions(follow_symlinks=True)).scan(source_dir)

        assert "sub/loop" in result.get_all_paths()
        assert "sub/loop/sub" not in result.get_all_paths()


class TestScanProgress:

    def test_reports_scanning_phase(self, source_dir):
        for name in ("a", "b", "c"):
            write_file(source_dir / f"{name}.txt")
        reports = []

        FolderScanner().scan(source_dir, ProgressTracker(reports.append))

        assert len(reports) == 3
        assert all(r.phase == ProgressPhase.SCANNING for r in reports)
        assert all(r.is_indeterminate for r in reports)
        assert [r.items_processed for r in reports] == [1, 2, 3]

    def test_cancel_before_scan_is_reset(self, source_dir):
        write_file(source_dir / "a.txt")
        scanner = FolderScanner()
        scanner.cancel()

        result = scanner.scan(source_dir)

        assert len(result) == 1
