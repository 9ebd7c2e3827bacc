"""Tests for FileStats snapshots."""

import os
import stat

import pytest

from fsaccess.core.stats import FileStats, FileType


class TestFileType:
    def test_from_mode(self):
        assert FileType.from_mode(stat.S_IFREG | 0o644) is FileType.REGULAR
        assert FileType.from_mode(stat.S_IFDIR | 0o755) is FileType.DIRECTORY
        assert FileType.from_mode(stat.S_IFLNK | 0o777) is FileType.SYMLINK
        assert FileType.from_mode(stat.S_IFIFO) is FileType.FIFO
        assert FileType.from_mode(stat.S_IFSOCK) is FileType.SOCKET
        assert FileType.from_mode(0) is FileType.UNKNOWN


class TestFileStats:
    def test_from_stat_result(self, source_dir):
        path = source_dir / "file.txt"
        st = os.stat(path)
        snapshot = FileStats.from_stat_result(st)

        assert snapshot.size == st.st_size == 11
        assert snapshot.ino == st.st_ino
        assert snapshot.mtime_ns == st.st_mtime_ns
        assert snapshot.is_file()
        assert not snapshot.is_directory()
        assert snapshot.file_type is FileType.REGULAR
        assert snapshot.permissions == stat.S_IMODE(st.st_mode)

    def test_directory_and_symlink_predicates(self, source_dir):
        assert FileStats.from_stat_result(os.stat(source_dir / "subdir")).is_directory()
        link = FileStats.from_stat_result(os.lstat(source_dir / "link.txt"))
        assert link.is_symbolic_link()
        assert not link.is_file()

    def test_immutable(self, source_dir):
        snapshot = FileStats.from_stat_result(os.stat(source_dir))
        with pytest.raises(AttributeError):
            snapshot.size = 0

    def test_zero(self):
        zero = FileStats.zero()
        assert zero.is_zero()
        assert zero.size == 0
        assert zero.mtime == 0.0
        assert zero.birthtime == 0.0
        assert zero.file_type is FileType.UNKNOWN

    def test_real_snapshot_is_not_zero(self, source_dir):
        assert not FileStats.from_stat_result(os.stat(source_dir)).is_zero()

    def test_changed_from(self, source_dir):
        path = source_dir / "file.txt"
        before = FileStats.from_stat_result(os.stat(path))
        assert not before.changed_from(before)

        os.utime(path, ns=(before.atime_ns, before.mtime_ns + 1_000_000_000))
        after = FileStats.from_stat_result(os.stat(path))
        assert after.changed_from(before)
        assert FileStats.zero().changed_from(before)
