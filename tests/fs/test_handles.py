"""Tests for the handle table."""

import errno
import os
import threading

import pytest

from fsaccess.core.errors import InvalidHandle
from fsaccess.fs.handles import HandleTable


class TestHandleTable:
    def test_allocate_and_get(self):
        table = HandleTable()
        handle = table.allocate(7, "/a", os.O_RDONLY, False)

        assert handle == 1
        assert handle in table
        assert len(table) == 1
        open_file = table.get(handle)
        assert open_file.fd == 7
        assert open_file.path == "/a"
        assert open_file.append is False

    def test_handles_are_never_reused(self):
        table = HandleTable()
        first = table.allocate(3, "/a", os.O_RDONLY, False)
        table.release(first)
        second = table.allocate(3, "/a", os.O_RDONLY, False)

        assert second != first
        with pytest.raises(InvalidHandle):
            table.get(first)

    def test_release_twice(self):
        table = HandleTable()
        handle = table.allocate(3, "/a", os.O_RDONLY, False)
        table.release(handle)

        with pytest.raises(InvalidHandle) as excinfo:
            table.release(handle)
        assert excinfo.value.errno == errno.EBADF
        assert excinfo.value.syscall == "close"

    @pytest.mark.parametrize("bad", [0, -1, 99, "1", None, [1]])
    def test_unknown_handles(self, bad):
        table = HandleTable()
        table.allocate(3, "/a", os.O_RDONLY, False)
        with pytest.raises(InvalidHandle):
            table.get(bad)

    def test_first_handle(self):
        table = HandleTable(first_handle=100)
        assert table.allocate(3, "/a", os.O_RDONLY, False) == 100

    def test_concurrent_allocation_is_unique(self):
        table = HandleTable()
        results = []
        lock = threading.Lock()

        def worker():
            allocated = [table.allocate(i, "/a", os.O_RDONLY, False) for i in range(100)]
            with lock:
                results.extend(allocated)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == len(set(results)) == 800
        assert sorted(table.handles()) == sorted(results)
