"""
Open file handle tracking.

Handles given to callers are opaque integers drawn from a counter that
never goes backwards, so a stale handle can never alias a descriptor the
OS has since reused. Only allocation and release take the table lock; the
table does not serialize I/O on a handle.
"""

import errno
import threading
from dataclasses import dataclass
from typing import Dict, Union

from fsaccess.core.errors import InvalidHandle


@dataclass
class OpenFile:
    """Represents an open file handle."""

    fd: int  # OS file descriptor
    path: Union[str, bytes]  # Path the file was opened with
    flags: int  # os.O_* flags
    append: bool  # Writes always go to end-of-file


class HandleTable:
    """Thread-safe mapping of opaque handles to open files."""

    def __init__(self, first_handle: int = 1):
        self._files: Dict[int, OpenFile] = {}
        self._counter = first_handle
        self._lock = threading.Lock()

    def allocate(self, fd: int, path: Union[str, bytes], flags: int, append: bool) -> int:
        """Register an OS descriptor and return a new handle."""
        with self._lock:
            handle = self._counter
            self._files[handle] = OpenFile(fd=fd, path=path, flags=flags, append=append)
            self._counter += 1
            return handle

    def get(self, handle: int) -> OpenFile:
        """Look up an open file.

        Raises:
            InvalidHandle: If the handle is unknown or already closed
        """
        try:
            return self._files[handle]
        except (KeyError, TypeError):
            raise InvalidHandle(f"EBADF: invalid handle {handle!r}", errno=errno.EBADF)

    def release(self, handle: int) -> OpenFile:
        """Remove a handle from the table, returning its open file.

        Raises:
            InvalidHandle: If the handle is unknown or already closed
        """
        with self._lock:
            try:
                return self._files.pop(handle)
            except (KeyError, TypeError):
                raise InvalidHandle(f"EBADF: invalid handle {handle!r}, close", errno=errno.EBADF, syscall="close")

    def __contains__(self, handle: object) -> bool:
        return handle in self._files

    def __len__(self) -> int:
        return len(self._files)

    def handles(self):
        with self._lock:
            return list(self._files)
