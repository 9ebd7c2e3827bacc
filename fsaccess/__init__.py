"""fsaccess - POSIX-style file access with blocking and non-blocking variants.

Example:
    >>> from fsaccess import FileSystem, AsyncFileSystem
    >>> fs = FileSystem()
    >>> fs.write_file("/tmp/hello.txt", "hello")
    >>> fs.read_file("/tmp/hello.txt", encoding="utf-8")
    'hello'
"""

from fsaccess.core.constants import FSACCESS_VERSION as __version__
from fsaccess.core.constants import ErrorKind, OpenMode, WatchEventKind
from fsaccess.core.errors import (
    AlreadyExists,
    FsError,
    FsIOError,
    Interrupted,
    InvalidArgument,
    InvalidHandle,
    IsADirectory,
    NotADirectory,
    NotFound,
    PermissionDenied,
)
from fsaccess.core.stats import FileStats, FileType
from fsaccess.fs import (
    AsyncFileSystem,
    Dispatcher,
    FileSystem,
    Outcome,
    PendingOperation,
    QueuedWriter,
    StatWatcher,
    WatchSubscription,
)

__all__ = [
    "__version__",
    "AlreadyExists",
    "AsyncFileSystem",
    "Dispatcher",
    "ErrorKind",
    "FileStats",
    "FileSystem",
    "FileType",
    "FsError",
    "FsIOError",
    "Interrupted",
    "InvalidArgument",
    "InvalidHandle",
    "IsADirectory",
    "NotADirectory",
    "NotFound",
    "OpenMode",
    "Outcome",
    "PendingOperation",
    "PermissionDenied",
    "QueuedWriter",
    "StatWatcher",
    "WatchEventKind",
    "WatchSubscription",
]
