"""fsaccess file access layer.

- FileSystem: blocking variants
- AsyncFileSystem: non-blocking variants (callbacks and coroutines)
- Dispatcher / PendingOperation / Outcome: worker pool and completion channel
- WatchSubscription / StatWatcher: change notification
- QueuedWriter: serialized writes on one handle
"""

from .async_ops import AsyncFileSystem
from .dispatch import Dispatcher, Outcome, PendingOperation
from .handles import HandleTable, OpenFile
from .operations import FileSystem
from .poll_watch import StatWatcher
from .streams import QueuedWriter
from .watch import WatchSubscription

__all__ = [
    "AsyncFileSystem",
    "Dispatcher",
    "FileSystem",
    "HandleTable",
    "OpenFile",
    "Outcome",
    "PendingOperation",
    "QueuedWriter",
    "StatWatcher",
    "WatchSubscription",
]
