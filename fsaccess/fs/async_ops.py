"""
Non-blocking file-system operations.

``AsyncFileSystem`` pairs every ``FileSystem`` operation with a variant that
runs on the dispatcher's worker pool. Each operation is offered two ways:

    # callback form: the callback gets an Outcome, exactly once
    afs.submit("stat", "/etc/hosts", callback=on_stat)

    # coroutine form: returns the value or raises the FsError
    stats = await afs.stat("/etc/hosts")

The event loop thread only suspends while awaiting completion; the system
call itself never runs on it.
"""

import asyncio
import os
import threading
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

from fsaccess.core.constants import Encoding, FileName, OpenMode, PathArg
from fsaccess.core.errors import InvalidArgument
from fsaccess.core.stats import FileStats
from fsaccess.fs.dispatch import CompletionCallback, Dispatcher, PendingOperation
from fsaccess.fs.operations import FileSystem
from fsaccess.fs.poll_watch import StatListener, StatWatcher
from fsaccess.fs.watch import WatchSubscription
from fsaccess.infrastructure.config_manager import ConfigManager
from fsaccess.infrastructure.logger import Logger

# Operations that may be dispatched by name through ``submit``.
OPERATIONS = frozenset(
    {
        "open",
        "close",
        "read",
        "read_chunk",
        "write",
        "fstat",
        "ftruncate",
        "fsync",
        "fdatasync",
        "fchmod",
        "futimes",
        "stat",
        "lstat",
        "truncate",
        "chmod",
        "chown",
        "lchown",
        "utimes",
        "access",
        "exists",
        "realpath",
        "mkdir",
        "rmdir",
        "readdir",
        "mkdtemp",
        "rename",
        "link",
        "symlink",
        "readlink",
        "unlink",
        "read_file",
        "write_file",
        "append_file",
    }
)


class AsyncFileSystem:
    """Asynchronous file access layer over a ``FileSystem`` and a ``Dispatcher``."""

    def __init__(
        self,
        fs: Optional[FileSystem] = None,
        dispatcher: Optional[Dispatcher] = None,
        config: Optional[ConfigManager] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Args:
            fs: Blocking file system to delegate to (created if None)
            dispatcher: Worker pool (created from config if None)
            config: Configuration manager shared with created components
            logger: Logger shared with created components
        """
        self.fs = fs if fs is not None else FileSystem(config=config, logger=logger)
        self.logger = logger if logger is not None else self.fs.logger
        self.dispatcher = (
            dispatcher if dispatcher is not None else Dispatcher(config=self.fs.config, logger=self.logger)
        )

    # =========================================================================
    # Callback Form
    # =========================================================================

    def submit(
        self, operation: str, *args: Any, callback: Optional[CompletionCallback] = None, **kwargs: Any
    ) -> PendingOperation:
        """
        Dispatch ``operation`` by name.

        An unknown name resolves the returned operation with
        ``InvalidArgument`` instead of raising.
        """
        if operation not in OPERATIONS:
            return self.dispatcher.failed(
                str(operation), InvalidArgument(f"Unknown operation: {operation!r}"), callback
            )
        return self.dispatcher.dispatch(operation, getattr(self.fs, operation), *args, callback=callback, **kwargs)

    async def _run(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        outcome = await self.submit(operation, *args, **kwargs)
        return outcome.unwrap()

    # =========================================================================
    # Handle Operations
    # =========================================================================

    async def open(self, path: PathArg, flags: Union[OpenMode, str, int] = OpenMode.READ, mode: Optional[int] = None) -> int:
        return await self._run("open", path, flags, mode)

    async def close(self, handle: int) -> None:
        await self._run("close", handle)

    async def read(self, handle: int, buffer: Any, position: Optional[int] = None) -> int:
        """Read into ``buffer``; the buffer must not be touched until this completes."""
        return await self._run("read", handle, buffer, position)

    async def read_chunk(self, handle: int, length: int, position: Optional[int] = None) -> bytes:
        return await self._run("read_chunk", handle, length, position)

    async def write(self, handle: int, data: Any, position: Optional[int] = None, encoding: str = "utf-8") -> int:
        return await self._run("write", handle, data, position, encoding)

    async def fstat(self, handle: int) -> FileStats:
        return await self._run("fstat", handle)

    async def ftruncate(self, handle: int, length: int = 0) -> None:
        await self._run("ftruncate", handle, length)

    async def fsync(self, handle: int) -> None:
        await self._run("fsync", handle)

    async def fdatasync(self, handle: int) -> None:
        await self._run("fdatasync", handle)

    async def fchmod(self, handle: int, mode: int) -> None:
        await self._run("fchmod", handle, mode)

    async def futimes(self, handle: int, atime: float, mtime: float) -> None:
        await self._run("futimes", handle, atime, mtime)

    # =========================================================================
    # Metadata Operations
    # =========================================================================

    async def stat(self, path: PathArg) -> FileStats:
        return await self._run("stat", path)

    async def lstat(self, path: PathArg) -> FileStats:
        return await self._run("lstat", path)

    async def truncate(self, path: PathArg, length: int = 0) -> None:
        await self._run("truncate", path, length)

    async def chmod(self, path: PathArg, mode: int) -> None:
        await self._run("chmod", path, mode)

    async def chown(self, path: PathArg, uid: int, gid: int) -> None:
        await self._run("chown", path, uid, gid)

    async def lchown(self, path: PathArg, uid: int, gid: int) -> None:
        await self._run("lchown", path, uid, gid)

    async def utimes(self, path: PathArg, atime: float, mtime: float) -> None:
        await self._run("utimes", path, atime, mtime)

    async def access(self, path: PathArg, mode: int = os.F_OK) -> None:
        await self._run("access", path, mode)

    async def exists(self, path: PathArg) -> bool:
        return await self._run("exists", path)

    async def realpath(self, path: PathArg, cache: Optional[Dict[Any, Union[str, bytes]]] = None) -> Union[str, bytes]:
        return await self._run("realpath", path, cache)

    # =========================================================================
    # Directory Operations
    # =========================================================================

    async def mkdir(self, path: PathArg, mode: Optional[int] = None) -> None:
        await self._run("mkdir", path, mode)

    async def rmdir(self, path: PathArg) -> None:
        await self._run("rmdir", path)

    async def readdir(self, path: PathArg, encoding: Union[Encoding, str, None] = Encoding.UTF8) -> List[FileName]:
        return await self._run("readdir", path, encoding)

    async def mkdtemp(self, prefix: PathArg) -> str:
        return await self._run("mkdtemp", prefix)

    # =========================================================================
    # Name Operations
    # =========================================================================

    async def rename(self, old_path: PathArg, new_path: PathArg) -> None:
        await self._run("rename", old_path, new_path)

    async def link(self, existing_path: PathArg, new_path: PathArg) -> None:
        await self._run("link", existing_path, new_path)

    async def symlink(self, target: PathArg, path: PathArg) -> None:
        await self._run("symlink", target, path)

    async def readlink(self, path: PathArg, encoding: Union[Encoding, str, None] = Encoding.UTF8) -> FileName:
        return await self._run("readlink", path, encoding)

    async def unlink(self, path: PathArg) -> None:
        await self._run("unlink", path)

    # =========================================================================
    # Whole-File Helpers
    # =========================================================================

    async def read_file(
        self, path: PathArg, encoding: Optional[str] = None, flags: Union[OpenMode, str, int] = OpenMode.READ
    ) -> Union[bytes, str]:
        return await self._run("read_file", path, encoding, flags)

    async def write_file(
        self,
        path: PathArg,
        data: Any,
        encoding: Optional[str] = "utf-8",
        mode: Optional[int] = None,
        flags: Union[OpenMode, str, int] = OpenMode.WRITE,
    ) -> None:
        await self._run("write_file", path, data, encoding, mode, flags)

    async def append_file(self, path: PathArg, data: Any, encoding: Optional[str] = "utf-8", mode: Optional[int] = None) -> None:
        await self._run("append_file", path, data, encoding, mode)

    # =========================================================================
    # Change Notification
    # =========================================================================

    def watch(self, path: PathArg, **options: Any) -> WatchSubscription:
        """Start a watch subscription; see ``FileSystem.watch``."""
        return self.fs.watch(path, **options)

    async def watch_events(
        self, path: PathArg, max_events: Optional[int] = None, **options: Any
    ) -> AsyncIterator[Tuple[str, Optional[FileName]]]:
        """
        Iterate ``(kind, filename)`` events on the running loop.

        The subscription is closed when iteration stops. A terminal watch
        error is raised from the iterator.

        Args:
            path: File or directory to watch
            max_events: Stop after this many events
            **options: ``persistent``, ``recursive``, ``encoding``
        """
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Tuple[str, Any]]" = asyncio.Queue()

        finished = threading.Event()

        def put(item: Tuple[str, Any]) -> None:
            if finished.is_set() or loop.is_closed():
                return
            try:
                loop.call_soon_threadsafe(queue.put_nowait, item)
            except RuntimeError:
                # Loop closed between the check and the call.
                pass

        subscription = self.fs.watch(path, **options)
        subscription.on_change(lambda kind, filename: put(("event", (kind, filename))))
        subscription.on_error(lambda error: put(("error", error)))
        subscription.on_close(lambda: put(("close", None)))

        delivered = 0
        try:
            while max_events is None or delivered < max_events:
                tag, payload = await queue.get()
                if tag == "error":
                    raise payload
                if tag == "close":
                    return
                delivered += 1
                yield payload
        finally:
            finished.set()
            subscription.close()

    def watch_file(
        self,
        path: PathArg,
        listener: StatListener,
        interval_ms: Optional[float] = None,
        persistent: Optional[bool] = None,
    ) -> StatWatcher:
        return self.fs.watch_file(path, listener, interval_ms=interval_ms, persistent=persistent)

    def unwatch_file(self, path: PathArg, listener: Optional[StatListener] = None) -> None:
        self.fs.unwatch_file(path, listener)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self) -> None:
        """Close remaining handles, then stop the worker pool."""
        if self.dispatcher.is_shutdown:
            self.fs.close_all()
            return
        outcome = await self.dispatcher.dispatch("close_all", self.fs.close_all)
        self.dispatcher.shutdown(wait=False)
        outcome.unwrap()

    async def __aenter__(self) -> "AsyncFileSystem":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
