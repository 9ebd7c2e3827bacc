"""
Blocking file-system operations.

``FileSystem`` provides the synchronous variant of every operation:
- Handle operations (open, close, read, write, fstat, ftruncate, fsync, ...)
- Metadata operations (stat, lstat, chmod, chown, utimes, access, realpath)
- Directory operations (mkdir, rmdir, readdir, mkdtemp)
- Name operations (rename, link, symlink, readlink, unlink)
- Whole-file helpers (read_file, write_file, append_file)
- Change notification (watch, watch_file, unwatch_file)

Every call runs on the calling thread and holds it for the duration of the
system call. Called from an event loop, a blocking variant stalls all other
cooperative work until it returns; latency-sensitive code should use
``AsyncFileSystem`` instead.

Failures are raised as ``FsError`` subclasses; nothing is swallowed.
"""

import errno
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Union

from fsaccess.core.constants import ConfigKey, Encoding, FileName, Limits, OpenMode, PathArg
from fsaccess.core.errors import FsError, PermissionDenied, translate_os_error
from fsaccess.core.stats import FileStats
from fsaccess.core.validators import (
    parse_open_flags,
    validate_buffer,
    validate_data,
    validate_encoding,
    validate_length,
    validate_mode,
    validate_path,
    validate_position,
)
from fsaccess.fs.handles import HandleTable
from fsaccess.fs.poll_watch import StatListener, StatWatcher
from fsaccess.fs.watch import WatchListener, WatchSubscription
from fsaccess.infrastructure.config_manager import ConfigManager
from fsaccess.infrastructure.logger import Logger


@contextmanager
def os_errors(syscall: str, path: Optional[PathArg] = None, dest: Optional[PathArg] = None):
    """Translate exceptions from the ``os`` module into ``FsError``."""
    try:
        yield
    except FsError:
        raise
    except (OSError, ValueError, TypeError, OverflowError) as e:
        raise translate_os_error(e, syscall, path, dest) from e


def _convert_name(name: Union[str, bytes], encoding: Encoding) -> FileName:
    if encoding is Encoding.BUFFER:
        return os.fsencode(name)
    return os.fsdecode(name)


class FileSystem:
    """
    Synchronous file access layer.

    Handles returned by ``open`` are opaque integers owned by the caller
    until ``close``. A handle must not be used by two threads at once
    without caller-side serialization; the layer does no per-handle
    locking.
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        handles: Optional[HandleTable] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Initialize the file system.

        Args:
            config: Configuration manager (defaults are used if None)
            handles: Handle table (created if None)
            logger: Logger (created if None)
        """
        self.config = config if config is not None else ConfigManager(load_environment=False)
        self.handles = handles if handles is not None else HandleTable()
        self.logger = (
            logger
            if logger is not None
            else Logger("fsaccess.fs", level=self.config.get("fsaccess.logging.level", "INFO"))
        )

        files = self.config.section(ConfigKey.FILES)
        watch = self.config.section(ConfigKey.WATCH)
        self.file_mode = validate_mode(files.get(ConfigKey.FILE_MODE, Limits.DEFAULT_FILE_MODE))
        self.dir_mode = validate_mode(files.get(ConfigKey.DIR_MODE, Limits.DEFAULT_DIR_MODE))
        self.poll_interval_ms = watch.get(ConfigKey.POLL_INTERVAL_MS, Limits.DEFAULT_POLL_INTERVAL_MS)
        self.watch_defaults = {
            "persistent": watch.get(ConfigKey.PERSISTENT, True),
            "recursive": watch.get(ConfigKey.RECURSIVE, False),
            "encoding": watch.get(ConfigKey.ENCODING, Encoding.UTF8.value),
        }

        self._stat_watchers: Dict[str, StatWatcher] = {}
        self._stat_watchers_lock = threading.Lock()

    # =========================================================================
    # Handle Operations
    # =========================================================================

    def open(self, path: PathArg, flags: Union[OpenMode, str, int] = OpenMode.READ, mode: Optional[int] = None) -> int:
        """
        Open a file and return an opaque handle.

        Args:
            path: File path
            flags: ``OpenMode`` (or its string value) or raw ``os.O_*`` flags
            mode: Permission bits for newly created files

        Returns:
            Handle for use with read/write/close

        Raises:
            NotFound: Reading a path that does not exist
            AlreadyExists: Exclusive create on an existing path
            PermissionDenied: Access-control rejection
        """
        raw = validate_path(path)
        os_flags, append = parse_open_flags(flags)
        mode = self.file_mode if mode is None else validate_mode(mode)

        with os_errors("open", raw):
            fd = os.open(raw, os_flags, mode)

        handle = self.handles.allocate(fd, raw, os_flags, append)
        self.logger.debug("open", path=raw, flags=flags, handle=handle)
        return handle

    def close(self, handle: int) -> None:
        """
        Close a handle.

        Raises:
            InvalidHandle: If the handle was already closed
        """
        open_file = self.handles.release(handle)
        with os_errors("close", open_file.path):
            os.close(open_file.fd)
        self.logger.debug("close", handle=handle)

    def read(self, handle: int, buffer: Any, position: Optional[int] = None) -> int:
        """
        Read into a writable buffer region.

        Args:
            handle: Handle from ``open``
            buffer: Writable bytes-like object; pass a memoryview slice to
                fill only part of a larger buffer
            position: File offset, or None to read from the current offset

        Returns:
            Number of bytes read; 0 at or past end-of-file
        """
        open_file = self.handles.get(handle)
        view = validate_buffer(buffer)
        position = validate_position(position)

        with os_errors("read", open_file.path):
            if position is None:
                data = os.read(open_file.fd, len(view))
            else:
                data = os.pread(open_file.fd, len(view), position)

        count = len(data)
        view[:count] = data
        return count

    def read_chunk(self, handle: int, length: int, position: Optional[int] = None) -> bytes:
        """Read up to ``length`` bytes and return them."""
        buffer = bytearray(validate_length(length))
        count = self.read(handle, buffer, position)
        return bytes(buffer[:count])

    def write(self, handle: int, data: Any, position: Optional[int] = None, encoding: str = "utf-8") -> int:
        """
        Write data to a handle.

        A single write may be partial; the returned count is what the OS
        accepted and the remainder is not retried. Handles opened in an
        append mode ignore ``position`` and always write at end-of-file.

        Args:
            handle: Handle from ``open``
            data: Bytes-like data, or ``str`` encoded with ``encoding``
            position: File offset, or None to write at the current offset

        Returns:
            Number of bytes written
        """
        open_file = self.handles.get(handle)
        payload = validate_data(data, encoding)
        position = validate_position(position)

        with os_errors("write", open_file.path):
            if open_file.append or position is None:
                written = os.write(open_file.fd, payload)
            else:
                written = os.pwrite(open_file.fd, payload, position)

        if written < len(payload):
            self.logger.debug("partial write", handle=handle, requested=len(payload), written=written)
        return written

    def fstat(self, handle: int) -> FileStats:
        open_file = self.handles.get(handle)
        with os_errors("fstat", open_file.path):
            return FileStats.from_stat_result(os.fstat(open_file.fd))

    def ftruncate(self, handle: int, length: int = 0) -> None:
        open_file = self.handles.get(handle)
        length = validate_length(length)
        with os_errors("ftruncate", open_file.path):
            os.ftruncate(open_file.fd, length)

    def fsync(self, handle: int) -> None:
        open_file = self.handles.get(handle)
        with os_errors("fsync", open_file.path):
            os.fsync(open_file.fd)

    def fdatasync(self, handle: int) -> None:
        """Flush file data; falls back to fsync where fdatasync is missing."""
        open_file = self.handles.get(handle)
        sync = getattr(os, "fdatasync", os.fsync)
        with os_errors("fdatasync", open_file.path):
            sync(open_file.fd)

    def fchmod(self, handle: int, mode: int) -> None:
        open_file = self.handles.get(handle)
        mode = validate_mode(mode)
        with os_errors("fchmod", open_file.path):
            os.fchmod(open_file.fd, mode)

    def futimes(self, handle: int, atime: float, mtime: float) -> None:
        open_file = self.handles.get(handle)
        with os_errors("futime", open_file.path):
            os.utime(open_file.fd, (atime, mtime))

    # =========================================================================
    # Metadata Operations
    # =========================================================================

    def stat(self, path: PathArg) -> FileStats:
        """
        Stat a path, following a terminal symbolic link.

        Raises:
            NotFound, NotADirectory, PermissionDenied
        """
        raw = validate_path(path)
        with os_errors("stat", raw):
            return FileStats.from_stat_result(os.stat(raw))

    def lstat(self, path: PathArg) -> FileStats:
        """Stat a path without following a terminal symbolic link."""
        raw = validate_path(path)
        with os_errors("lstat", raw):
            return FileStats.from_stat_result(os.lstat(raw))

    def truncate(self, path: PathArg, length: int = 0) -> None:
        raw = validate_path(path)
        length = validate_length(length)
        with os_errors("truncate", raw):
            os.truncate(raw, length)

    def chmod(self, path: PathArg, mode: int) -> None:
        raw = validate_path(path)
        mode = validate_mode(mode)
        with os_errors("chmod", raw):
            os.chmod(raw, mode)

    def chown(self, path: PathArg, uid: int, gid: int) -> None:
        raw = validate_path(path)
        with os_errors("chown", raw):
            os.chown(raw, uid, gid)

    def lchown(self, path: PathArg, uid: int, gid: int) -> None:
        raw = validate_path(path)
        with os_errors("lchown", raw):
            os.lchown(raw, uid, gid)

    def utimes(self, path: PathArg, atime: float, mtime: float) -> None:
        raw = validate_path(path)
        with os_errors("utime", raw):
            os.utime(raw, (atime, mtime))

    def access(self, path: PathArg, mode: int = os.F_OK) -> None:
        """
        Check that the calling process may access ``path``.

        Raises:
            NotFound: If the path does not exist
            PermissionDenied: If any of the requested ``R_OK``/``W_OK``/
                ``X_OK`` bits is refused
        """
        raw = validate_path(path)
        with os_errors("access", raw):
            os.stat(raw)
            allowed = os.access(raw, mode)
        if not allowed:
            raise PermissionDenied(
                f"EACCES: permission denied, access '{os.fsdecode(raw)}'",
                errno=errno.EACCES,
                syscall="access",
                path=raw,
            )

    def exists(self, path: PathArg) -> bool:
        """True if ``path`` can be stat'ed. Never raises."""
        try:
            self.stat(path)
        except FsError:
            return False
        return True

    def realpath(self, path: PathArg, cache: Optional[Dict[Any, Union[str, bytes]]] = None) -> Union[str, bytes]:
        """
        Resolve ``path`` to a canonical absolute path.

        Args:
            path: Path to resolve
            cache: Optional caller-owned path -> resolved path map. A cached
                entry is only trusted while its target still exists, and
                fresh resolutions are written back to it.

        Raises:
            NotFound: If any component does not exist
        """
        raw = validate_path(path)

        if cache is not None and raw in cache:
            cached = cache[raw]
            try:
                os.lstat(cached)
                return cached
            except OSError:
                self.logger.debug("stale realpath cache entry", path=raw, cached=cached)

        with os_errors("realpath", raw):
            resolved = os.path.realpath(raw, strict=True)

        if cache is not None:
            cache[raw] = resolved
        return resolved

    # =========================================================================
    # Directory Operations
    # =========================================================================

    def mkdir(self, path: PathArg, mode: Optional[int] = None) -> None:
        """Create one directory. Missing parents are not created."""
        raw = validate_path(path)
        mode = self.dir_mode if mode is None else validate_mode(mode)
        with os_errors("mkdir", raw):
            os.mkdir(raw, mode)
        self.logger.debug("mkdir", path=raw, mode=oct(mode))

    def rmdir(self, path: PathArg) -> None:
        """
        Remove an empty directory.

        Raises:
            FsIOError: ENOTEMPTY if the directory has entries
        """
        raw = validate_path(path)
        with os_errors("rmdir", raw):
            os.rmdir(raw)
        self.logger.debug("rmdir", path=raw)

    def readdir(self, path: PathArg, encoding: Union[Encoding, str, None] = Encoding.UTF8) -> List[FileName]:
        """
        List directory entry names.

        ``.`` and ``..`` are never included. Order is whatever the
        directory enumeration yields.

        Args:
            path: Directory path
            encoding: ``"utf8"`` for ``str`` names, ``"buffer"`` for ``bytes``
        """
        raw = validate_path(path)
        enc = validate_encoding(encoding)
        with os_errors("scandir", raw):
            names = os.listdir(raw)
        return [_convert_name(name, enc) for name in names]

    def mkdtemp(self, prefix: PathArg) -> str:
        """Create a uniquely named directory whose path starts with ``prefix``."""
        raw = os.fsdecode(validate_path(prefix, name="prefix"))
        directory, base = os.path.split(raw)
        with os_errors("mkdtemp", raw):
            return tempfile.mkdtemp(prefix=base, dir=directory or None)

    # =========================================================================
    # Name Operations
    # =========================================================================

    def rename(self, old_path: PathArg, new_path: PathArg) -> None:
        old_raw = validate_path(old_path, name="oldPath")
        new_raw = validate_path(new_path, name="newPath")
        with os_errors("rename", old_raw, new_raw):
            os.rename(old_raw, new_raw)
        self.logger.debug("rename", path=old_raw, dest=new_raw)

    def link(self, existing_path: PathArg, new_path: PathArg) -> None:
        existing_raw = validate_path(existing_path, name="existingPath")
        new_raw = validate_path(new_path, name="newPath")
        with os_errors("link", existing_raw, new_raw):
            os.link(existing_raw, new_raw)

    def symlink(self, target: PathArg, path: PathArg) -> None:
        target_raw = validate_path(target, name="target")
        raw = validate_path(path)
        with os_errors("symlink", target_raw, raw):
            os.symlink(target_raw, raw)

    def readlink(self, path: PathArg, encoding: Union[Encoding, str, None] = Encoding.UTF8) -> FileName:
        raw = validate_path(path)
        enc = validate_encoding(encoding)
        with os_errors("readlink", raw):
            return _convert_name(os.readlink(raw), enc)

    def unlink(self, path: PathArg) -> None:
        raw = validate_path(path)
        with os_errors("unlink", raw):
            os.unlink(raw)
        self.logger.debug("unlink", path=raw)

    # =========================================================================
    # Whole-File Helpers
    # =========================================================================

    def read_file(
        self, path: PathArg, encoding: Optional[str] = None, flags: Union[OpenMode, str, int] = OpenMode.READ
    ) -> Union[bytes, str]:
        """
        Read an entire file.

        Returns:
            ``bytes`` exactly as stored, or ``str`` if ``encoding`` is given
        """
        raw = validate_path(path)
        os_flags, _ = parse_open_flags(flags)

        with os_errors("open", raw):
            fd = os.open(raw, os_flags)
        try:
            with os_errors("read", raw):
                size = os.fstat(fd).st_size
                chunks = []
                while True:
                    chunk = os.read(fd, max(size, Limits.READ_CHUNK_SIZE))
                    if not chunk:
                        break
                    chunks.append(chunk)
        finally:
            os.close(fd)

        content = b"".join(chunks)
        if encoding is not None:
            with os_errors("read", raw):
                return content.decode(encoding)
        return content

    def write_file(
        self,
        path: PathArg,
        data: Any,
        encoding: Optional[str] = "utf-8",
        mode: Optional[int] = None,
        flags: Union[OpenMode, str, int] = OpenMode.WRITE,
    ) -> None:
        """
        Write ``data`` to a file, replacing it by default.

        Unlike ``write``, this keeps writing until every byte is stored.
        """
        raw = validate_path(path)
        os_flags, _ = parse_open_flags(flags)
        mode = self.file_mode if mode is None else validate_mode(mode)
        payload = memoryview(validate_data(data, encoding))

        with os_errors("open", raw):
            fd = os.open(raw, os_flags, mode)
        try:
            with os_errors("write", raw):
                while payload:
                    written = os.write(fd, payload)
                    payload = payload[written:]
        finally:
            os.close(fd)

    def append_file(self, path: PathArg, data: Any, encoding: Optional[str] = "utf-8", mode: Optional[int] = None) -> None:
        self.write_file(path, data, encoding=encoding, mode=mode, flags=OpenMode.APPEND)

    # =========================================================================
    # Change Notification
    # =========================================================================

    def watch(
        self,
        path: PathArg,
        listener: Optional[WatchListener] = None,
        persistent: Optional[bool] = None,
        recursive: Optional[bool] = None,
        encoding: Union[Encoding, str, None] = None,
    ) -> WatchSubscription:
        """
        Subscribe to OS change notifications for ``path``.

        Args:
            path: File or directory to watch
            listener: Called as ``listener(kind, filename)``; ``filename``
                may be None
            persistent: Keep the observer thread alive on its own
            recursive: Watch subdirectories where the platform allows it
            encoding: ``"utf8"`` or ``"buffer"`` for delivered filenames

        Raises:
            NotFound: If the path does not exist
        """
        raw = validate_path(path)
        subscription = WatchSubscription(
            raw,
            persistent=self.watch_defaults["persistent"] if persistent is None else persistent,
            recursive=self.watch_defaults["recursive"] if recursive is None else recursive,
            encoding=validate_encoding(encoding if encoding is not None else self.watch_defaults["encoding"]),
            logger=self.logger,
        )
        if listener is not None:
            subscription.on_change(listener)
        subscription.start()
        return subscription

    def watch_file(
        self,
        path: PathArg,
        listener: StatListener,
        interval_ms: Optional[float] = None,
        persistent: Optional[bool] = None,
    ) -> StatWatcher:
        """
        Poll ``path`` with stat and report ``(current, previous)`` pairs.

        Watching the same path twice shares one poller; the second
        listener is added to it.
        """
        raw = validate_path(path)
        key = os.path.abspath(os.fsdecode(raw))

        with self._stat_watchers_lock:
            watcher = self._stat_watchers.get(key)
            if watcher is None or not watcher.active:
                watcher = StatWatcher(
                    raw,
                    interval_ms=self.poll_interval_ms if interval_ms is None else interval_ms,
                    persistent=self.watch_defaults["persistent"] if persistent is None else persistent,
                    logger=self.logger,
                )
                watcher.add_listener(listener)
                watcher.start()
                self._stat_watchers[key] = watcher
            else:
                watcher.add_listener(listener)
            return watcher

    def unwatch_file(self, path: PathArg, listener: Optional[StatListener] = None) -> None:
        """Remove one listener, or all of them, and stop idle pollers."""
        raw = validate_path(path)
        key = os.path.abspath(os.fsdecode(raw))

        with self._stat_watchers_lock:
            watcher = self._stat_watchers.get(key)
            if watcher is None:
                return
            if listener is None:
                watcher.clear_listeners()
            else:
                watcher.remove_listener(listener)
            if not watcher.has_listeners():
                del self._stat_watchers[key]
            else:
                return

        watcher.stop()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close_all(self) -> int:
        """Close every handle still open and stop all pollers.

        Returns:
            Number of handles closed
        """
        closed = 0
        for handle in self.handles.handles():
            try:
                self.close(handle)
                closed += 1
            except FsError as e:
                self.logger.warning("close failed during shutdown", handle=handle, error=str(e))

        with self._stat_watchers_lock:
            watchers = list(self._stat_watchers.values())
            self._stat_watchers.clear()
        for watcher in watchers:
            watcher.stop()

        return closed

    def get_stats(self) -> Dict[str, Any]:
        """Summary of open resources."""
        return {
            "open_handles": len(self.handles),
            "stat_watchers": len(self._stat_watchers),
        }

    def __enter__(self) -> "FileSystem":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close_all()
