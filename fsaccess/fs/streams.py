"""
Serialized writes on one handle.

Plain non-blocking writes to the same handle have no ordering guarantee.
``QueuedWriter`` gives them one: each chunk is dispatched only from the
completion of the previous chunk, and a partial write is continued until
the whole chunk is stored.

After the first failure the writer is broken: the failing write and every
write queued behind it resolve with that error.
"""

import threading
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Deque, Optional

from fsaccess.core.errors import FsError, FsIOError, InvalidArgument
from fsaccess.core.validators import validate_data, validate_position
from fsaccess.fs.async_ops import AsyncFileSystem
from fsaccess.fs.dispatch import CompletionCallback, Outcome, PendingOperation


@dataclass
class _QueuedChunk:
    data: memoryview
    future: Future
    total: int
    written: int = 0


class QueuedWriter:
    """FIFO writer over one handle of an ``AsyncFileSystem``."""

    def __init__(self, afs: AsyncFileSystem, handle: int, position: Optional[int] = None, encoding: str = "utf-8"):
        """
        Args:
            afs: File system whose dispatcher runs the writes
            handle: Open handle; ownership stays with the caller until ``end``
            position: Starting file offset, or None for the current offset
            encoding: Encoding for ``str`` chunks
        """
        self.afs = afs
        self.handle = handle
        self.position = validate_position(position)
        self.encoding = encoding
        self.bytes_written = 0

        self._queue: Deque[_QueuedChunk] = deque()
        self._lock = threading.Lock()
        self._busy = False
        self._ended = False
        self._error: Optional[FsError] = None

    @property
    def pending(self) -> int:
        """Chunks queued or in flight."""
        with self._lock:
            return len(self._queue)

    @property
    def error(self) -> Optional[FsError]:
        return self._error

    def write(self, data: Any, callback: Optional[CompletionCallback] = None) -> PendingOperation:
        """
        Queue a chunk.

        Returns:
            Pending operation resolving with the chunk's byte count once it
            is fully written
        """
        try:
            payload = validate_data(data, self.encoding)
        except FsError as e:
            return self.afs.dispatcher.failed("write", e, callback)

        future: Future = Future()
        pending = PendingOperation("write", future, self.afs.logger)
        if callback is not None:
            pending.on_complete(callback)

        self._enqueue(payload, future)
        return pending

    def _enqueue(self, payload: bytes, future: Future, end: bool = False) -> None:
        start = False
        with self._lock:
            error = self._error
            if error is None and self._ended and not end:
                error = InvalidArgument("write after end", syscall="write")
            self._ended = self._ended or end
            if error is None:
                self._queue.append(_QueuedChunk(memoryview(payload), future, len(payload)))
                start = not self._busy
                self._busy = True

        if error is not None:
            future.set_exception(error)
        elif start:
            self._dispatch_head()

    def _dispatch_head(self) -> None:
        with self._lock:
            if not self._queue:
                self._busy = False
                return
            chunk = self._queue[0]

        if not chunk.data:
            self._finish_head(chunk)
            return

        position = None if self.position is None else self.position + self.bytes_written
        self.afs.submit(
            "write",
            self.handle,
            chunk.data.tobytes(),
            position,
            callback=lambda outcome: self._on_written(chunk, outcome),
        )

    def _on_written(self, chunk: _QueuedChunk, outcome: Outcome) -> None:
        if not outcome.ok:
            self._fail(outcome.error)
            return

        written = outcome.value
        chunk.written += written
        self.bytes_written += written
        chunk.data = chunk.data[written:]

        if chunk.data and written > 0:
            self._dispatch_head()
        elif chunk.data:
            self._fail(FsIOError("write made no progress", syscall="write"))
        else:
            self._finish_head(chunk)

    def _finish_head(self, chunk: _QueuedChunk) -> None:
        with self._lock:
            self._queue.popleft()
        chunk.future.set_result(chunk.total)
        self._dispatch_head()

    def _fail(self, error: FsError) -> None:
        with self._lock:
            self._error = error
            failed = list(self._queue)
            self._queue.clear()
            self._busy = False
        for chunk in failed:
            chunk.future.set_exception(error)

    def end(self, close_handle: bool = True, callback: Optional[CompletionCallback] = None) -> PendingOperation:
        """
        Stop accepting writes.

        Resolves once every queued chunk is written, closing the handle
        first when ``close_handle`` is set. Resolves with the writer's error
        if any chunk failed.
        """
        # A zero-length marker queued last completes after all earlier chunks.
        marker: Future = Future()
        done = PendingOperation("end", marker, self.afs.logger)
        if callback is not None:
            done.on_complete(callback)

        def finish(outcome: Outcome) -> None:
            if not outcome.ok:
                marker.set_exception(outcome.error)
            elif close_handle:
                self.afs.submit(
                    "close",
                    self.handle,
                    callback=lambda closed: (
                        marker.set_result(self.bytes_written)
                        if closed.ok
                        else marker.set_exception(closed.error)
                    ),
                )
            else:
                marker.set_result(self.bytes_written)

        self._queue_marker().on_complete(finish)
        return done

    def _queue_marker(self) -> PendingOperation:
        future: Future = Future()
        pending = PendingOperation("write", future, self.afs.logger)
        self._enqueue(b"", future, end=True)
        return pending
