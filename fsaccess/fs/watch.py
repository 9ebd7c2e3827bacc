"""
OS change notification subscriptions.

``WatchSubscription`` binds one path to a ``watchdog`` observer (inotify,
kqueue, FSEvents or ReadDirectoryChangesW underneath) and reduces its
events to ``(kind, filename)`` pairs where kind is ``"rename"`` or
``"change"``. Filenames are relative to a watched directory, or the base
name of a watched file, and may be None.

A subscription stops delivering as soon as it is closed or has reported a
terminal error.
"""

import errno
import os
import threading
from typing import Callable, List, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from fsaccess.core.constants import Encoding, FileName, WatchEventKind
from fsaccess.core.errors import FsError, NotFound, translate_os_error
from fsaccess.infrastructure.logger import Logger

WatchListener = Callable[[str, Optional[FileName]], None]
ErrorListener = Callable[[FsError], None]
CloseListener = Callable[[], None]

_KIND_BY_EVENT = {
    "modified": WatchEventKind.CHANGE,
    "created": WatchEventKind.RENAME,
    "deleted": WatchEventKind.RENAME,
    "moved": WatchEventKind.RENAME,
}


class _EventRelay(FileSystemEventHandler):
    """Forwards watchdog events to the owning subscription."""

    def __init__(self, subscription: "WatchSubscription"):
        super().__init__()
        self.subscription = subscription

    def on_any_event(self, event: FileSystemEvent) -> None:
        self.subscription._handle_event(event)


class WatchSubscription:
    """
    Live change listener for one path.

    Lifecycle: ``start`` schedules the observer, events are delivered to
    ``on_change`` listeners, and the subscription ends with ``close`` or
    with one error delivered to ``on_error`` listeners.
    """

    def __init__(
        self,
        path: Union[str, bytes],
        persistent: bool = True,
        recursive: bool = False,
        encoding: Encoding = Encoding.UTF8,
        logger: Optional[Logger] = None,
    ):
        self.path = path
        self.persistent = persistent
        self.recursive = recursive
        self.encoding = encoding
        self.logger = logger if logger is not None else Logger("fsaccess.watch")

        self._target = os.path.abspath(os.fsdecode(path))
        self._is_directory = False
        self._recursive_active = False
        self._observer: Optional[Observer] = None
        self._active = False
        self._started = False
        self._lock = threading.RLock()

        self._listeners: List[WatchListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._close_listeners: List[CloseListener] = []

    # =========================================================================
    # Listener Registration
    # =========================================================================

    def on_change(self, listener: WatchListener) -> "WatchSubscription":
        with self._lock:
            self._listeners.append(listener)
        return self

    def on_error(self, listener: ErrorListener) -> "WatchSubscription":
        with self._lock:
            self._error_listeners.append(listener)
        return self

    def on_close(self, listener: CloseListener) -> "WatchSubscription":
        with self._lock:
            self._close_listeners.append(listener)
        return self

    @property
    def active(self) -> bool:
        return self._active

    @property
    def recursive_active(self) -> bool:
        """Whether subdirectories are actually being watched."""
        return self._recursive_active

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Begin watching.

        Raises:
            NotFound: If the path does not exist
            FsError: If the OS refuses the watch
        """
        with self._lock:
            if self._started:
                return
            self._started = True

        try:
            self._is_directory = os.path.isdir(self._target) and not os.path.islink(self._target)
            os.stat(self._target)
        except OSError as e:
            raise translate_os_error(e, "watch", self.path) from e

        watch_root = self._target if self._is_directory else os.path.dirname(self._target)
        relay = _EventRelay(self)

        observer = Observer()
        observer.daemon = not self.persistent
        try:
            observer.start()
            self._schedule(observer, relay, watch_root)
        except OSError as e:
            self._stop_observer(observer)
            raise translate_os_error(e, "watch", self.path) from e

        with self._lock:
            self._observer = observer
            self._active = True

        self.logger.info(
            "watch started",
            path=self._target,
            recursive=self._recursive_active,
            persistent=self.persistent,
        )

    def _schedule(self, observer: Observer, relay: _EventRelay, watch_root: str) -> None:
        if self.recursive and self._is_directory:
            try:
                observer.schedule(relay, watch_root, recursive=True)
                self._recursive_active = True
                return
            except (OSError, NotImplementedError) as e:
                self.logger.warning(
                    "recursive watch unsupported, watching top level only",
                    path=watch_root,
                    error=str(e),
                )
        observer.schedule(relay, watch_root, recursive=False)

    def close(self) -> None:
        """Stop watching. No listener is called after this returns."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            observer = self._observer
            close_listeners = list(self._close_listeners)

        if observer is not None:
            self._stop_observer(observer)
        self.logger.info("watch closed", path=self._target)

        self._notify_close(close_listeners)

    def _stop_observer(self, observer: Observer) -> None:
        observer.stop()
        # Listeners run on the observer thread; it cannot join itself.
        if observer is not threading.current_thread() and observer.is_alive():
            observer.join(timeout=2.0)

    def fail(self, error: FsError) -> None:
        """Terminate with ``error``, delivered once to ``on_error`` listeners."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            observer = self._observer
            error_listeners = list(self._error_listeners)
            close_listeners = list(self._close_listeners)

        self.logger.error("watch terminated", path=self._target, error=str(error))
        if observer is not None:
            self._stop_observer(observer)

        for error_listener in error_listeners:
            try:
                error_listener(error)
            except Exception as e:
                self.logger.exception("watch error listener failed", e, path=self._target)
        self._notify_close(close_listeners)

    def _notify_close(self, listeners: List[CloseListener]) -> None:
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                self.logger.exception("watch close listener failed", e, path=self._target)

    # =========================================================================
    # Event Translation
    # =========================================================================

    def _filename(self, event_path: str) -> Optional[FileName]:
        if self._is_directory and event_path != self._target:
            name = os.path.relpath(event_path, self._target)
        else:
            name = os.path.basename(event_path)
        if not name:
            return None
        if self.encoding is Encoding.BUFFER:
            return os.fsencode(name)
        return name

    def _in_scope(self, event_path: str) -> bool:
        if not self._is_directory:
            return event_path == self._target
        if os.path.dirname(event_path) == self._target:
            return True
        return self._recursive_active and event_path.startswith(self._target + os.sep)

    def _handle_event(self, event: FileSystemEvent) -> None:
        kind = _KIND_BY_EVENT.get(event.event_type)
        if kind is None:
            return

        src = os.path.abspath(os.fsdecode(event.src_path))
        dest = getattr(event, "dest_path", "") or ""
        dest = os.path.abspath(os.fsdecode(dest)) if dest else ""

        if self._is_directory and src == self._target:
            if event.event_type in ("deleted", "moved"):
                self._deliver(WatchEventKind.RENAME, self._target)
                self.fail(
                    NotFound(
                        f"ENOENT: watched directory removed, watch '{self._target}'",
                        errno=errno.ENOENT,
                        syscall="watch",
                        path=self.path,
                    )
                )
            return

        names = []
        if self._in_scope(src):
            names.append(src)
        if dest and self._in_scope(dest):
            names.append(dest)

        for event_path in names:
            self._deliver(kind, event_path)

    def _deliver(self, kind: WatchEventKind, event_path: Optional[str]) -> None:
        with self._lock:
            if not self._active:
                return
            listeners = list(self._listeners)
            filename = self._filename(event_path) if event_path else None
            for listener in listeners:
                try:
                    listener(kind.value, filename)
                except Exception as e:
                    self.logger.exception("watch listener failed", e, path=self._target)
