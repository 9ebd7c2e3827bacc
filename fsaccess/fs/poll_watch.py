"""
Stat polling watcher.

``StatWatcher`` is the fallback change detector used by ``watch_file``: it
stats one path on a fixed interval and reports ``(current, previous)``
snapshot pairs whenever they differ. A path that disappears (or never
existed) is reported with an all-zero snapshot, once, instead of failing.
"""

import os
import threading
from typing import Callable, List, Optional, Union

from fsaccess.core.stats import FileStats
from fsaccess.core.validators import validate_interval
from fsaccess.infrastructure.logger import Logger

StatListener = Callable[[FileStats, FileStats], None]


class StatWatcher:
    """Polls one path with ``os.stat`` on a background thread."""

    def __init__(
        self,
        path: Union[str, bytes],
        interval_ms: float,
        persistent: bool = True,
        logger: Optional[Logger] = None,
    ):
        """
        Args:
            path: Path to poll (need not exist)
            interval_ms: Polling interval in milliseconds
            persistent: Non-daemon polling thread, keeping the process alive
            logger: Logger for lifecycle messages
        """
        self.path = path
        self.interval_ms = validate_interval(interval_ms)
        self.persistent = persistent
        self.logger = logger if logger is not None else Logger("fsaccess.poll")

        self._listeners: List[StatListener] = []
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._previous: Optional[FileStats] = None

    @property
    def active(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    @property
    def previous(self) -> Optional[FileStats]:
        """Last snapshot the watcher compared against."""
        return self._previous

    def add_listener(self, listener: StatListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: StatListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def clear_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()

    def has_listeners(self) -> bool:
        with self._lock:
            return bool(self._listeners)

    def _snapshot(self) -> FileStats:
        try:
            return FileStats.from_stat_result(os.stat(self.path))
        except OSError as e:
            self.logger.debug("poll stat failed", path=self.path, errno=e.errno)
            return FileStats.zero()

    def start(self) -> None:
        """Take the baseline snapshot and start polling."""
        if self._thread is not None:
            return

        self._previous = self._snapshot()
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            name=f"fsaccess-poll:{os.fsdecode(self.path)}",
            daemon=not self.persistent,
        )
        self._thread.start()
        self.logger.info("watch_file started", path=self.path, interval_ms=self.interval_ms)

    def _poll_loop(self) -> None:
        interval = self.interval_ms / 1000.0
        while not self._stop.wait(interval):
            self.check()

    def check(self) -> bool:
        """
        Compare a fresh snapshot with the previous one.

        Returns:
            True if listeners were notified
        """
        with self._lock:
            if self._stop.is_set():
                return False
            current = self._snapshot()
            previous = self._previous if self._previous is not None else FileStats.zero()
            self._previous = current
            if not current.changed_from(previous):
                return False
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(current, previous)
            except Exception as e:
                self.logger.exception("watch_file listener failed", e, path=self.path)
        return True

    def stop(self) -> None:
        """Stop polling. Listeners are not called afterwards."""
        with self._lock:
            if self._stop.is_set():
                return
            self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self.logger.info("watch_file stopped", path=self.path)
