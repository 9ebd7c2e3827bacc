"""
Non-blocking dispatch to a bounded worker pool.

- ``Outcome``: explicit success-or-error result of one operation
- ``PendingOperation``: one dispatched operation; resolves exactly once
- ``Dispatcher``: owns the ``ThreadPoolExecutor`` that runs blocking calls

Errors always arrive on the same channel as results: a completion callback
receives an ``Outcome`` and awaiting a ``PendingOperation`` yields one.
Nothing raises out of the worker pool. A dispatched operation cannot be
cancelled; a caller that needs a timeout waits with one and discards the
late outcome.

Two operations dispatched back to back may complete in either order.
Chain the second inside the first's completion to order them.
"""

import asyncio
import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generator, List, Optional

from fsaccess.core.constants import Limits
from fsaccess.core.errors import FsError, FsIOError, translate_os_error
from fsaccess.core.validators import validate_max_workers
from fsaccess.infrastructure.config_manager import ConfigManager
from fsaccess.infrastructure.logger import Logger


@dataclass(frozen=True)
class Outcome:
    """Result of a completed operation: a value or an error, never both."""

    value: Any = None
    error: Optional[FsError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(value=value)

    @classmethod
    def failure(cls, error: FsError) -> "Outcome":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value or raise the error."""
        if self.error is not None:
            raise self.error
        return self.value


CompletionCallback = Callable[[Outcome], None]


def _set_waiter(waiter: "asyncio.Future[Outcome]", outcome: Outcome) -> None:
    # A cancelled waiter means the caller gave up; the late outcome is dropped.
    if not waiter.done():
        waiter.set_result(outcome)


class PendingOperation:
    """
    Handle on one dispatched operation.

    Completion callbacks registered before or after resolution are each
    called exactly once with the ``Outcome``. Awaiting the operation inside
    a coroutine also yields the ``Outcome``.
    """

    _ids = itertools.count(1)

    def __init__(self, name: str, future: Future, logger: Optional[Logger] = None):
        self.name = name
        self.id = next(self._ids)
        self.logger = logger if logger is not None else Logger("fsaccess.dispatch")

        self._lock = threading.Lock()
        self._resolved = threading.Event()
        self._outcome: Optional[Outcome] = None
        self._callbacks: List[CompletionCallback] = []

        future.add_done_callback(self._resolve)

    def _resolve(self, future: Future) -> None:
        exc = future.exception()
        if exc is None:
            outcome = Outcome.success(future.result())
        else:
            outcome = Outcome.failure(translate_os_error(exc, self.name))

        with self._lock:
            if self._outcome is not None:
                return
            self._outcome = outcome
            callbacks, self._callbacks = self._callbacks, []
            self._resolved.set()

        if outcome.ok:
            self.logger.debug("operation complete", op=self.name, id=self.id)
        else:
            self.logger.debug("operation failed", op=self.name, id=self.id, error=str(outcome.error))

        for callback in callbacks:
            self._invoke(callback, outcome)

    def _invoke(self, callback: CompletionCallback, outcome: Outcome) -> None:
        try:
            callback(outcome)
        except Exception as e:
            self.logger.exception("completion callback failed", e, op=self.name, id=self.id)

    def on_complete(self, callback: CompletionCallback) -> "PendingOperation":
        """Register a completion callback.

        Called immediately, on the current thread, if already resolved;
        otherwise on the worker thread that finishes the operation.
        """
        with self._lock:
            if self._outcome is None:
                self._callbacks.append(callback)
                return self
            outcome = self._outcome
        self._invoke(callback, outcome)
        return self

    def done(self) -> bool:
        return self._resolved.is_set()

    def outcome(self, timeout: Optional[float] = None) -> Outcome:
        """
        Block until resolved.

        Raises:
            TimeoutError: If ``timeout`` elapses first; the operation itself
                keeps running
        """
        if not self._resolved.wait(timeout):
            raise TimeoutError(f"{self.name} (#{self.id}) still pending after {timeout}s")
        return self._outcome

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block until resolved, returning the value or raising the error."""
        return self.outcome(timeout).unwrap()

    def __await__(self) -> Generator[Any, None, Outcome]:
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        self.on_complete(lambda outcome: loop.call_soon_threadsafe(_set_waiter, waiter, outcome))
        return (yield from waiter.__await__())

    def __repr__(self) -> str:
        state = "pending" if not self.done() else ("ok" if self._outcome.ok else "error")
        return f"<PendingOperation {self.name} #{self.id} {state}>"


class Dispatcher:
    """Runs blocking callables on a bounded thread pool."""

    def __init__(
        self,
        max_workers: Optional[int] = None,
        config: Optional[ConfigManager] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Args:
            max_workers: Pool size; defaults to ``fsaccess.workers.max_workers``
            config: Configuration manager
            logger: Logger
        """
        if max_workers is None:
            max_workers = (
                config.get("fsaccess.workers.max_workers", Limits.DEFAULT_MAX_WORKERS)
                if config is not None
                else Limits.DEFAULT_MAX_WORKERS
            )
        self.max_workers = validate_max_workers(max_workers)
        self.logger = logger if logger is not None else Logger("fsaccess.dispatch")
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="fsaccess-worker")
        self._shutdown = False
        self._dispatched = 0
        self._counter_lock = threading.Lock()

    def dispatch(
        self,
        name: str,
        fn: Callable[..., Any],
        *args: Any,
        callback: Optional[CompletionCallback] = None,
        **kwargs: Any,
    ) -> PendingOperation:
        """
        Run ``fn(*args, **kwargs)`` on the pool.

        Args:
            name: Operation name used in logs and error messages
            fn: Blocking callable
            callback: Optional completion callback receiving the ``Outcome``

        Returns:
            The pending operation
        """
        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except RuntimeError as e:
            return self.failed(name, FsIOError(f"dispatcher is shut down, {name}: {e}", syscall=name), callback)

        with self._counter_lock:
            self._dispatched += 1

        pending = PendingOperation(name, future, self.logger)
        self.logger.debug("operation dispatched", op=name, id=pending.id)
        if callback is not None:
            pending.on_complete(callback)
        return pending

    def failed(
        self, name: str, error: FsError, callback: Optional[CompletionCallback] = None
    ) -> PendingOperation:
        """An already-resolved pending operation carrying ``error``."""
        future: Future = Future()
        future.set_exception(error)
        pending = PendingOperation(name, future, self.logger)
        if callback is not None:
            pending.on_complete(callback)
        return pending

    def completed(
        self, name: str, value: Any = None, callback: Optional[CompletionCallback] = None
    ) -> PendingOperation:
        """An already-resolved pending operation carrying ``value``."""
        future: Future = Future()
        future.set_result(value)
        pending = PendingOperation(name, future, self.logger)
        if callback is not None:
            pending.on_complete(callback)
        return pending

    @property
    def dispatched(self) -> int:
        return self._dispatched

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; running operations still resolve."""
        if self._shutdown:
            return
        self._shutdown = True
        self._executor.shutdown(wait=wait)
        self.logger.debug("dispatcher shut down", dispatched=self._dispatched)

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
