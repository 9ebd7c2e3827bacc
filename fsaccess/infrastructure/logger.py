#!/usr/bin/env python3
"""Structured logging for fsaccess.

Operations log with key=value context so a single line carries the
operation name, path and handle involved:

- Levels mirror Python's logging module
- Thread-local context stacks (worker threads each get their own)
- Console and rotating file handlers
- Configuration from the ``fsaccess.logging`` config section

Example:
    >>> logger = Logger("fsaccess.fs", level=LogLevel.DEBUG)
    >>> logger.debug("open", path="/tmp/x", flags="r")
    >>> with logger.add_context(handle=3):
    ...     logger.debug("read", length=4096)
"""

import logging
import logging.handlers
import threading
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LogLevel(IntEnum):
    """Log levels matching Python's logging module."""

    DEBUG = logging.DEBUG  # 10
    INFO = logging.INFO  # 20
    WARNING = logging.WARNING  # 30
    ERROR = logging.ERROR  # 40
    CRITICAL = logging.CRITICAL  # 50


class Logger:
    """Structured logger with context support.

    Wraps a stdlib ``logging.Logger``; context pushed with ``add_context``
    is thread-local, so context set on the event loop thread does not leak
    into worker threads and vice versa.
    """

    _context_stack = threading.local()

    def __init__(
        self,
        name: str = "fsaccess",
        level: Union[LogLevel, str] = LogLevel.INFO,
        handlers: Optional[List[logging.Handler]] = None,
    ):
        """Initialize logger.

        Args:
            name: Logger name for identification
            level: Minimum log level to output
            handlers: Optional list of logging handlers
        """
        self.name = name
        self.logger = logging.getLogger(name)
        self.set_level(level)

        if handlers is None:
            handlers = [self._create_console_handler()]

        self.logger.handlers.clear()
        for handler in handlers:
            self.logger.addHandler(handler)

        self.logger.propagate = False

    def _create_console_handler(self) -> logging.StreamHandler:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        return handler

    def create_file_handler(
        self,
        filename: Union[str, Path],
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
    ) -> logging.handlers.RotatingFileHandler:
        """Create rotating file handler.

        Args:
            filename: Path to log file
            max_bytes: Maximum size before rotation
            backup_count: Number of backup files to keep

        Returns:
            Configured rotating file handler
        """
        handler = logging.handlers.RotatingFileHandler(
            filename, maxBytes=max_bytes, backupCount=backup_count
        )
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        return handler

    def add_handler(self, handler: logging.Handler) -> None:
        self.logger.addHandler(handler)

    def remove_handler(self, handler: logging.Handler) -> None:
        self.logger.removeHandler(handler)

    def set_level(self, level: Union[LogLevel, str]) -> None:
        """Set the minimum log level.

        Args:
            level: New log level (LogLevel or string)
        """
        if isinstance(level, str):
            level = LogLevel[level.upper()]
        self.logger.setLevel(level)

    def get_level(self) -> LogLevel:
        return LogLevel(self.logger.level)

    def _stack(self) -> List[Dict[str, Any]]:
        if not hasattr(self._context_stack, "stack"):
            self._context_stack.stack = [{}]
        return self._context_stack.stack

    def _get_context(self) -> Dict[str, Any]:
        """Merge all context levels for the current thread."""
        context: Dict[str, Any] = {}
        for ctx in self._stack():
            context.update(ctx)
        return context

    def _format_message(self, msg: str, context: Dict[str, Any]) -> str:
        if context:
            ctx_str = " ".join(f"{k}={v}" for k, v in context.items())
            return f"{msg} | {ctx_str}"
        return msg

    @contextmanager
    def add_context(self, **kwargs):
        """Context manager to add temporary context.

        Args:
            **kwargs: Key-value pairs to add to context

        Example:
            >>> with logger.add_context(op="rename", path="/tmp/a"):
            ...     logger.debug("dispatched")
        """
        stack = self._stack()
        stack.append(kwargs)
        try:
            yield
        finally:
            stack.pop()

    def _log(self, level: int, msg: str, context: Dict[str, Any], **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return
        combined = self._get_context()
        combined.update(context)
        self.logger.log(level, self._format_message(msg, combined), extra={"context": combined}, **kwargs)

    def debug(self, msg: str, **context) -> None:
        self._log(logging.DEBUG, msg, context)

    def info(self, msg: str, **context) -> None:
        self._log(logging.INFO, msg, context)

    def warning(self, msg: str, **context) -> None:
        self._log(logging.WARNING, msg, context)

    def error(self, msg: str, **context) -> None:
        self._log(logging.ERROR, msg, context)

    def exception(self, msg: str, exc: BaseException, **context) -> None:
        """Log exception with traceback.

        Args:
            msg: Log message
            exc: Exception to log
            **context: Additional context key-value pairs
        """
        context["exception_type"] = type(exc).__name__
        context["exception_message"] = str(exc)
        self._log(logging.ERROR, msg, context, exc_info=exc)

    def is_enabled_for(self, level: Union[LogLevel, str]) -> bool:
        if isinstance(level, str):
            level = LogLevel[level.upper()]
        return self.logger.isEnabledFor(level)


# Global logger instance
_global_logger: Optional[Logger] = None


def get_logger(name: str = "fsaccess") -> Logger:
    """Get or create a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    global _global_logger
    if _global_logger is None or _global_logger.name != name:
        _global_logger = Logger(name=name)
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Set the global logger instance."""
    global _global_logger
    _global_logger = logger


def configure_logging(settings: Dict[str, Any], name: str = "fsaccess") -> Logger:
    """Build the package logger from a ``logging`` config section.

    Args:
        settings: Mapping with ``level``, optional ``file`` and ``format``
        name: Logger name

    Returns:
        The configured logger, also installed as the global logger
    """
    logger = Logger(name=name, level=settings.get("level", "INFO"))

    fmt = settings.get("format")
    if fmt:
        for handler in logger.logger.handlers:
            handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))

    log_file = settings.get("file")
    if log_file:
        logger.add_handler(logger.create_file_handler(log_file))

    set_global_logger(logger)
    return logger
