"""
fsaccess Core: Constants and Type Definitions

This module provides system-wide constants, error kinds, open modes and
configuration keys shared by the blocking and non-blocking layers.
"""
import os
from enum import Enum, IntEnum
from typing import TypeAlias, Union

# Version information
FSACCESS_VERSION = "1.0.0"
FSACCESS_API_VERSION = 1


class ErrorKind(IntEnum):
    """Error taxonomy surfaced by every operation."""

    NOT_FOUND = 1  # Path or entry does not exist
    ALREADY_EXISTS = 2  # Exclusive create on an existing path
    PERMISSION_DENIED = 3  # Access-control rejection
    NOT_A_DIRECTORY = 4  # Path component is not a directory
    IS_A_DIRECTORY = 5  # File operation on a directory
    INVALID_HANDLE = 6  # Closed or unknown handle
    INVALID_ARGUMENT = 7  # Bad flags, modes, offsets or paths
    INTERRUPTED = 8  # Interrupted system call
    IO_ERROR = 9  # Anything else (ENOTEMPTY, EIO, ENOSPC, ...)


# Type aliases for clarity
PathArg: TypeAlias = Union[str, bytes, os.PathLike]
Handle: TypeAlias = int
FileName: TypeAlias = Union[str, bytes]


class OpenMode(str, Enum):
    """Closed enumeration of open flags."""

    READ = "r"  # read-only
    WRITE = "w"  # write, create or truncate
    WRITE_EXCLUSIVE = "wx"  # write, create, fail if exists
    APPEND = "a"  # append, create
    READ_WRITE = "r+"  # read-write, must exist
    READ_WRITE_EXCLUSIVE = "wx+"  # read-write, create, fail if exists
    APPEND_READ = "a+"  # append-read, create

    @property
    def os_flags(self) -> int:
        """Translate to the platform ``os.O_*`` bit set."""
        return _OPEN_FLAGS[self]

    @property
    def is_append(self) -> bool:
        return self in (OpenMode.APPEND, OpenMode.APPEND_READ)


_OPEN_FLAGS = {
    OpenMode.READ: os.O_RDONLY,
    OpenMode.WRITE: os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
    OpenMode.WRITE_EXCLUSIVE: os.O_WRONLY | os.O_CREAT | os.O_EXCL,
    OpenMode.APPEND: os.O_WRONLY | os.O_CREAT | os.O_APPEND,
    OpenMode.READ_WRITE: os.O_RDWR,
    OpenMode.READ_WRITE_EXCLUSIVE: os.O_RDWR | os.O_CREAT | os.O_EXCL,
    OpenMode.APPEND_READ: os.O_RDWR | os.O_CREAT | os.O_APPEND,
}


class WatchEventKind(str, Enum):
    """Kinds of change reported by a watch subscription."""

    RENAME = "rename"
    CHANGE = "change"


class Encoding(str, Enum):
    """Encodings accepted for filenames returned to callers."""

    UTF8 = "utf8"
    BUFFER = "buffer"


# Resource limits and defaults
class Limits:
    """System resource limits and default values."""

    # Worker pool
    DEFAULT_MAX_WORKERS = 4
    MAX_WORKERS = 128

    # Permission bits
    DEFAULT_FILE_MODE = 0o666
    DEFAULT_DIR_MODE = 0o777
    MAX_MODE = 0o7777

    # Polling watcher
    DEFAULT_POLL_INTERVAL_MS = 5007
    MIN_POLL_INTERVAL_MS = 1

    # Chunk size used by read_file when the size is unknown
    READ_CHUNK_SIZE = 64 * 1024


# Configuration keys
class ConfigKey:
    """Configuration key constants."""

    ROOT = "fsaccess"

    WORKERS = "workers"
    MAX_WORKERS = "max_workers"

    WATCH = "watch"
    POLL_INTERVAL_MS = "poll_interval_ms"
    PERSISTENT = "persistent"
    RECURSIVE = "recursive"
    ENCODING = "encoding"

    FILES = "files"
    FILE_MODE = "file_mode"
    DIR_MODE = "dir_mode"

    LOGGING = "logging"
    LEVEL = "level"
    LOG_FILE = "file"


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# Default configuration values
DEFAULT_CONFIG = {
    ConfigKey.ROOT: {
        ConfigKey.WORKERS: {
            ConfigKey.MAX_WORKERS: Limits.DEFAULT_MAX_WORKERS,
        },
        ConfigKey.WATCH: {
            ConfigKey.POLL_INTERVAL_MS: Limits.DEFAULT_POLL_INTERVAL_MS,
            ConfigKey.PERSISTENT: True,
            ConfigKey.RECURSIVE: False,
            ConfigKey.ENCODING: Encoding.UTF8.value,
        },
        ConfigKey.FILES: {
            ConfigKey.FILE_MODE: Limits.DEFAULT_FILE_MODE,
            ConfigKey.DIR_MODE: Limits.DEFAULT_DIR_MODE,
        },
        ConfigKey.LOGGING: {
            "level": "INFO",
            "file": None,
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    }
}
