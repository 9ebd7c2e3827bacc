"""
fsaccess Core: Input Validators.

Argument validation shared by the blocking and non-blocking layers. Every
validator raises ``InvalidArgument`` so that bad input surfaces through the
same error taxonomy as OS failures.
"""
import os
from typing import Any, Dict, Optional, Tuple, Union

from fsaccess.core.constants import LOG_LEVELS, ConfigKey, Encoding, Limits, OpenMode, PathArg
from fsaccess.core.errors import InvalidArgument


def validate_path(path: PathArg, name: str = "path") -> Union[str, bytes]:
    """Validate a path argument and return it as ``str`` or ``bytes``.

    Args:
        path: Text, bytes or ``os.PathLike`` path
        name: Argument name used in error messages

    Returns:
        The path with any ``os.PathLike`` wrapper removed

    Raises:
        InvalidArgument: If the path has the wrong type, is empty, or
            contains null bytes
    """
    try:
        raw = os.fspath(path)
    except TypeError:
        raise InvalidArgument(
            f"The \"{name}\" argument must be str, bytes or os.PathLike, got {type(path).__name__}"
        )

    if not raw:
        raise InvalidArgument(f"The \"{name}\" argument must not be empty")

    null = b"\0" if isinstance(raw, bytes) else "\0"
    if null in raw:
        raise InvalidArgument(f"The \"{name}\" argument must not contain null bytes")

    return raw


def parse_open_flags(flags: Union[OpenMode, str, int]) -> Tuple[int, bool]:
    """Translate an open-mode argument into ``os.open`` flags.

    Args:
        flags: An ``OpenMode``, its string value (``"r"``, ``"wx+"``, ...)
            or a raw ``os.O_*`` bit set

    Returns:
        Tuple of (os flags, append mode)

    Raises:
        InvalidArgument: If the mode string is not in the enumeration
    """
    if isinstance(flags, bool):
        raise InvalidArgument(f"Invalid open flags: {flags!r}")

    if isinstance(flags, int) and not isinstance(flags, OpenMode):
        return flags, bool(flags & os.O_APPEND)

    try:
        mode = OpenMode(flags)
    except ValueError:
        valid = [m.value for m in OpenMode]
        raise InvalidArgument(f"Invalid open flags: {flags!r}. Must be one of {valid}")

    return mode.os_flags, mode.is_append


def validate_mode(mode: Any, name: str = "mode") -> int:
    """Validate POSIX permission bits.

    Accepts an int or an octal string (``"755"``, ``"0o644"``).

    Returns:
        The mode as an int, unmodified otherwise
    """
    if isinstance(mode, bool):
        raise InvalidArgument(f"The \"{name}\" argument must be an integer, got bool")

    if isinstance(mode, str):
        try:
            mode = int(mode[2:] if mode.startswith("0o") else mode, 8)
        except ValueError:
            raise InvalidArgument(f"Invalid {name} (must be octal): {mode}")

    if not isinstance(mode, int):
        raise InvalidArgument(f"The \"{name}\" argument must be an integer, got {type(mode).__name__}")

    if mode < 0 or mode > Limits.MAX_MODE:
        raise InvalidArgument(f"The \"{name}\" argument must be in range 0-7777, got {mode:o}")

    return mode


def validate_position(position: Optional[int]) -> Optional[int]:
    """Validate a file offset; ``None`` means the current position."""
    if position is None:
        return None
    if isinstance(position, bool) or not isinstance(position, int):
        raise InvalidArgument(f"The \"position\" argument must be an integer, got {type(position).__name__}")
    if position < 0:
        raise InvalidArgument(f"The \"position\" argument must be >= 0, got {position}")
    return position


def validate_length(length: int, name: str = "length") -> int:
    """Validate a non-negative byte count."""
    if isinstance(length, bool) or not isinstance(length, int):
        raise InvalidArgument(f"The \"{name}\" argument must be an integer, got {type(length).__name__}")
    if length < 0:
        raise InvalidArgument(f"The \"{name}\" argument must be >= 0, got {length}")
    return length


def validate_buffer(buffer: Any) -> memoryview:
    """Validate a writable destination buffer for ``read``.

    Returns:
        A byte-format memoryview over the buffer
    """
    try:
        view = memoryview(buffer)
    except TypeError:
        raise InvalidArgument(
            f"The \"buffer\" argument must be a writable bytes-like object, got {type(buffer).__name__}"
        )

    if view.readonly:
        raise InvalidArgument("The \"buffer\" argument must be writable")

    return view.cast("B") if view.format != "B" or view.ndim != 1 else view


def validate_data(data: Any, encoding: Optional[str] = "utf-8") -> bytes:
    """Coerce write payloads to bytes.

    ``str`` values are encoded with ``encoding``; bytes-like values are
    passed through.
    """
    if isinstance(data, str):
        if encoding is None:
            raise InvalidArgument("Cannot write str data without an encoding")
        return data.encode(encoding)

    try:
        return bytes(memoryview(data))
    except TypeError:
        raise InvalidArgument(
            f"The \"data\" argument must be str or bytes-like, got {type(data).__name__}"
        )


def validate_encoding(encoding: Union[Encoding, str, None]) -> Encoding:
    """Validate a filename encoding option (``utf8`` or ``buffer``)."""
    if encoding is None:
        return Encoding.UTF8
    if isinstance(encoding, str) and encoding.lower().replace("-", "") == "utf8":
        return Encoding.UTF8
    try:
        return Encoding(encoding)
    except ValueError:
        valid = [e.value for e in Encoding]
        raise InvalidArgument(f"Invalid encoding: {encoding!r}. Must be one of {valid}")


def validate_interval(interval_ms: Union[int, float]) -> float:
    """Validate a polling interval in milliseconds."""
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)):
        raise InvalidArgument(f"Interval must be numeric, got {type(interval_ms).__name__}")
    if interval_ms < Limits.MIN_POLL_INTERVAL_MS:
        raise InvalidArgument(f"Interval must be >= {Limits.MIN_POLL_INTERVAL_MS}ms: {interval_ms}")
    return float(interval_ms)


def validate_max_workers(max_workers: Any) -> int:
    """Validate the worker pool size."""
    if isinstance(max_workers, bool) or not isinstance(max_workers, int):
        raise InvalidArgument(f"max_workers must be an integer, got {type(max_workers).__name__}")
    if max_workers < 1 or max_workers > Limits.MAX_WORKERS:
        raise InvalidArgument(f"max_workers must be in range 1-{Limits.MAX_WORKERS}, got {max_workers}")
    return max_workers


def validate_log_level(level: Any) -> str:
    """Validate a logging level name such as ``"DEBUG"``."""
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        raise InvalidArgument(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    return level.upper()


def _subsection(config: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = config.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidArgument(f"{key} must be a mapping, got {type(value).__name__}")
    return value


def validate_config(config: Dict[str, Any]) -> bool:
    """Validate the ``fsaccess`` configuration section.

    Args:
        config: Merged configuration dictionary (with or without the
            top-level ``fsaccess`` key)

    Returns:
        True if valid

    Raises:
        InvalidArgument: If a known key carries an invalid value
    """
    if not isinstance(config, dict):
        raise InvalidArgument("Configuration must be a dictionary")

    section = _subsection(config, ConfigKey.ROOT) if ConfigKey.ROOT in config else config

    workers = _subsection(section, ConfigKey.WORKERS)
    if ConfigKey.MAX_WORKERS in workers:
        validate_max_workers(workers[ConfigKey.MAX_WORKERS])

    watch = _subsection(section, ConfigKey.WATCH)
    if ConfigKey.POLL_INTERVAL_MS in watch:
        validate_interval(watch[ConfigKey.POLL_INTERVAL_MS])
    for key in (ConfigKey.PERSISTENT, ConfigKey.RECURSIVE):
        if key in watch and not isinstance(watch[key], bool):
            raise InvalidArgument(f"watch.{key} must be boolean: {watch[key]}")
    if ConfigKey.ENCODING in watch:
        validate_encoding(watch[ConfigKey.ENCODING])

    files = _subsection(section, ConfigKey.FILES)
    for key in (ConfigKey.FILE_MODE, ConfigKey.DIR_MODE):
        if key in files:
            validate_mode(files[key], name=f"files.{key}")

    logging_section = _subsection(section, ConfigKey.LOGGING)
    if ConfigKey.LEVEL in logging_section:
        validate_log_level(logging_section[ConfigKey.LEVEL])
    log_file = logging_section.get(ConfigKey.LOG_FILE)
    if log_file is not None and not isinstance(log_file, str):
        raise InvalidArgument(f"logging.file must be a path string: {log_file!r}")

    return True
