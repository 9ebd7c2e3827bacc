"""
fsaccess Core: Error Taxonomy.

Every operation, blocking or not, reports failures as one of the
``FsError`` subclasses below. ``translate_os_error`` is the single place
where ``OSError`` values coming back from the ``os`` module are mapped
onto the taxonomy.
"""
import errno as errno_codes
import os
from typing import Dict, Optional, Type

from fsaccess.core.constants import ErrorKind, PathArg


class FsError(Exception):
    """Base exception for file-system operation errors."""

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(
        self,
        message: str,
        errno: Optional[int] = None,
        syscall: Optional[str] = None,
        path: Optional[PathArg] = None,
        dest: Optional[PathArg] = None,
    ):
        """Initialize FsError.

        Args:
            message: Error message
            errno: Underlying OS error number, if any
            syscall: Name of the operation that failed
            path: Path the operation was applied to
            dest: Destination path for two-path operations
        """
        super().__init__(message)
        self.message = message
        self.errno = errno
        self.syscall = syscall
        self.path = path
        self.dest = dest

    @property
    def code(self) -> Optional[str]:
        """Symbolic errno name such as ``ENOENT``."""
        if self.errno is None:
            return None
        return errno_codes.errorcode.get(self.errno)


class NotFound(FsError):
    kind = ErrorKind.NOT_FOUND


class AlreadyExists(FsError):
    kind = ErrorKind.ALREADY_EXISTS


class PermissionDenied(FsError):
    kind = ErrorKind.PERMISSION_DENIED


class NotADirectory(FsError):
    kind = ErrorKind.NOT_A_DIRECTORY


class IsADirectory(FsError):
    kind = ErrorKind.IS_A_DIRECTORY


class InvalidHandle(FsError):
    kind = ErrorKind.INVALID_HANDLE


class InvalidArgument(FsError):
    kind = ErrorKind.INVALID_ARGUMENT


class Interrupted(FsError):
    kind = ErrorKind.INTERRUPTED


class FsIOError(FsError):
    """Generic I/O failure (directory not empty, no space, EIO, ...)."""

    kind = ErrorKind.IO_ERROR


_ERRNO_MAP: Dict[int, Type[FsError]] = {
    errno_codes.ENOENT: NotFound,
    errno_codes.EEXIST: AlreadyExists,
    errno_codes.EACCES: PermissionDenied,
    errno_codes.EPERM: PermissionDenied,
    errno_codes.ENOTDIR: NotADirectory,
    errno_codes.EISDIR: IsADirectory,
    errno_codes.EBADF: InvalidHandle,
    errno_codes.EINVAL: InvalidArgument,
    errno_codes.EINTR: Interrupted,
}

_KIND_MAP: Dict[ErrorKind, Type[FsError]] = {
    cls.kind: cls
    for cls in (
        NotFound,
        AlreadyExists,
        PermissionDenied,
        NotADirectory,
        IsADirectory,
        InvalidHandle,
        InvalidArgument,
        Interrupted,
        FsIOError,
    )
}


def error_class_for(kind: ErrorKind) -> Type[FsError]:
    """Return the exception class used for an error kind."""
    return _KIND_MAP[kind]


def _display(path: Optional[PathArg]) -> str:
    if path is None:
        return ""
    if isinstance(path, bytes):
        return os.fsdecode(path)
    return str(os.fspath(path))


def translate_os_error(
    exc: BaseException,
    syscall: str,
    path: Optional[PathArg] = None,
    dest: Optional[PathArg] = None,
) -> FsError:
    """Convert an exception raised by the ``os`` module into an ``FsError``.

    Args:
        exc: The original exception
        syscall: Operation name used in the message (``open``, ``stat``, ...)
        path: Path argument of the operation
        dest: Second path argument for rename/link/symlink

    Returns:
        The matching ``FsError`` subclass instance, chained to ``exc``
    """
    if isinstance(exc, FsError):
        return exc

    if isinstance(exc, OSError) and exc.errno is not None:
        cls = _ERRNO_MAP.get(exc.errno, FsIOError)
        code = errno_codes.errorcode.get(exc.errno, str(exc.errno))
        reason = exc.strerror or os.strerror(exc.errno)
        message = f"{code}: {reason}, {syscall}"
        if path is not None:
            message += f" '{_display(path)}'"
        if dest is not None:
            message += f" -> '{_display(dest)}'"
        error = cls(message, errno=exc.errno, syscall=syscall, path=path, dest=dest)
    elif isinstance(exc, (ValueError, TypeError, OverflowError)):
        error = InvalidArgument(
            f"EINVAL: {exc}, {syscall}", errno=errno_codes.EINVAL, syscall=syscall, path=path, dest=dest
        )
    else:
        error = FsIOError(f"{type(exc).__name__}: {exc}, {syscall}", syscall=syscall, path=path, dest=dest)

    error.__cause__ = exc
    return error
