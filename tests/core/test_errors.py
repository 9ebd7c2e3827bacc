"""Tests for the fsaccess error taxonomy."""

import errno

import pytest

from fsaccess.core.constants import ErrorKind
from fsaccess.core.errors import (
    AlreadyExists,
    FsError,
    FsIOError,
    Interrupted,
    InvalidArgument,
    InvalidHandle,
    IsADirectory,
    NotADirectory,
    NotFound,
    PermissionDenied,
    error_class_for,
    translate_os_error,
)


class TestFsError:
    """Tests for FsError and its subclasses."""

    def test_attributes(self):
        error = NotFound("gone", errno=errno.ENOENT, syscall="open", path="/a")
        assert error.message == "gone"
        assert error.errno == errno.ENOENT
        assert error.syscall == "open"
        assert error.path == "/a"
        assert error.dest is None
        assert error.code == "ENOENT"
        assert str(error) == "gone"

    def test_code_without_errno(self):
        assert FsIOError("boom").code is None

    def test_every_kind_has_a_class(self):
        for kind in ErrorKind:
            cls = error_class_for(kind)
            assert issubclass(cls, FsError)
            assert cls.kind is kind

    def test_subclasses_are_distinct(self):
        classes = {error_class_for(kind) for kind in ErrorKind}
        assert len(classes) == len(ErrorKind)


class TestTranslateOsError:
    """Tests for OSError translation."""

    @pytest.mark.parametrize(
        "code,cls",
        [
            (errno.ENOENT, NotFound),
            (errno.EEXIST, AlreadyExists),
            (errno.EACCES, PermissionDenied),
            (errno.EPERM, PermissionDenied),
            (errno.ENOTDIR, NotADirectory),
            (errno.EISDIR, IsADirectory),
            (errno.EBADF, InvalidHandle),
            (errno.EINVAL, InvalidArgument),
            (errno.EINTR, Interrupted),
            (errno.ENOTEMPTY, FsIOError),
            (errno.ENOSPC, FsIOError),
            (errno.EIO, FsIOError),
        ],
    )
    def test_errno_mapping(self, code, cls):
        error = translate_os_error(OSError(code, "reason"), "stat", "/x")
        assert type(error) is cls
        assert error.errno == code

    def test_message_includes_code_syscall_and_paths(self):
        error = translate_os_error(
            OSError(errno.ENOENT, "No such file or directory"), "rename", "/a", "/b"
        )
        assert str(error) == "ENOENT: No such file or directory, rename '/a' -> '/b'"
        assert error.path == "/a"
        assert error.dest == "/b"
        assert error.syscall == "rename"

    def test_bytes_path_is_decoded_in_message(self):
        error = translate_os_error(OSError(errno.ENOENT, "missing"), "open", b"/bytes/path")
        assert "'/bytes/path'" in str(error)
        assert error.path == b"/bytes/path"

    def test_cause_is_preserved(self):
        original = OSError(errno.EACCES, "denied")
        error = translate_os_error(original, "open")
        assert error.__cause__ is original

    def test_value_error_is_invalid_argument(self):
        error = translate_os_error(ValueError("embedded null byte"), "open")
        assert isinstance(error, InvalidArgument)
        assert error.errno == errno.EINVAL

    def test_overflow_error_is_invalid_argument(self):
        assert isinstance(translate_os_error(OverflowError("too big"), "read"), InvalidArgument)

    def test_unknown_exception_is_io_error(self):
        error = translate_os_error(RuntimeError("odd"), "read")
        assert isinstance(error, FsIOError)
        assert "RuntimeError" in str(error)

    def test_fs_error_passes_through(self):
        original = InvalidHandle("closed")
        assert translate_os_error(original, "read") is original

    def test_oserror_without_errno(self):
        error = translate_os_error(OSError("no errno"), "read")
        assert isinstance(error, FsIOError)
