"""Tests for argument validators."""

import os
from pathlib import Path

import pytest

from fsaccess.core.constants import Encoding, OpenMode
from fsaccess.core.errors import InvalidArgument
from fsaccess.core.validators import (
    parse_open_flags,
    validate_buffer,
    validate_config,
    validate_data,
    validate_encoding,
    validate_interval,
    validate_length,
    validate_log_level,
    validate_max_workers,
    validate_mode,
    validate_path,
    validate_position,
)


class TestValidatePath:
    def test_accepts_str_bytes_and_pathlike(self):
        assert validate_path("/tmp/a") == "/tmp/a"
        assert validate_path(b"/tmp/a") == b"/tmp/a"
        assert validate_path(Path("/tmp/a")) == "/tmp/a"

    @pytest.mark.parametrize("bad", ["", b"", "a\0b", b"a\0b"])
    def test_rejects_empty_and_null(self, bad):
        with pytest.raises(InvalidArgument):
            validate_path(bad)

    def test_rejects_wrong_type(self):
        with pytest.raises(InvalidArgument, match='"oldPath"'):
            validate_path(42, name="oldPath")


class TestParseOpenFlags:
    def test_every_mode(self):
        for mode in OpenMode:
            assert parse_open_flags(mode) == (mode.os_flags, mode.is_append)
            assert parse_open_flags(mode.value) == (mode.os_flags, mode.is_append)

    def test_exclusive_modes_set_excl(self):
        flags, _ = parse_open_flags("wx")
        assert flags & os.O_EXCL
        assert flags & os.O_CREAT

    def test_append_modes(self):
        assert parse_open_flags("a")[1] is True
        assert parse_open_flags("a+")[1] is True
        assert parse_open_flags("r+")[1] is False

    def test_raw_int(self):
        flags = os.O_WRONLY | os.O_APPEND
        assert parse_open_flags(flags) == (flags, True)

    @pytest.mark.parametrize("bad", ["rw", "x", "", True])
    def test_rejects_unknown(self, bad):
        with pytest.raises(InvalidArgument):
            parse_open_flags(bad)


class TestValidateMode:
    def test_int_and_octal_strings(self):
        assert validate_mode(0o644) == 0o644
        assert validate_mode("755") == 0o755
        assert validate_mode("0o600") == 0o600

    @pytest.mark.parametrize("bad", [-1, 0o10000, "999", True, 1.5])
    def test_rejects(self, bad):
        with pytest.raises(InvalidArgument):
            validate_mode(bad)


class TestNumericValidators:
    def test_position(self):
        assert validate_position(None) is None
        assert validate_position(0) == 0
        with pytest.raises(InvalidArgument):
            validate_position(-1)
        with pytest.raises(InvalidArgument):
            validate_position("1")

    def test_length(self):
        assert validate_length(10) == 10
        with pytest.raises(InvalidArgument):
            validate_length(-5)

    def test_interval(self):
        assert validate_interval(100) == 100.0
        with pytest.raises(InvalidArgument):
            validate_interval(0)
        with pytest.raises(InvalidArgument):
            validate_interval("fast")

    def test_max_workers(self):
        assert validate_max_workers(4) == 4
        for bad in (0, 129, "4", False):
            with pytest.raises(InvalidArgument):
                validate_max_workers(bad)


class TestBuffersAndData:
    def test_writable_buffer(self):
        view = validate_buffer(bytearray(8))
        assert len(view) == 8
        assert not view.readonly

    def test_buffer_slice_is_a_region(self):
        backing = bytearray(10)
        view = validate_buffer(memoryview(backing)[2:6])
        view[:] = b"abcd"
        assert backing == b"\0\0abcd\0\0\0\0"

    def test_readonly_buffer_rejected(self):
        with pytest.raises(InvalidArgument):
            validate_buffer(b"immutable")

    def test_non_buffer_rejected(self):
        with pytest.raises(InvalidArgument):
            validate_buffer([1, 2, 3])

    def test_data(self):
        assert validate_data("héllo") == "héllo".encode("utf-8")
        assert validate_data("abc", "ascii") == b"abc"
        assert validate_data(bytearray(b"xy")) == b"xy"
        assert validate_data(memoryview(b"z")) == b"z"
        with pytest.raises(InvalidArgument):
            validate_data(123)
        with pytest.raises(InvalidArgument):
            validate_data("text", None)


class TestValidateEncoding:
    def test_values(self):
        assert validate_encoding(None) is Encoding.UTF8
        assert validate_encoding("utf8") is Encoding.UTF8
        assert validate_encoding("utf-8") is Encoding.UTF8
        assert validate_encoding("buffer") is Encoding.BUFFER
        assert validate_encoding(Encoding.BUFFER) is Encoding.BUFFER

    def test_rejects_unknown(self):
        with pytest.raises(InvalidArgument):
            validate_encoding("latin-1")


class TestValidateConfig:
    def test_valid(self, sample_config):
        assert validate_config(sample_config) is True
        assert validate_config(sample_config["fsaccess"]) is True

    def test_bad_values(self):
        for bad in (
            {"fsaccess": {"workers": {"max_workers": 0}}},
            {"fsaccess": {"watch": {"poll_interval_ms": -1}}},
            {"fsaccess": {"watch": {"recursive": "yes"}}},
            {"fsaccess": {"watch": {"encoding": "ucs2"}}},
            {"fsaccess": {"files": {"dir_mode": "abc"}}},
            {"fsaccess": {"logging": {"level": "verbose"}}},
            {"fsaccess": {"logging": {"file": 3}}},
            {"fsaccess": {"workers": 3}},
        ):
            with pytest.raises(InvalidArgument):
                validate_config(bad)

    def test_log_level(self):
        assert validate_log_level("debug") == "DEBUG"
        with pytest.raises(InvalidArgument, match="logging.level"):
            validate_log_level(10)

    def test_not_a_dict(self):
        with pytest.raises(InvalidArgument):
            validate_config(["fsaccess"])
