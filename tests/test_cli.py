"""Tests for the command-line interface.

This module tests:
- Argument parsing and validation
- Configuration layering
- Each subcommand's output and exit code
"""

import os
import signal
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from fsaccess.cli import CLIError, build_config, format_stats, main, parse_arguments
from fsaccess.core.stats import FileStats


def _run_in_thread(argv):
    result = {}

    def target():
        result["code"] = main(argv)

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread, result


class TestParseArguments:
    def test_stat(self):
        args = parse_arguments(["stat", "--no-follow", "/tmp/x"])
        assert args.command == "stat"
        assert args.no_follow is True
        assert args.path == "/tmp/x"

    def test_global_options(self, config_file):
        args = parse_arguments(["-c", str(config_file), "--debug", "ls", "/tmp"])
        assert args.config == str(config_file)
        assert args.debug is True
        assert args.command == "ls"

    def test_watch_options(self):
        args = parse_arguments(["watch", "--recursive", "--count", "3", "/tmp"])
        assert args.recursive is True
        assert args.count == 3

        args = parse_arguments(["watch-file", "--interval", "250", "/tmp/f"])
        assert args.interval == 250
        assert args.count is None

    def test_command_required(self):
        with pytest.raises(SystemExit) as excinfo:
            parse_arguments([])
        assert excinfo.value.code == 2

    def test_unknown_command(self):
        with pytest.raises(SystemExit) as excinfo:
            parse_arguments(["format", "/"])
        assert excinfo.value.code == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            parse_arguments(["--version"])
        assert excinfo.value.code == 0
        assert "1.0.0" in capsys.readouterr().out

    @pytest.mark.parametrize(
        "argv",
        [
            ["watch", "--count", "0", "/tmp"],
            ["watch-file", "--interval", "0", "/tmp"],
            ["--workers", "0", "ls", "/tmp"],
        ],
    )
    def test_validation(self, argv):
        with pytest.raises(CLIError):
            parse_arguments(argv)


class TestBuildConfig:
    def test_file_and_overrides(self, config_file):
        args = parse_arguments(["-c", str(config_file), "--workers", "3", "--debug", "ls", "/tmp"])
        config = build_config(args)
        assert config.get("fsaccess.workers.max_workers") == 3
        assert config.get("fsaccess.logging.level") == "DEBUG"
        assert config.get("fsaccess.watch.poll_interval_ms") == 50

    def test_missing_file(self, temp_dir):
        args = parse_arguments(["-c", str(temp_dir / "absent.yaml"), "ls", "/tmp"])
        with pytest.raises(CLIError):
            build_config(args)


class TestFormatStats:
    def test_lines(self, source_dir):
        stats = FileStats.from_stat_result(os.stat(source_dir / "file.txt"))
        text = format_stats("file.txt", stats)
        assert "path: file.txt" in text
        assert "type: regular" in text
        assert "size: 11" in text
        assert "mode: -" in text


class TestCommands:
    def test_stat(self, source_dir, capsys):
        assert main(["stat", str(source_dir / "link.txt")]) == 0
        out = capsys.readouterr().out
        assert "type: regular" in out
        assert "size: 11" in out

    def test_stat_no_follow(self, source_dir, capsys):
        assert main(["stat", "--no-follow", str(source_dir / "link.txt")]) == 0
        assert "type: symlink" in capsys.readouterr().out

    def test_stat_missing(self, source_dir, capsys):
        assert main(["stat", str(source_dir / "missing")]) == 1
        err = capsys.readouterr().err
        assert "fsaccess: ENOENT" in err

    def test_ls(self, source_dir, capsys):
        assert main(["ls", str(source_dir)]) == 0
        names = capsys.readouterr().out.split()
        assert sorted(names) == ["empty.txt", "file.txt", "link.txt", "subdir"]

    def test_ls_on_file(self, source_dir, capsys):
        assert main(["ls", str(source_dir / "file.txt")]) == 1
        assert "ENOTDIR" in capsys.readouterr().err

    def test_cat(self, source_dir, capsys):
        assert main(["cat", str(source_dir / "file.txt")]) == 0
        assert capsys.readouterr().out == "Hello World"

    def test_write_and_append(self, source_dir):
        path = source_dir / "notes.txt"
        assert main(["write", str(path), "first"]) == 0
        assert main(["write", str(path), " second", "--append"]) == 0
        assert path.read_text() == "first second"

    def test_mkdir_and_rm(self, source_dir, capsys):
        target = source_dir / "made"
        assert main(["mkdir", str(target)]) == 0
        assert target.is_dir()
        assert main(["mkdir", str(target)]) == 1
        assert "EEXIST" in capsys.readouterr().err

        assert main(["rm", str(target)]) == 0
        assert main(["rm", str(source_dir / "file.txt")]) == 0
        assert not target.exists()
        assert not (source_dir / "file.txt").exists()

    def test_rm_non_empty_directory(self, source_dir, capsys):
        assert main(["rm", str(source_dir / "subdir")]) == 1
        assert (source_dir / "subdir").exists()

    def test_bad_config_is_usage_error(self, temp_dir, capsys):
        bad = temp_dir / "bad.yaml"
        bad.write_text("fsaccess:\n  workers:\n    max_workers: 0\n")
        assert main(["-c", str(bad), "ls", str(temp_dir)]) == 2
        assert "Error:" in capsys.readouterr().err

    def test_invalid_environment_is_usage_error(self, temp_dir, monkeypatch, capsys):
        monkeypatch.setenv("FSACCESS_WORKERS__MAX_WORKERS", "lots")
        assert main(["ls", str(temp_dir)]) == 2
        assert "environment" in capsys.readouterr().err

    def test_invalid_log_level_is_usage_error(self, temp_dir, capsys):
        bad = temp_dir / "verbose.yaml"
        bad.write_text("fsaccess:\n  logging:\n    level: verbose\n")
        assert main(["-c", str(bad), "ls", str(temp_dir)]) == 2
        assert "logging.level" in capsys.readouterr().err

    def test_too_many_workers_is_usage_error(self, temp_dir, capsys):
        assert main(["--workers", "100000", "ls", str(temp_dir)]) == 2
        assert "max_workers" in capsys.readouterr().err

    def test_watch(self, source_dir, capsys):
        thread, result = _run_in_thread(["watch", "--count", "1", str(source_dir)])

        deadline = time.monotonic() + 5
        i = 0
        while thread.is_alive() and time.monotonic() < deadline:
            (source_dir / f"touch{i}.txt").write_text("x")
            i += 1
            thread.join(0.1)

        assert not thread.is_alive()
        assert result["code"] == 0
        out = capsys.readouterr().out
        assert out.count("\n") == 1
        assert out.split("\t")[0] in ("rename", "change")

    def test_watch_missing(self, source_dir, capsys):
        assert main(["watch", "--count", "1", str(source_dir / "missing")]) == 1
        assert "ENOENT" in capsys.readouterr().err

    def test_watch_file(self, source_dir, capsys):
        path = source_dir / "file.txt"
        thread, result = _run_in_thread(["watch-file", "--interval", "10", "--count", "1", str(path)])

        deadline = time.monotonic() + 5
        step = 1
        while thread.is_alive() and time.monotonic() < deadline:
            st = os.stat(path)
            os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + step * 1_000_000_000))
            step += 1
            thread.join(0.1)

        assert not thread.is_alive()
        assert result["code"] == 0
        assert "size 11 -> 11" in capsys.readouterr().out

    @pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")
    def test_watch_file_exits_on_interrupt(self, source_dir):
        env = dict(os.environ)
        root = str(Path(__file__).resolve().parent.parent)
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [root, env.get("PYTHONPATH")]))
        process = subprocess.Popen(
            [sys.executable, "-m", "fsaccess.cli", "watch-file", "--interval", "50", str(source_dir / "file.txt")],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
        )
        try:
            time.sleep(1.5)
            process.send_signal(signal.SIGINT)
            process.communicate(timeout=10)
        finally:
            if process.poll() is None:
                process.kill()
                process.communicate()

        assert process.returncode == 130
