#!/usr/bin/env python3
"""Command-line interface for fsaccess.

Thin front end over the file access layer, mostly useful for checking how
a path behaves (stat, listing, watch events) on the current platform:
- Argument parsing and validation
- Configuration file loading
- Logging setup
- One subcommand per operation

Example:
    >>> from fsaccess.cli import parse_arguments
    >>> args = parse_arguments(["stat", "--no-follow", "/tmp/link"])
"""

import argparse
import asyncio
import stat as stat_module
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fsaccess.core.constants import FSACCESS_VERSION, ConfigKey
from fsaccess.core.errors import FsError
from fsaccess.core.stats import FileStats
from fsaccess.fs.async_ops import AsyncFileSystem
from fsaccess.infrastructure.config_manager import ConfigError, ConfigManager, ConfigSource
from fsaccess.infrastructure.logger import Logger, configure_logging

DESCRIPTION = "fsaccess - POSIX-style file access with blocking and non-blocking variants"


class CLIError(Exception):
    """Exception raised for CLI-related errors."""

    pass


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
    """
    parser = argparse.ArgumentParser(
        prog="fsaccess",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show metadata of a symlink itself
  fsaccess stat --no-follow /tmp/link

  # Print five change events from a directory and its children
  fsaccess watch --recursive --count 5 /var/tmp

  # Poll a file every 500ms
  fsaccess watch-file --interval 500 /var/log/syslog
        """,
    )

    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {FSACCESS_VERSION}")
    parser.add_argument("-c", "--config", metavar="FILE", type=str, help="Configuration file path (YAML format)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--workers", metavar="N", type=int, help="Worker pool size")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    stat_cmd = commands.add_parser("stat", help="Show file metadata")
    stat_cmd.add_argument("path")
    stat_cmd.add_argument("--no-follow", action="store_true", help="Do not follow a final symlink (lstat)")

    ls_cmd = commands.add_parser("ls", help="List directory entries")
    ls_cmd.add_argument("path")

    cat_cmd = commands.add_parser("cat", help="Write file contents to stdout")
    cat_cmd.add_argument("path")

    write_cmd = commands.add_parser("write", help="Write text to a file")
    write_cmd.add_argument("path")
    write_cmd.add_argument("text")
    write_cmd.add_argument("--append", action="store_true", help="Append instead of replacing")

    mkdir_cmd = commands.add_parser("mkdir", help="Create a directory")
    mkdir_cmd.add_argument("path")

    rm_cmd = commands.add_parser("rm", help="Remove a file or empty directory")
    rm_cmd.add_argument("path")

    watch_cmd = commands.add_parser("watch", help="Print OS change notifications")
    watch_cmd.add_argument("path")
    watch_cmd.add_argument("--recursive", action="store_true", help="Watch subdirectories too")
    watch_cmd.add_argument("--count", type=int, default=None, help="Exit after N events")

    poll_cmd = commands.add_parser("watch-file", help="Poll a path with stat and print changes")
    poll_cmd.add_argument("path")
    poll_cmd.add_argument("--interval", type=int, default=None, metavar="MS", help="Polling interval")
    poll_cmd.add_argument("--count", type=int, default=None, help="Exit after N changes")

    parsed = parser.parse_args(args)
    _validate_arguments(parsed)
    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Raises:
        CLIError: If validation fails
    """
    count = getattr(args, "count", None)
    if count is not None and count < 1:
        raise CLIError(f"--count must be positive: {count}")

    interval = getattr(args, "interval", None)
    if interval is not None and interval < 1:
        raise CLIError(f"--interval must be positive: {interval}")

    if args.workers is not None and args.workers < 1:
        raise CLIError(f"--workers must be positive: {args.workers}")


def build_config(args: argparse.Namespace) -> ConfigManager:
    """
    Build the configuration from file, environment and arguments.

    Raises:
        CLIError: If a configuration source is missing or invalid
    """
    try:
        config = ConfigManager()
        config.load_defaults_files()
        if args.config:
            config.load_file(args.config)
    except ConfigError as e:
        raise CLIError(str(e))

    overrides: Dict[str, Any] = {}
    if args.debug:
        overrides["logging"] = {"level": "DEBUG"}
    if args.workers is not None:
        overrides["workers"] = {"max_workers": args.workers}
    if overrides:
        config.load_dict({"fsaccess": overrides}, ConfigSource.CLI_ARGS)

    return config


def format_stats(path: str, stats: FileStats) -> str:
    """Render a stats snapshot as ``key: value`` lines."""

    def when(seconds: float) -> str:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()

    lines = [
        f"path: {path}",
        f"type: {stats.file_type.value}",
        f"mode: {stat_module.filemode(stats.mode)} ({stats.permissions:o})",
        f"size: {stats.size}",
        f"inode: {stats.ino}",
        f"device: {stats.dev}",
        f"links: {stats.nlink}",
        f"uid: {stats.uid}",
        f"gid: {stats.gid}",
        f"blocks: {stats.blocks} (block size {stats.blksize})",
        f"atime: {when(stats.atime)}",
        f"mtime: {when(stats.mtime)}",
        f"ctime: {when(stats.ctime)}",
    ]
    if stats.birthtime:
        lines.append(f"birthtime: {when(stats.birthtime)}")
    return "\n".join(lines)


async def _run_command(args: argparse.Namespace, afs: AsyncFileSystem) -> int:
    if args.command == "stat":
        stats = await (afs.lstat(args.path) if args.no_follow else afs.stat(args.path))
        print(format_stats(args.path, stats))

    elif args.command == "ls":
        for name in await afs.readdir(args.path):
            print(name)

    elif args.command == "cat":
        sys.stdout.buffer.write(await afs.read_file(args.path))
        sys.stdout.flush()

    elif args.command == "write":
        if args.append:
            await afs.append_file(args.path, args.text)
        else:
            await afs.write_file(args.path, args.text)

    elif args.command == "mkdir":
        await afs.mkdir(args.path)

    elif args.command == "rm":
        stats = await afs.lstat(args.path)
        if stats.is_directory():
            await afs.rmdir(args.path)
        else:
            await afs.unlink(args.path)

    elif args.command == "watch":
        async for kind, filename in afs.watch_events(
            args.path, max_events=args.count, recursive=args.recursive, persistent=False
        ):
            print(f"{kind}\t{filename if filename is not None else ''}", flush=True)

    elif args.command == "watch-file":
        await _watch_file(args, afs)

    return 0


async def _watch_file(args: argparse.Namespace, afs: AsyncFileSystem) -> None:
    seen = 0
    loop = asyncio.get_running_loop()
    finished = asyncio.Event()

    def on_change(current: FileStats, previous: FileStats) -> None:
        nonlocal seen
        print(f"size {previous.size} -> {current.size}\tmtime {previous.mtime} -> {current.mtime}", flush=True)
        seen += 1
        if args.count is not None and seen >= args.count:
            loop.call_soon_threadsafe(finished.set)

    afs.watch_file(args.path, on_change, interval_ms=args.interval, persistent=False)
    try:
        await finished.wait()
    finally:
        afs.unwatch_file(args.path, on_change)


def run(args: argparse.Namespace, config: ConfigManager, logger: Logger) -> int:
    """
    Execute one parsed command.

    Returns:
        Exit code (0 for success, 1 for a file-system error)

    Raises:
        CLIError: If the configuration cannot build a file system
    """
    try:
        afs = AsyncFileSystem(config=config, logger=logger)
    except FsError as e:
        raise CLIError(f"Invalid configuration: {e}")

    async def runner() -> int:
        async with afs:
            return await _run_command(args, afs)

    try:
        return asyncio.run(runner())
    except FsError as e:
        logger.debug("command failed", command=args.command, error=str(e))
        print(f"fsaccess: {e}", file=sys.stderr)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    try:
        args = parse_arguments(argv)
        config = build_config(args)
        try:
            logger = configure_logging(config.section(ConfigKey.LOGGING), name="fsaccess")
        except OSError as e:
            raise CLIError(f"Cannot open log file: {e}")
        return run(args, config, logger)

    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
