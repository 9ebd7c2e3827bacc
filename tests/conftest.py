"""Shared pytest fixtures for fsaccess tests."""
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest
import yaml

from fsaccess.fs.async_ops import AsyncFileSystem
from fsaccess.fs.dispatch import Dispatcher
from fsaccess.fs.operations import FileSystem
from fsaccess.infrastructure.config_manager import ConfigManager
from fsaccess.infrastructure.logger import Logger, LogLevel, set_global_logger


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Create a directory tree with files, a subdirectory and a symlink."""
    source = temp_dir / "source"
    source.mkdir()

    (source / "file.txt").write_text("Hello World")
    (source / "empty.txt").write_bytes(b"")
    (source / "subdir").mkdir()
    (source / "subdir" / "nested.txt").write_text("Nested content")
    (source / "link.txt").symlink_to(source / "file.txt")

    return source


@pytest.fixture
def sample_config() -> Dict[str, Any]:
    """Provide a sample fsaccess configuration."""
    return {
        "fsaccess": {
            "workers": {"max_workers": 2},
            "watch": {
                "poll_interval_ms": 50,
                "persistent": False,
                "recursive": False,
                "encoding": "utf8",
            },
            "files": {"file_mode": 0o640, "dir_mode": 0o750},
            "logging": {"level": "DEBUG", "file": None},
        }
    }


@pytest.fixture
def config_file(temp_dir: Path, sample_config: Dict[str, Any]) -> Path:
    """Create a configuration file."""
    config_path = temp_dir / "fsaccess.yaml"
    with open(config_path, "w") as f:
        yaml.dump(sample_config, f)
    return config_path


@pytest.fixture
def quiet_logger() -> Logger:
    """Logger that only reports errors."""
    return Logger("fsaccess.test", level=LogLevel.ERROR)


@pytest.fixture
def config() -> ConfigManager:
    """Configuration with defaults only and non-persistent watchers."""
    manager = ConfigManager(load_environment=False)
    manager.set("fsaccess.watch.persistent", False)
    return manager


@pytest.fixture
def fs(config: ConfigManager, quiet_logger: Logger) -> Generator[FileSystem, None, None]:
    """Blocking file system; open handles and pollers are released afterwards."""
    filesystem = FileSystem(config=config, logger=quiet_logger)
    yield filesystem
    filesystem.close_all()


@pytest.fixture
def afs(fs: FileSystem, quiet_logger: Logger) -> Generator[AsyncFileSystem, None, None]:
    """Non-blocking file system over ``fs`` with a small worker pool."""
    filesystem = AsyncFileSystem(fs=fs, dispatcher=Dispatcher(max_workers=2, logger=quiet_logger))
    yield filesystem
    filesystem.dispatcher.shutdown()


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Isolate tests from FSACCESS_* variables and global instances."""
    for key in list(os.environ):
        if key.startswith("FSACCESS_"):
            monkeypatch.delenv(key)
    yield
    set_global_logger(None)
