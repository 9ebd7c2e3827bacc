#!/usr/bin/env python3
"""Hierarchical configuration manager for fsaccess.

Configuration is layered by precedence:
- Compiled defaults
- System config (/etc/fsaccess/config.yaml)
- User config (~/.config/fsaccess/config.yaml)
- Environment variables (FSACCESS_*)
- CLI arguments
- Runtime updates

Example:
    >>> config = ConfigManager()
    >>> config.load_file("fsaccess.yaml")
    >>> config.get("fsaccess.workers.max_workers", default=4)
"""

import copy
import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from fsaccess.core.constants import DEFAULT_CONFIG, ConfigKey
from fsaccess.core.errors import FsError
from fsaccess.core.validators import validate_config

ENV_PREFIX = "FSACCESS_"
SYSTEM_CONFIG_PATH = "/etc/fsaccess/config.yaml"
USER_CONFIG_PATH = "~/.config/fsaccess/config.yaml"


class ConfigSource(Enum):
    """Configuration source precedence levels."""

    COMPILED_DEFAULTS = 1  # Lowest precedence
    SYSTEM_CONFIG = 2
    USER_CONFIG = 3
    ENVIRONMENT = 4
    CLI_ARGS = 5
    RUNTIME = 6  # Highest precedence


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigManager:
    """Thread-safe hierarchical configuration manager.

    Values are looked up with dot-separated keys, searching sources from
    highest to lowest precedence.
    """

    DEFAULT_CONFIG = DEFAULT_CONFIG

    def __init__(self, config_file: Optional[str] = None, load_environment: bool = True):
        """Initialize configuration manager.

        Args:
            config_file: Optional config file to load
            load_environment: Read ``FSACCESS_*`` variables
        """
        self._config: Dict[ConfigSource, Dict[str, Any]] = {}
        self._lock = threading.RLock()

        self._config[ConfigSource.COMPILED_DEFAULTS] = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file:
            self.load_file(config_file)

        if load_environment:
            self._load_environment()

    def load_file(self, file_path: str, source: ConfigSource = ConfigSource.USER_CONFIG) -> None:
        """Load configuration from YAML file.

        Args:
            file_path: Path to YAML config file
            source: Configuration source level

        Raises:
            ConfigError: If file cannot be loaded or parsed
        """
        path = Path(file_path).expanduser().resolve()

        if not path.exists():
            raise ConfigError(f"Config file not found: {file_path}")

        try:
            with open(path, "r") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {file_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Error loading config {file_path}: {e}")

        if not isinstance(config_data, dict):
            raise ConfigError(f"Invalid config format in {file_path}")

        try:
            validate_config(config_data)
        except FsError as e:
            raise ConfigError(f"Invalid configuration in {file_path}: {e}")

        with self._lock:
            self._config[source] = config_data

    def load_defaults_files(self) -> None:
        """Load the system and user config files when present."""
        for file_path, source in (
            (SYSTEM_CONFIG_PATH, ConfigSource.SYSTEM_CONFIG),
            (USER_CONFIG_PATH, ConfigSource.USER_CONFIG),
        ):
            if Path(file_path).expanduser().exists():
                self.load_file(file_path, source)

    def load_dict(self, config_data: Dict[str, Any], source: ConfigSource = ConfigSource.RUNTIME) -> None:
        """Load configuration from dictionary."""
        with self._lock:
            self._config[source] = copy.deepcopy(config_data)

    def _load_environment(self) -> None:
        """Load configuration from environment variables.

        Variables are ``FSACCESS_<SECTION>__<KEY>=value``; the double
        underscore separates nesting levels so keys such as
        ``max_workers`` keep their single underscores.
        Example: FSACCESS_WORKERS__MAX_WORKERS=8

        Raises:
            ConfigError: If a variable carries an invalid value
        """
        env_config: Dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = key[len(ENV_PREFIX):].lower().split("__")
            if not all(parts):
                continue

            current = env_config
            for part in parts[:-1]:
                current = current.setdefault(part, {})
                if not isinstance(current, dict):
                    break
            else:
                current[parts[-1]] = self._parse_env_value(value)

        if env_config:
            try:
                validate_config(env_config)
            except FsError as e:
                raise ConfigError(f"Invalid configuration in environment: {e}")
            with self._lock:
                self._config[ConfigSource.ENVIRONMENT] = {ConfigKey.ROOT: env_config}

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value into bool, int, float or str."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value, 0)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Args:
            key: Dot-separated key path (e.g., "fsaccess.watch.poll_interval_ms")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        with self._lock:
            for source in sorted(self._config.keys(), key=lambda s: s.value, reverse=True):
                value = self._get_nested(self._config[source], key)
                if value is not None:
                    return value

            return default

    def section(self, name: str) -> Dict[str, Any]:
        """Merged view of one ``fsaccess.<name>`` section."""
        merged = self.get_all().get(ConfigKey.ROOT, {})
        return merged.get(name, {})

    def _get_nested(self, config: Dict[str, Any], key: str) -> Optional[Any]:
        current: Any = config
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current

    def set(self, key: str, value: Any, source: ConfigSource = ConfigSource.RUNTIME) -> None:
        """Set configuration value.

        Args:
            key: Dot-separated key path
            value: Value to set
            source: Configuration source level
        """
        with self._lock:
            current = self._config.setdefault(source, {})
            parts = key.split(".")
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        """Get merged configuration from all sources."""
        with self._lock:
            merged: Dict[str, Any] = {}
            for source in sorted(self._config.keys(), key=lambda s: s.value):
                merged = self._deep_merge(merged, self._config[source])
            return merged

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def validate_schema(self, schema: Dict[str, Any]) -> bool:
        """Validate configuration against a type schema.

        Args:
            schema: Nested dictionary of key -> expected type

        Returns:
            True if valid

        Raises:
            ConfigError: If validation fails
        """
        return self._validate_dict(self.get_all(), schema)

    def _validate_dict(self, config: Dict[str, Any], schema: Dict[str, Any]) -> bool:
        for key, expected_type in schema.items():
            if key not in config:
                continue  # Optional fields

            value = config[key]

            if isinstance(expected_type, dict):
                if not isinstance(value, dict):
                    raise ConfigError(f"Expected dict for {key}, got {type(value).__name__}")
                self._validate_dict(value, expected_type)
            elif isinstance(expected_type, type):
                if not isinstance(value, expected_type):
                    raise ConfigError(
                        f"Expected {expected_type.__name__} for {key}, "
                        f"got {type(value).__name__}"
                    )

        return True

    def clear(self, source: Optional[ConfigSource] = None) -> None:
        """Clear configuration.

        Args:
            source: Specific source to clear, or None for all except defaults
        """
        with self._lock:
            if source:
                if source in self._config and source != ConfigSource.COMPILED_DEFAULTS:
                    del self._config[source]
            else:
                for s in [s for s in self._config if s != ConfigSource.COMPILED_DEFAULTS]:
                    del self._config[s]

