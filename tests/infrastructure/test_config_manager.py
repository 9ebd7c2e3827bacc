#!/usr/bin/env python3
"""Tests for the layered ConfigManager."""

import pytest
import yaml

from fsaccess.infrastructure.config_manager import ConfigError, ConfigManager, ConfigSource


class TestConfigSource:
    def test_precedence_order(self):
        """Sources are declared from lowest to highest precedence."""
        values = [source.value for source in ConfigSource]
        assert values == sorted(values)
        assert ConfigSource.COMPILED_DEFAULTS.value == 1
        assert ConfigSource.RUNTIME.value == 6


class TestDefaults:
    def test_compiled_defaults(self):
        config = ConfigManager(load_environment=False)
        assert config.get("fsaccess.workers.max_workers") == 4
        assert config.get("fsaccess.watch.poll_interval_ms") == 5007
        assert config.get("fsaccess.watch.persistent") is True
        assert config.get("fsaccess.files.file_mode") == 0o666
        assert config.get("fsaccess.files.dir_mode") == 0o777

    def test_missing_key_returns_default(self):
        config = ConfigManager(load_environment=False)
        assert config.get("fsaccess.nope", "fallback") == "fallback"

    def test_section(self):
        config = ConfigManager(load_environment=False)
        assert config.section("watch")["recursive"] is False
        assert config.section("missing") == {}


class TestLoadFile:
    def test_load_file(self, config_file):
        config = ConfigManager(config_file=str(config_file), load_environment=False)
        assert config.get("fsaccess.workers.max_workers") == 2
        assert config.get("fsaccess.watch.poll_interval_ms") == 50
        # Untouched keys still come from the defaults
        assert config.get("fsaccess.logging.format") is not None

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError, match="not found"):
            ConfigManager(config_file=str(temp_dir / "absent.yaml"), load_environment=False)

    def test_invalid_yaml(self, temp_dir):
        path = temp_dir / "broken.yaml"
        path.write_text("fsaccess: [unclosed")
        with pytest.raises(ConfigError, match="YAML parse error"):
            ConfigManager(load_environment=False).load_file(str(path))

    def test_not_a_mapping(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="Invalid config format"):
            ConfigManager(load_environment=False).load_file(str(path))

    def test_invalid_values(self, temp_dir):
        path = temp_dir / "bad.yaml"
        path.write_text(yaml.dump({"fsaccess": {"workers": {"max_workers": 0}}}))
        with pytest.raises(ConfigError, match="Invalid configuration"):
            ConfigManager(load_environment=False).load_file(str(path))


class TestEnvironment:
    def test_nested_variables(self, monkeypatch):
        monkeypatch.setenv("FSACCESS_WORKERS__MAX_WORKERS", "8")
        monkeypatch.setenv("FSACCESS_WATCH__RECURSIVE", "true")
        monkeypatch.setenv("FSACCESS_LOGGING__LEVEL", "DEBUG")

        config = ConfigManager()

        assert config.get("fsaccess.workers.max_workers") == 8
        assert config.get("fsaccess.watch.recursive") is True
        assert config.get("fsaccess.logging.level") == "DEBUG"

    def test_environment_overrides_file(self, monkeypatch, config_file):
        monkeypatch.setenv("FSACCESS_WATCH__POLL_INTERVAL_MS", "250")
        config = ConfigManager(config_file=str(config_file))
        assert config.get("fsaccess.watch.poll_interval_ms") == 250

    def test_parse_env_value(self):
        config = ConfigManager(load_environment=False)
        assert config._parse_env_value("yes") is True
        assert config._parse_env_value("False") is False
        assert config._parse_env_value("0o644") == 0o644
        assert config._parse_env_value("1.5") == 1.5
        assert config._parse_env_value("text") == "text"

    def test_malformed_names_ignored(self, monkeypatch):
        monkeypatch.setenv("FSACCESS_WATCH____RECURSIVE", "true")
        config = ConfigManager()
        assert config.get("fsaccess.watch.recursive") is False

    def test_invalid_value_is_rejected(self, monkeypatch):
        monkeypatch.setenv("FSACCESS_WORKERS__MAX_WORKERS", "lots")
        with pytest.raises(ConfigError, match="environment"):
            ConfigManager()

    def test_invalid_log_level_is_rejected(self, monkeypatch):
        monkeypatch.setenv("FSACCESS_LOGGING__LEVEL", "verbose")
        with pytest.raises(ConfigError, match="logging.level"):
            ConfigManager()


class TestRuntimeUpdates:
    def test_set_overrides_everything(self, config_file):
        config = ConfigManager(config_file=str(config_file), load_environment=False)
        config.set("fsaccess.workers.max_workers", 16)
        assert config.get("fsaccess.workers.max_workers") == 16

    def test_set_false_is_returned(self):
        config = ConfigManager(load_environment=False)
        config.set("fsaccess.watch.persistent", False)
        assert config.get("fsaccess.watch.persistent") is False

    def test_load_dict_and_clear(self):
        config = ConfigManager(load_environment=False)
        config.load_dict({"fsaccess": {"workers": {"max_workers": 3}}}, ConfigSource.CLI_ARGS)
        assert config.get("fsaccess.workers.max_workers") == 3

        config.clear(ConfigSource.CLI_ARGS)
        assert config.get("fsaccess.workers.max_workers") == 4

    def test_clear_keeps_defaults(self):
        config = ConfigManager(load_environment=False)
        config.set("fsaccess.workers.max_workers", 9)
        config.clear()
        assert config.get("fsaccess.workers.max_workers") == 4

    def test_validate_schema(self):
        config = ConfigManager(load_environment=False)
        assert config.validate_schema({"fsaccess": {"workers": {"max_workers": int}}})

        config.set("fsaccess.workers.max_workers", "many")
        with pytest.raises(ConfigError):
            config.validate_schema({"fsaccess": {"workers": {"max_workers": int}}})

