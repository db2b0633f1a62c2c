"""Tests for configuration loading and logging setup."""

import json
import logging

import pytest

from mcp_config_manager.utils.config import Config, ConfigManager
from mcp_config_manager.utils.logging import (
    JSONFormatter, LoggerManager, debug_enabled_from_env
)


class TestConfig:
    """Test Config."""

    def test_defaults(self, home):
        config = Config()

        assert config.port == 3456
        assert config.debug is False
        assert config.storage.registry_file == "mcp_server_registry.json"
        assert config.get_configs_dir() == config.get_data_dir() / "configs"

    def test_port_and_debug_environment(self, home, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("DEBUG", "mcp:*")

        config = Config()

        assert config.port == 8080
        assert config.debug is True

    @pytest.mark.parametrize("value", ["0", "false", "off", ""])
    def test_debug_false_values(self, home, monkeypatch, value):
        monkeypatch.setenv("DEBUG", value)
        assert Config().debug is False

    def test_nested_environment_override(self, home, monkeypatch, tmp_path):
        monkeypatch.setenv("MCP_CONFIG_MANAGER_STORAGE__DATA_DIR", str(tmp_path / "elsewhere"))

        config = Config()

        assert config.get_settings_path() == tmp_path / "elsewhere" / "settings.json"

    def test_relative_log_file_lives_in_data_dir(self, config, data_dir):
        config.logging.file = "logs/manager.log"
        assert config.get_log_file() == data_dir / "logs" / "manager.log"

    def test_toml_files_and_overrides(self, home, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            '[storage]\ndata_dir = "/srv/mcp"\n\n[logging]\nlevel = "WARNING"\n',
            encoding="utf-8",
        )

        manager = ConfigManager()
        config = manager.load_config([config_file, tmp_path / "missing.toml"], port=9000)

        assert config.storage.data_dir == "/srv/mcp"
        assert config.logging.level == "WARNING"
        assert config.port == 9000
        assert manager.get_config() is config

    def test_invalid_toml_is_skipped(self, home, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("[storage\n", encoding="utf-8")

        config = ConfigManager().load_config([config_file])

        assert config.port == 3456

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            Config(logging={"level": "LOUD"})


class TestLogging:
    """Test logging helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), ("*", True), ("", False), ("0", False),
    ])
    def test_debug_enabled_from_env(self, monkeypatch, value, expected):
        monkeypatch.setenv("DEBUG", value)
        assert debug_enabled_from_env() is expected

    def test_json_formatter_includes_extra(self):
        record = logging.LogRecord(
            "mcp_config_manager.test", logging.INFO, __file__, 10, "saved %s", ("x",), None
        )
        record.target = "/tmp/x.json"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "saved x"
        assert entry["target"] == "/tmp/x.json"
        assert entry["level"] == "INFO"

    def test_setup_writes_log_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DEBUG", raising=False)
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "logs" / "manager.log"
        manager = LoggerManager()

        try:
            manager.setup_logging(
                level="DEBUG", console_level="ERROR", log_file=log_file,
                format_type="json", enable_rich=False,
            )
            manager.get_logger("mcp_config_manager.test").info("hello", extra={"client_id": "a"})
            for handler in root.handlers:
                handler.flush()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "hello"
        assert entry["client_id"] == "a"
