"""
Configuration management for MCP Config Manager.

Settings come from defaults, optional TOML files and environment variables
(``MCP_CONFIG_MANAGER_*``, plus the plain ``PORT`` and ``DEBUG`` variables
the HTTP server has always honoured).
"""

import os
from pathlib import Path
from typing import Any, List, Optional, Union

import toml
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="File logging level")
    console_level: str = Field(default="INFO", description="Console logging level")
    format_type: str = Field(default="text", description="Log format (text/json)")
    file: Optional[str] = Field(default=None, description="Log file path")
    enable_rich: bool = Field(default=True, description="Enable Rich console output")

    @field_validator("level", "console_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("format_type")
    @classmethod
    def validate_format_type(cls, v: str) -> str:
        """Validate format type."""
        if v not in ["text", "json"]:
            raise ValueError(f"Invalid format type: {v}")
        return v


class StorageConfig(BaseModel):
    """Where the managed JSON files live."""

    data_dir: str = Field(
        default="~/.config/mcp-config-manager",
        description="Directory holding settings, registry and managed configs",
    )
    settings_file: str = Field(default="settings.json")
    registry_file: str = Field(default="mcp_server_registry.json")
    presets_file: str = Field(default="presets.json")
    configs_dir: str = Field(default="configs", description="Managed client files")
    default_max_backups: int = Field(default=10, ge=0)


class HTTPConfig(BaseModel):
    """HTTP adapter configuration."""

    host: str = Field(default="127.0.0.1")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3456", "http://127.0.0.1:3456"]
    )


class Config(BaseSettings):
    """Main configuration class."""

    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("MCP_CONFIG_MANAGER_DEBUG", "DEBUG", "debug"),
        description="Enable debug mode",
    )
    port: int = Field(
        default=3456,
        validation_alias=AliasChoices("MCP_CONFIG_MANAGER_PORT", "PORT", "port"),
        description="HTTP listen port",
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)

    model_config = {
        "env_prefix": "MCP_CONFIG_MANAGER_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "populate_by_name": True,
    }

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v: Any) -> Any:
        """DEBUG is often set to a namespace pattern; treat any non-false value as on."""
        if isinstance(v, str):
            return v.strip().lower() not in {"", "0", "false", "no", "off"}
        return v

    def get_data_dir(self) -> Path:
        """Get data directory path."""
        return Path(os.path.expanduser(self.storage.data_dir))

    def get_settings_path(self) -> Path:
        return self.get_data_dir() / self.storage.settings_file

    def get_registry_path(self) -> Path:
        return self.get_data_dir() / self.storage.registry_file

    def get_presets_path(self) -> Path:
        return self.get_data_dir() / self.storage.presets_file

    def get_configs_dir(self) -> Path:
        return self.get_data_dir() / self.storage.configs_dir

    def get_log_file(self) -> Optional[Path]:
        """Get log file path."""
        if self.logging.file:
            log_path = Path(os.path.expanduser(self.logging.file))
            if not log_path.is_absolute():
                log_path = self.get_data_dir() / log_path
            return log_path
        return None


class ConfigManager:
    """Configuration manager with hierarchical loading."""

    def __init__(self):
        self._config: Optional[Config] = None

    def load_config(
        self,
        config_files: Optional[List[Union[str, Path]]] = None,
        **overrides: Any,
    ) -> Config:
        """
        Load configuration from multiple sources.

        Later files win over earlier ones; keyword overrides win over files.

        Args:
            config_files: List of configuration files to load
            **overrides: Configuration overrides

        Returns:
            Loaded configuration
        """
        if self._config is not None:
            return self._config

        if config_files is None:
            config_files = [
                "~/.config/mcp-config-manager/config.toml",
                "./.mcp-config-manager.toml",
            ]

        config_data = {}

        for config_file in config_files:
            file_path = Path(os.path.expanduser(str(config_file)))
            if file_path.exists():
                try:
                    config_data.update(toml.load(file_path))
                    logger.debug(f"Loaded configuration from {file_path}")
                except (OSError, toml.TomlDecodeError) as e:
                    logger.warning(f"Failed to load config from {file_path}: {e}")

        config_data.update(overrides)

        self._config = Config(**config_data)

        return self._config

    def get_config(self) -> Config:
        """Get current configuration."""
        if self._config is None:
            return self.load_config()
        return self._config

    def reload_config(self, **overrides: Any) -> Config:
        """Reload configuration."""
        self._config = None
        return self.load_config(**overrides)


# Global configuration manager
_config_manager = ConfigManager()

# Convenience functions
load_config = _config_manager.load_config
get_config = _config_manager.get_config
reload_config = _config_manager.reload_config
