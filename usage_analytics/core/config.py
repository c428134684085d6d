"""Configuration management."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HISTORY_LIMIT = 500


class StorageConfig(BaseModel):
    """Usage analytics storage configuration."""

    config_dir: str = Field(
        default="~/.config/usage-analytics",
        description="Per-user directory holding the analytics documents",
    )
    history_file: str = Field(default="history.json", description="Recent history document")
    aggregate_file: str = Field(default="aggregate.json", description="Cumulative aggregate")
    history_limit: int = Field(
        default=DEFAULT_HISTORY_LIMIT,
        ge=1,
        description="Maximum number of events kept in the recent history window",
    )
    ingest_queue_size: int = Field(
        default=0,
        ge=0,
        description="Maximum pending events in the ingestion queue (0 = unbounded)",
    )

    @property
    def directory(self) -> Path:
        """Configured directory with ``~`` expanded."""
        return Path(self.config_dir).expanduser()

    @property
    def history_path(self) -> Path:
        return self.directory / self.history_file

    @property
    def aggregate_path(self) -> Path:
        return self.directory / self.aggregate_file


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = Field(default="usage-analytics", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")

    # Server
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8317, description="Server port")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # Storage
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description="Analytics storage configuration"
    )

    # Configuration file path
    config_file: str = Field(
        default="config/main.yaml",
        description="Path to configuration file",
    )

    model_config = SettingsConfigDict(
        env_prefix="UA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    def load_yaml_config(self) -> dict[str, Any]:
        """
        Load configuration from YAML file.

        Returns:
            Configuration dictionary
        """
        config_path = Path(self.config_file)
        if not config_path.exists():
            return {}

        with open(config_path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def merge_yaml_config(self) -> None:
        """Merge YAML configuration into settings."""
        yaml_config = self.load_yaml_config()

        for key, value in yaml_config.items():
            if hasattr(self, key):
                if key == "storage" and isinstance(value, dict):
                    self.storage = StorageConfig(**value)
                else:
                    setattr(self, key, value)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Application settings
    """
    settings = Settings()

    # Merge YAML config if file exists
    if os.path.exists(settings.config_file):
        settings.merge_yaml_config()

    return settings
