"""
Configuration and parameter loading using Pydantic.

This module provides centralized configuration management for the entire application.
All parameters are loaded from YAML and validated using Pydantic models.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hrv_snapshot.utils.exceptions import ConfigurationError


class ProcessingConfig(BaseModel):
    """Refresh cycle configuration."""

    timezone: str = "UTC"
    retention_days: int = Field(30, gt=0)


class AppleHealthConfig(BaseModel):
    """Apple Health export source configuration."""

    export_path: str | None = None


class SourcesConfig(BaseModel):
    """Metric source configuration."""

    apple_health: AppleHealthConfig = Field(default_factory=AppleHealthConfig)


class StorageConfig(BaseModel):
    """Durable key-value store configuration."""

    path: str
    hrv_history_key: str = "hrvHistory"


class DisplayConfig(BaseModel):
    """Per-metric visibility toggles used when printing a snapshot."""

    show_hrv: bool = True
    show_resting_hr: bool = True
    show_sleep: bool = True
    show_mindful: bool = True
    show_steps: bool = True
    show_energy: bool = True


class OutputFilesConfig(BaseModel):
    """Output file names configuration."""

    history_csv: str = "history.csv"
    history_parquet: str = "history.parquet"
    daily_csv: str = "daily.csv"


class ParquetConfig(BaseModel):
    """Parquet output configuration."""

    compression: str = "snappy"
    engine: str = "pyarrow"


class OutputConfig(BaseModel):
    """Output configuration."""

    dir: str
    files: OutputFilesConfig = Field(default_factory=OutputFilesConfig)
    formats: list[str] = Field(default_factory=lambda: ["csv"])
    parquet: ParquetConfig = Field(default_factory=ParquetConfig)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    console: bool = True


class AppConfig(BaseSettings):
    """Main application configuration."""

    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    storage: StorageConfig
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    output: OutputConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(env_prefix="HRV_", case_sensitive=False)


class ParameterLoader:
    """
    Centralized parameter loader for the application.

    Loads and validates configuration from YAML files using Pydantic models.
    Provides type-safe access to all configuration parameters.
    """

    def __init__(self, config_path: str = "config/config.yaml") -> None:
        """
        Initialize parameter loader.

        Args:
            config_path: Path to the YAML configuration file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        self.config_path = Path(config_path)
        self.config: AppConfig
        self._load_config()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f) or {}

            self.config = AppConfig(**config_dict)

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def get_processing_config(self) -> ProcessingConfig:
        """Get refresh cycle configuration."""
        return self.config.processing

    def get_sources_config(self) -> SourcesConfig:
        """Get metric source configuration."""
        return self.config.sources

    def get_storage_config(self) -> StorageConfig:
        """Get durable store configuration."""
        return self.config.storage

    def get_display_config(self) -> DisplayConfig:
        """Get display configuration."""
        return self.config.display

    def get_output_config(self) -> OutputConfig:
        """Get output configuration."""
        return self.config.output

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self.config.logging

    def get_raw_config(self) -> dict[str, Any]:
        """
        Get raw configuration dictionary.

        Returns:
            Dictionary representation of the configuration.
        """
        return self.config.model_dump()
