"""Application configuration settings.

This module provides the AppConfig class and settings singleton.
"""

from pathlib import Path
from typing import Literal

import structlog
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from host_metrics.config.env_loader import Environment, get_environment, load_env_files
from host_metrics.config.validators import (
    resolve_path,
    validate_interval_bounds,
    validate_log_format,
    validate_log_level,
)
from host_metrics.device import DeviceClass
from host_metrics.telemetry.logger import configure_logging

log = structlog.get_logger(__name__)


class AppConfig(BaseSettings):
    """Unified configuration for the metrics collection engine.

    Loads configuration from environment variables (``METRICS_`` prefix),
    .env files and defaults. Validates all values using Pydantic.
    """

    model_config = SettingsConfigDict(
        env_prefix="METRICS_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )

    # Telemetry
    log_dir: Path | None = Field(
        default=None, description="Directory for JSON logs (console only when unset)"
    )
    log_level: str = Field(
        default="INFO",
        alias="APP_LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="console",
        alias="APP_LOG_FORMAT",
        description="Console log format (json or console); the file is always JSON",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        return validate_log_format(v)

    @field_validator("log_dir", "device_profiles_path", mode="before")
    @classmethod
    def resolve_paths(cls, v: Path | str | None) -> Path | None:
        """Resolve relative paths to absolute."""
        return resolve_path(v)

    # Device
    device_class: DeviceClass = Field(
        default=DeviceClass.DESKTOP, description="Device class hint (mobile, tv, desktop)"
    )
    device_profiles_path: Path | None = Field(
        default=None, description="Custom device profile YAML (packaged defaults when unset)"
    )

    # Polling
    poll_interval_ms: int = Field(
        default=800, gt=0, description="User-requested baseline polling interval"
    )
    min_poll_interval_ms: int = Field(default=500, gt=0, description="Fastest allowed cadence")
    max_poll_interval_ms: int = Field(default=10_000, gt=0, description="Slowest allowed cadence")

    # Adaptive polling
    adaptive_polling: Literal["auto", "always", "never"] = Field(
        default="auto",
        description="auto: adapt on TV-class devices or low battery; always; never",
    )
    adaptive_initial_delay_seconds: float = Field(
        default=30.0, ge=0, description="Delay before the first adaptation check"
    )
    adaptive_check_interval_seconds: float = Field(
        default=10.0, gt=0, description="Time between adaptation checks"
    )
    adaptive_backoff_seconds: float = Field(
        default=30.0, gt=0, description="Retry delay after a failed adaptation check"
    )
    memory_pressure_floor_mb: int = Field(
        default=100, ge=0, description="Available memory below this slows polling"
    )

    # CPU
    high_cpu_threshold_percent: float = Field(
        default=80.0, ge=0, le=100, description="Overall CPU usage counted as high load"
    )
    high_load_consecutive_samples: int = Field(
        default=3, ge=0, description="High samples that must be exceeded to flag sustained load"
    )
    cpu_first_read_delay_seconds: float = Field(
        default=0.1, ge=0, description="Delay between the two reads of the first CPU sample"
    )
    static_info_ttl_ms: int = Field(
        default=30_000, ge=0, description="Cache TTL for CPU frequency and temperature"
    )

    # GPU
    gpu_availability_ttl_ms: int = Field(
        default=60_000, ge=0, description="How long a GPU availability probe stays valid"
    )

    # Processes
    top_process_count: int = Field(default=5, ge=0, description="Processes in the ranking")
    process_min_memory_mb: int = Field(
        default=10, ge=0, description="Processes at or below this footprint are ignored"
    )
    process_cache_ttl_ms: int = Field(default=1000, ge=0, description="Process ranking TTL")
    process_baseline_cap: int = Field(
        default=4096, ge=1, description="Maximum per-process CPU baselines kept"
    )

    @model_validator(mode="after")
    def check_interval_band(self) -> "AppConfig":
        """Validate the polling band."""
        validate_interval_bounds(self.min_poll_interval_ms, self.max_poll_interval_ms)
        return self


_settings: AppConfig | None = None


def load_app_config() -> AppConfig:
    """Load and validate application configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates AppConfig instance (reads from environment variables)
    3. Validates all values using Pydantic
    4. Reconfigures logging from the loaded log settings

    Returns:
        Validated AppConfig instance.

    Raises:
        ValidationError: If configuration validation fails.
    """
    log.info("loading_app_config", environment=get_environment().value)

    load_env_files()

    try:
        config = AppConfig()
    except Exception as e:
        log.error("app_config_load_failed", error=str(e), error_type=type(e).__name__)
        raise

    configure_logging(config)

    log.info(
        "app_config_loaded",
        environment=config.environment.value,
        device_class=config.device_class.value,
        poll_interval_ms=config.poll_interval_ms,
        adaptive_polling=config.adaptive_polling,
        log_level=config.log_level,
    )
    return config


def get_settings() -> AppConfig:
    """Get the application settings singleton.

    Returns:
        AppConfig instance (singleton pattern).
    """
    global _settings
    if _settings is None:
        _settings = load_app_config()
    return _settings
