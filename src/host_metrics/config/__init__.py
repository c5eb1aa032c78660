"""Unified configuration management for the metrics engine.

This module provides a single source of truth for all configuration,
integrating environment variables, .env files, YAML device profiles and
defaults.
"""

from host_metrics.config.env_loader import Environment, get_environment
from host_metrics.config.loader import ConfigLoadError
from host_metrics.config.profiles import (
    DeviceProfile,
    DeviceProfiles,
    ProfileConfigError,
    load_device_profiles,
)
from host_metrics.config.settings import AppConfig, get_settings, load_app_config

__all__ = [
    # App-level settings
    "AppConfig",
    "get_settings",
    "load_app_config",
    "Environment",
    "get_environment",
    # Device profiles
    "DeviceProfile",
    "DeviceProfiles",
    "load_device_profiles",
    # Exception classes
    "ConfigLoadError",
    "ProfileConfigError",
]
