"""Configuration package for runtime settings, logging and startup validation."""

from .logging import config_configure_logging, config_get_logger
from .settings import AppSettings, SettingsLoadError, config_load_database_url, config_load_settings

__all__ = [
    "AppSettings",
    "SettingsLoadError",
    "config_configure_logging",
    "config_get_logger",
    "config_load_settings",
    "config_load_database_url",
]
