"""Tests for runtime settings loading, validation and logging configuration."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from report_runner.config import (
    AppSettings,
    SettingsLoadError,
    config_configure_logging,
    config_load_database_url,
    config_load_settings,
)


def test_settings_read_environment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variables override defaults and optional strings are normalized."""

    monkeypatch.setenv("MAX_CACHED_REPORTS", "3")
    monkeypatch.setenv("MAX_CONCURRENT_EXECUTIONS", "4")
    monkeypatch.setenv("EXECUTION_TIMEOUT_SECONDS", "90")
    monkeypatch.setenv("EVALUATION_SERVICE_URL", "   ")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = AppSettings(_env_file=None)

    assert settings.max_cached_reports == 3
    assert settings.max_concurrent_executions == 4
    assert settings.execution_timeout_seconds == 90.0
    assert settings.evaluation_service_url is None
    assert settings.log_level == "DEBUG"
    assert settings.delete_reports_age_hours == 72


def test_settings_reject_inconsistent_bounds() -> None:
    with pytest.raises(ValidationError):
        AppSettings(_env_file=None, max_cached_reports=10, cache_hard_limit=5)
    with pytest.raises(ValidationError):
        AppSettings(_env_file=None, api_default_limit=100, api_max_limit=10)
    with pytest.raises(ValidationError):
        AppSettings(_env_file=None, log_level="verbose")
    with pytest.raises(ValidationError):
        AppSettings(_env_file=None, max_concurrent_executions=0)


def test_config_load_settings_wraps_validation_errors(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APPLICATION_PORT", "0")

    with pytest.raises(SettingsLoadError):
        config_load_settings()


def test_config_load_database_url(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./ledger.db")
    assert config_load_database_url() == "sqlite:///./ledger.db"

    monkeypatch.setenv("DATABASE_URL", "  ")
    with pytest.raises(SettingsLoadError):
        config_load_database_url()


def test_config_configure_logging_sets_root_level() -> None:
    root_logger = logging.getLogger()
    original_handlers = list(root_logger.handlers)
    original_level = root_logger.level
    try:
        config_configure_logging(level="warning", json_format=True)
        assert root_logger.level == logging.WARNING
        assert len(root_logger.handlers) == 1
        with pytest.raises(ValueError):
            config_configure_logging(level="chatty")
    finally:
        root_logger.handlers[:] = original_handlers
        root_logger.setLevel(original_level)
