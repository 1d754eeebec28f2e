"""Typed runtime settings with dotenv support and startup validation."""

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class AppSettings(BaseSettings):
    """Application settings for API runtime, scheduling and retention.

    Environment variable names map directly to field names in uppercase.
    Example: `max_cached_reports` reads from `MAX_CACHED_REPORTS`.

    Attributes:
        environment_name: Runtime environment label.
        application_host: Host interface for web server binding.
        application_port: Web server port.
        database_url: SQLAlchemy DSN for the request ledger.
        artifact_directory: Root directory for per-request artifact streams.
        max_cached_reports: Number of completed reports kept in memory after a sweep.
        cache_hard_limit: Optional cache size beyond which inserts fail instead of growing.
        max_concurrent_executions: Worker pool size for queued report execution.
        dispatch_interval_seconds: Cadence of the queue dispatcher loop.
        sweep_interval_seconds: Cadence of cache flush and retention sweeps.
        delete_reports_age_hours: Age after which unsaved terminal requests are deleted; 0 disables.
        execution_timeout_seconds: Optional limit after which a processing request is force-failed.
        evaluation_service_url: Optional base URL of the HTTP report evaluation service.
        evaluation_request_timeout_seconds: HTTP timeout for evaluation calls.
        export_directory: Optional directory enabling the file export post-processor.
        log_level: Structured logging level.
        log_json_format: Render logs as JSON when true, console otherwise; auto-detect when unset.
        api_default_limit: Default list endpoint limit.
        api_max_limit: Maximum allowed list endpoint limit.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment_name: str = Field(default="development")
    application_host: str = Field(default="0.0.0.0")
    application_port: int = Field(default=8000, ge=1, le=65535)
    database_url: str = Field(default="sqlite:///./report_runner.db")
    artifact_directory: str = Field(default="./report_artifacts", min_length=1)
    max_cached_reports: int = Field(default=10, ge=0)
    cache_hard_limit: int | None = Field(default=None, ge=1)
    max_concurrent_executions: int = Field(default=1, ge=1)
    dispatch_interval_seconds: float = Field(default=5.0, gt=0)
    sweep_interval_seconds: float = Field(default=300.0, gt=0)
    delete_reports_age_hours: int = Field(default=72, ge=0)
    execution_timeout_seconds: float | None = Field(default=None, gt=0)
    evaluation_service_url: str | None = Field(default=None)
    evaluation_request_timeout_seconds: float = Field(default=300.0, gt=0)
    export_directory: str | None = Field(default=None)
    log_level: str = Field(default="INFO")
    log_json_format: bool | None = Field(default=None)
    api_default_limit: int = Field(default=50, ge=1)
    api_max_limit: int = Field(default=200, ge=1)

    @field_validator("artifact_directory")
    @classmethod
    def _validate_non_empty_string(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError("value must not be blank")
        return stripped_value

    @field_validator("evaluation_service_url", "export_directory")
    @classmethod
    def _validate_optional_string(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped_value = value.strip()
        return stripped_value or None

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized_value = value.strip().upper()
        if normalized_value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return normalized_value

    @field_validator("cache_hard_limit")
    @classmethod
    def _validate_cache_bounds(cls, value: int | None, info) -> int | None:
        if value is None:
            return None
        max_cached_reports = int(info.data.get("max_cached_reports", 10))
        if value < max_cached_reports:
            raise ValueError("cache_hard_limit must be greater than or equal to max_cached_reports")
        return value

    @field_validator("api_max_limit")
    @classmethod
    def _validate_limit_bounds(cls, value: int, info) -> int:
        default_limit = info.data.get("api_default_limit", 50)
        if value < default_limit:
            raise ValueError("api_max_limit must be greater than or equal to api_default_limit")
        return value


class DatabaseUrlSettings(BaseSettings):
    """Minimal settings model used by migration tooling.

    Attributes:
        database_url: SQLAlchemy DSN for schema migrations.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    database_url: str = Field(default="sqlite:///./report_runner.db")


def config_load_settings() -> AppSettings:
    """Load and validate runtime settings from environment and dotenv.

    Returns:
        AppSettings: Validated runtime settings object.

    Raises:
        SettingsLoadError: Raised when required settings are missing or invalid.
    """

    try:
        return AppSettings()
    except ValidationError as error:
        raise SettingsLoadError(
            f"Startup configuration validation failed. Update .env or environment variables. Details: {error}"
        ) from error


def config_load_database_url() -> str:
    """Load and validate only the database URL setting.

    Returns:
        str: Non-empty database URL for migration and db tooling.

    Raises:
        SettingsLoadError: Raised when database URL cannot be loaded.
    """

    try:
        database_settings = DatabaseUrlSettings()
    except ValidationError as error:
        raise SettingsLoadError(
            f"Database URL configuration validation failed. Update .env or environment variables. Details: {error}"
        ) from error

    database_url = str(database_settings.database_url).strip()
    if not database_url:
        raise SettingsLoadError("Database URL configuration validation failed. DATABASE_URL must not be blank.")
    return database_url
