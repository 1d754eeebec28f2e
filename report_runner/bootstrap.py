"""Application bootstrap wiring for startup validation and dependency assembly."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import Engine

from report_runner.adapters import CallableReportEvaluator, HttpReportEvaluator, ReportEvaluatorPort
from report_runner.api import create_api_application
from report_runner.cache import ReportResultCache
from report_runner.config import AppSettings, config_configure_logging, config_load_settings
from report_runner.db import SQLAlchemyDatabaseHealthService, SQLAlchemyReportRequestLedger, db_create_engine
from report_runner.domain import ReportProcessorConfiguration
from report_runner.jobs import (
    FILE_EXPORT_PROCESSOR_KIND,
    FileExportReportProcessor,
    ReportExecutionEngine,
    ReportProcessorRegistry,
    ReportReader,
    ReportRequestQueue,
    ReportRetentionSweeper,
    ReportScheduler,
    registry_create_default_renderers,
)
from report_runner.service import ReportService, ReportServiceConfig
from report_runner.storage import FileSystemArtifactStore


def bootstrap_create_evaluator(settings: AppSettings) -> ReportEvaluatorPort:
    """Build the configured report evaluator.

    Args:
        settings: Validated application settings.

    Returns:
        ReportEvaluatorPort: HTTP evaluator when a service URL is configured, otherwise an empty in-process evaluator.

    Raises:
        ValueError: Raised when evaluator configuration is invalid.
    """

    if settings.evaluation_service_url:
        return HttpReportEvaluator(
            base_url=settings.evaluation_service_url,
            request_timeout_seconds=settings.evaluation_request_timeout_seconds,
        )
    return CallableReportEvaluator(definitions={})


def bootstrap_create_report_service(
    settings: AppSettings,
    evaluator: ReportEvaluatorPort | None = None,
    database_engine: Engine | None = None,
) -> ReportService:
    """Assemble the report service and its collaborators.

    Args:
        settings: Validated application settings.
        evaluator: Optional evaluator override; built from settings when omitted.
        database_engine: Optional shared engine; created from settings when omitted.

    Returns:
        ReportService: Fully wired, not yet started service.

    Raises:
        ValueError: Raised when dependency configuration is invalid.
    """

    ledger = SQLAlchemyReportRequestLedger(
        engine=database_engine or db_create_engine(database_url=settings.database_url)
    )
    artifact_store = FileSystemArtifactStore(root_directory=settings.artifact_directory)
    cache = ReportResultCache(artifact_store=artifact_store, hard_limit=settings.cache_hard_limit)
    renderer_registry = registry_create_default_renderers()
    processor_registry = ReportProcessorRegistry([FileExportReportProcessor(default_directory=settings.export_directory)])
    processor_configurations: list[ReportProcessorConfiguration] = []
    if settings.export_directory:
        processor_configurations.append(
            ReportProcessorConfiguration(name="export", processor_kind=FILE_EXPORT_PROCESSOR_KIND)
        )

    execution_engine = ReportExecutionEngine(
        ledger=ledger,
        artifact_store=artifact_store,
        cache=cache,
        evaluator=evaluator or bootstrap_create_evaluator(settings),
        renderer_registry=renderer_registry,
        processor_registry=processor_registry,
        processor_configurations=processor_configurations,
    )
    scheduler = ReportScheduler(
        ledger=ledger,
        queue=ReportRequestQueue(),
        engine=execution_engine,
        max_concurrent_executions=settings.max_concurrent_executions,
    )
    return ReportService(
        ledger=ledger,
        artifact_store=artifact_store,
        cache=cache,
        engine=execution_engine,
        scheduler=scheduler,
        sweeper=ReportRetentionSweeper(ledger=ledger, artifact_store=artifact_store, cache=cache),
        reader=ReportReader(ledger=ledger, artifact_store=artifact_store, cache=cache),
        renderer_registry=renderer_registry,
        config=ReportServiceConfig(
            max_cached_reports=settings.max_cached_reports,
            delete_reports_age_hours=settings.delete_reports_age_hours,
            execution_timeout_seconds=settings.execution_timeout_seconds,
            dispatch_interval_seconds=settings.dispatch_interval_seconds,
            sweep_interval_seconds=settings.sweep_interval_seconds,
        ),
    )


def bootstrap_create_application(settings: AppSettings | None = None) -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Args:
        settings: Optional pre-loaded settings; loaded from environment when omitted.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    config_configure_logging(level=resolved_settings.log_level, json_format=resolved_settings.log_json_format)
    database_engine = db_create_engine(database_url=resolved_settings.database_url)
    report_service = bootstrap_create_report_service(resolved_settings, database_engine=database_engine)

    @asynccontextmanager
    async def bootstrap_lifespan(_application: FastAPI) -> AsyncIterator[None]:
        report_service.service_start()
        try:
            yield
        finally:
            report_service.service_shutdown()

    return create_api_application(
        settings=resolved_settings,
        db_health_service=SQLAlchemyDatabaseHealthService(engine=database_engine),
        report_service=report_service,
        lifespan=bootstrap_lifespan,
    )
