"""Shared fixtures for ledger-backed report runner tests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import Engine

from report_runner.adapters import CallableReportEvaluator
from report_runner.cache import ReportResultCache
from report_runner.db import SQLAlchemyReportRequestLedger, db_create_engine
from report_runner.domain import ReportProcessorConfiguration
from report_runner.jobs import (
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

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def migration_upgrade_database(database_url: str) -> None:
    """Apply Alembic migrations to one database URL.

    Args:
        database_url: SQLAlchemy database URL.

    Returns:
        None: Schema is created as a side effect.

    Raises:
        RuntimeError: Raised when migration execution fails.
    """

    alembic_config = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    alembic_config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_config, "head")


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return a migrated SQLite database URL inside the test temp directory."""

    url = f"sqlite:///{tmp_path / 'ledger.db'}"
    migration_upgrade_database(url)
    return url


@pytest.fixture
def migrated_engine(database_url: str) -> Engine:
    engine = db_create_engine(database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def ledger(migrated_engine: Engine) -> SQLAlchemyReportRequestLedger:
    return SQLAlchemyReportRequestLedger(engine=migrated_engine)


@pytest.fixture
def artifact_store(tmp_path: Path) -> FileSystemArtifactStore:
    return FileSystemArtifactStore(root_directory=tmp_path / "artifacts")


@dataclass
class ReportRuntime:
    """Fully wired runtime components for one test."""

    ledger: SQLAlchemyReportRequestLedger
    artifact_store: FileSystemArtifactStore
    cache: ReportResultCache
    queue: ReportRequestQueue
    engine: ReportExecutionEngine
    scheduler: ReportScheduler
    sweeper: ReportRetentionSweeper
    reader: ReportReader
    service: ReportService


@pytest.fixture
def build_runtime(
    ledger: SQLAlchemyReportRequestLedger,
    artifact_store: FileSystemArtifactStore,
) -> Callable[..., ReportRuntime]:
    """Return a factory wiring runtime components around in-process definitions."""

    schedulers: list[ReportScheduler] = []

    def _build(
        definitions: dict[str, Callable[[dict[str, Any]], Any]],
        max_concurrent_executions: int = 1,
        max_cached_reports: int = 10,
        cache_hard_limit: int | None = None,
        processor_registry: ReportProcessorRegistry | None = None,
        processor_configurations: tuple[ReportProcessorConfiguration, ...] = (),
        clock: Callable | None = None,
    ) -> ReportRuntime:
        clock_kwargs = {"clock": clock} if clock is not None else {}
        cache = ReportResultCache(artifact_store=artifact_store, hard_limit=cache_hard_limit, **clock_kwargs)
        renderer_registry = registry_create_default_renderers()
        queue = ReportRequestQueue()
        engine = ReportExecutionEngine(
            ledger=ledger,
            artifact_store=artifact_store,
            cache=cache,
            evaluator=CallableReportEvaluator(definitions=definitions),
            renderer_registry=renderer_registry,
            processor_registry=processor_registry,
            processor_configurations=processor_configurations,
            **clock_kwargs,
        )
        scheduler = ReportScheduler(
            ledger=ledger,
            queue=queue,
            engine=engine,
            max_concurrent_executions=max_concurrent_executions,
            **clock_kwargs,
        )
        schedulers.append(scheduler)
        sweeper = ReportRetentionSweeper(ledger=ledger, artifact_store=artifact_store, cache=cache, **clock_kwargs)
        reader = ReportReader(ledger=ledger, artifact_store=artifact_store, cache=cache)
        service = ReportService(
            ledger=ledger,
            artifact_store=artifact_store,
            cache=cache,
            engine=engine,
            scheduler=scheduler,
            sweeper=sweeper,
            reader=reader,
            renderer_registry=renderer_registry,
            config=ReportServiceConfig(max_cached_reports=max_cached_reports, delete_reports_age_hours=24),
        )
        return ReportRuntime(
            ledger=ledger,
            artifact_store=artifact_store,
            cache=cache,
            queue=queue,
            engine=engine,
            scheduler=scheduler,
            sweeper=sweeper,
            reader=reader,
            service=service,
        )

    yield _build

    for scheduler in schedulers:
        scheduler.scheduler_shutdown(wait_for_completion=True)
