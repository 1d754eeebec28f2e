"""Report service facade consumed by transport and CLI surfaces.

One explicitly constructed `ReportService` owns the scheduler, cache and
background loops of a process. `service_start` rebuilds the queue from the
ledger and starts the loops; `service_shutdown` stops them, drains running
executions and flushes the cache to durable storage.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime

from report_runner.cache import ReportResultCache
from report_runner.config import config_get_logger
from report_runner.db import ReportRequestLedgerPort
from report_runner.domain import (
    NotFoundError,
    RenderingMode,
    Report,
    ReportRequest,
    ReportRequestStatus,
    ReportRunnerError,
    SavedReportRecord,
    domain_validate_request_uuid,
    domain_validate_status_transition,
)
from report_runner.jobs import (
    PeriodicTickLoop,
    ReportExecutionEngine,
    ReportReader,
    ReportRendererRegistry,
    ReportRetentionSweeper,
    ReportScheduler,
    RetentionSweepResult,
)
from report_runner.storage import ArtifactStorePort

logger = config_get_logger(__name__)


@dataclass(frozen=True)
class ReportServiceConfig:
    """Runtime policy values for the report service.

    Attributes:
        max_cached_reports: Cache size kept after each sweep.
        delete_reports_age_hours: Retention age for unsaved terminal requests; zero disables.
        execution_timeout_seconds: Optional processing timeout.
        dispatch_interval_seconds: Dispatcher loop cadence.
        sweep_interval_seconds: Retention loop cadence.
    """

    max_cached_reports: int = 10
    delete_reports_age_hours: int = 72
    execution_timeout_seconds: float | None = None
    dispatch_interval_seconds: float = 5.0
    sweep_interval_seconds: float = 300.0


@dataclass(frozen=True)
class ReportRequestState:
    """Status view of one request including its queue position.

    Attributes:
        request: Ledger record.
        position_in_queue: Zero-based position, or None when not pending.
    """

    request: ReportRequest
    position_in_queue: int | None


class ReportService:
    """Facade over scheduling, execution, reads and retention."""

    def __init__(
        self,
        ledger: ReportRequestLedgerPort,
        artifact_store: ArtifactStorePort,
        cache: ReportResultCache,
        engine: ReportExecutionEngine,
        scheduler: ReportScheduler,
        sweeper: ReportRetentionSweeper,
        reader: ReportReader,
        renderer_registry: ReportRendererRegistry,
        config: ReportServiceConfig | None = None,
    ):
        """Initialize report service.

        Args:
            ledger: Request ledger.
            artifact_store: Durable artifact storage.
            cache: Completed-report cache.
            engine: Execution engine.
            scheduler: Queue and worker pool owner.
            sweeper: Retention sweeper.
            reader: Artifact read composition.
            renderer_registry: Renderer lookup used to validate submitted modes.
            config: Runtime policy values.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies are missing.
        """

        if ledger is None:
            raise ValueError("ledger must not be None")
        if scheduler is None:
            raise ValueError("scheduler must not be None")

        self._ledger = ledger
        self._artifact_store = artifact_store
        self._cache = cache
        self._engine = engine
        self._scheduler = scheduler
        self._sweeper = sweeper
        self._reader = reader
        self._renderer_registry = renderer_registry
        self._config = config or ReportServiceConfig()
        self._dispatch_loop = PeriodicTickLoop(
            name="dispatcher",
            tick_callback=self.service_dispatch_next,
            interval_seconds=self._config.dispatch_interval_seconds,
        )
        self._sweep_loop = PeriodicTickLoop(
            name="retention",
            tick_callback=self.service_sweep,
            interval_seconds=self._config.sweep_interval_seconds,
        )

    def service_start(self, start_loops: bool = True) -> list[str]:
        """Recover pending requests and start background loops.

        Args:
            start_loops: Whether to start dispatcher and retention threads.

        Returns:
            list[str]: Uuids requeued by recovery.

        Raises:
            RuntimeError: Raised when ledger access fails.
        """

        requeued_uuids = self._scheduler.scheduler_recover()
        if start_loops:
            self._dispatch_loop.loop_start()
            self._sweep_loop.loop_start()
        logger.info("report_service_started", requeued=len(requeued_uuids), loops=start_loops)
        return requeued_uuids

    def service_shutdown(self) -> None:
        """Stop loops, drain running executions and flush the cache."""

        self._dispatch_loop.loop_stop()
        self._sweep_loop.loop_stop()
        self._scheduler.scheduler_shutdown(wait_for_completion=True)
        persisted_uuids, evicted_uuids = self._sweeper.retention_persist_cached_reports(
            self._config.max_cached_reports
        )
        logger.info("report_service_stopped", persisted=len(persisted_uuids), evicted=len(evicted_uuids))

    def service_queue_report(self, request: ReportRequest) -> str:
        """Submit one request for asynchronous execution and return its uuid."""

        self._service_validate_rendering_mode(request.rendering_mode)
        return self._scheduler.scheduler_enqueue(request)

    def service_run_report(self, request: ReportRequest) -> Report:
        """Execute one request inline and return the completed report.

        Args:
            request: Request to run.

        Returns:
            Report: Completed report.

        Raises:
            EvaluationError: Raised when evaluation fails.
            RenderError: Raised when rendering fails.
            ProcessorError: Raised when a mandatory processor fails.
        """

        self._service_validate_rendering_mode(request.rendering_mode)
        return self._scheduler.scheduler_run_synchronously(request)

    def service_position_in_queue(self, uuid: str) -> int | None:
        return self._scheduler.scheduler_position_in_queue(uuid)

    def service_dispatch_next(self, max_concurrent: int | None = None) -> list[ReportRequest]:
        return self._scheduler.scheduler_dispatch_next(max_concurrent=max_concurrent)

    def service_wait_for_idle(self, timeout_seconds: float | None = None) -> bool:
        return self._scheduler.scheduler_wait_for_idle(timeout_seconds=timeout_seconds)

    def service_get_request(self, uuid: str) -> ReportRequest:
        """Return one ledger record.

        Args:
            uuid: Request identity.

        Returns:
            ReportRequest: Ledger record.

        Raises:
            ValueError: Raised when uuid is malformed.
            NotFoundError: Raised when the uuid is unknown.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        request = self._ledger.db_report_request_get_by_uuid(normalized_uuid)
        if request is None:
            raise NotFoundError(f"report request {normalized_uuid} not found", error_code="REPORT_REQUEST_NOT_FOUND")
        return request

    def service_get_request_state(self, uuid: str) -> ReportRequestState:
        request = self.service_get_request(uuid)
        return ReportRequestState(request=request, position_in_queue=self.service_position_in_queue(request.uuid))

    def service_list_requests(
        self,
        definition_ref: str | None = None,
        requested_on_or_after: datetime | None = None,
        requested_on_or_before: datetime | None = None,
        statuses: Collection[ReportRequestStatus] | None = None,
        most_recent: int | None = None,
    ) -> list[ReportRequest]:
        """Return ledger requests matching optional filters, newest first."""

        return self._ledger.db_report_request_list(
            definition_ref=definition_ref,
            requested_on_or_after=requested_on_or_after,
            requested_on_or_before=requested_on_or_before,
            statuses=statuses,
            most_recent=most_recent,
        )

    def service_load_data(self, uuid: str) -> bytes | None:
        return self._reader.reader_load_data(uuid)

    def service_load_output(self, uuid: str) -> bytes | None:
        return self._reader.reader_load_output(uuid)

    def service_load_log(self, uuid: str) -> list[str] | None:
        return self._reader.reader_load_log(uuid)

    def service_load_error(self, uuid: str) -> str | None:
        return self._reader.reader_load_error(uuid)

    def service_load_report(self, uuid: str) -> SavedReportRecord | None:
        return self._reader.reader_load_report(uuid)

    def service_save_report(self, uuid: str, description: str | None = None) -> SavedReportRecord:
        """Mark a completed report as permanent.

        Args:
            uuid: Request identity.
            description: Optional save description.

        Returns:
            SavedReportRecord: Save record.

        Raises:
            NotFoundError: Raised when the uuid is unknown.
            ReportRunnerError: Raised when the request is not completed.
        """

        request = self.service_get_request(uuid)
        if request.status != ReportRequestStatus.COMPLETED:
            raise ReportRunnerError(
                f"report request {request.uuid} is not completed (status={request.status.value})",
                error_code="REPORT_REQUEST_NOT_COMPLETED",
            )

        cached_report = self._cache.cache_get(request.uuid)
        if cached_report is not None:
            self._artifact_store.storage_persist_report(cached_report)
        saved_record = self._ledger.db_saved_report_save(request.uuid, description)
        logger.info("report_saved", uuid=request.uuid)
        return saved_record

    def service_delete_request(self, uuid: str) -> ReportRequest:
        """Delete one request: mark it `DELETED` and drop its queue slot, cache entry and artifacts.

        Args:
            uuid: Request identity.

        Returns:
            ReportRequest: Updated ledger record.

        Raises:
            NotFoundError: Raised when the uuid is unknown.
            InvalidStatusTransitionError: Raised when the request is processing.
        """

        request = self.service_get_request(uuid)
        deleted_request = self._ledger.db_report_request_transition(request.uuid, ReportRequestStatus.DELETED)
        if deleted_request is None:
            current_request = self.service_get_request(request.uuid)
            if current_request.status != ReportRequestStatus.DELETED:
                domain_validate_status_transition(current_request.status, ReportRequestStatus.DELETED)
            deleted_request = current_request

        self._scheduler.scheduler_remove(request.uuid)
        self._cache.cache_remove(request.uuid)
        self._ledger.db_saved_report_delete(request.uuid)
        self._artifact_store.storage_purge(request.uuid)
        logger.info("report_request_deleted", uuid=request.uuid)
        return deleted_request

    def service_log_report_message(self, uuid: str, message: str, level: str = "INFO") -> None:
        """Append one message to the request `log` artifact.

        Raises:
            NotFoundError: Raised when the uuid is unknown.
            ValueError: Raised when message is blank.
        """

        if not message or not message.strip():
            raise ValueError("message must not be blank")
        request = self.service_get_request(uuid)
        self._engine.engine_log(request.uuid, message.strip(), level=level)

    def service_cached_reports(self) -> dict[str, Report]:
        return self._cache.cache_all()

    def service_rendering_modes(self) -> list[RenderingMode]:
        return self._renderer_registry.registry_rendering_modes()

    def service_sweep(self) -> RetentionSweepResult:
        """Run one combined retention sweep with configured policy values."""

        sweep_result = self._sweeper.retention_sweep(
            max_cache_size=self._config.max_cached_reports,
            max_age_hours=self._config.delete_reports_age_hours,
            timeout_seconds=self._config.execution_timeout_seconds,
        )
        logger.info(
            "report_retention_sweep_completed",
            timed_out=len(sweep_result.timed_out_uuids),
            persisted=len(sweep_result.persisted_uuids),
            evicted=len(sweep_result.evicted_uuids),
            deleted=len(sweep_result.deleted_uuids),
        )
        return sweep_result

    def service_loop_health(self) -> list[dict[str, object]]:
        return [self._dispatch_loop.loop_health(), self._sweep_loop.loop_health()]

    def service_runtime_health(self) -> dict[str, object]:
        """Return queue, worker, cache and loop state for operational checks."""

        return {
            "queued": self._scheduler.scheduler_queued_count(),
            "in_flight": self._scheduler.scheduler_in_flight_count(),
            "max_concurrent": self._scheduler.max_concurrent_executions,
            "cached": self._cache.cache_size(),
            "loops": self.service_loop_health(),
        }

    def _service_validate_rendering_mode(self, rendering_mode: RenderingMode) -> None:
        if not rendering_mode.raw:
            self._renderer_registry.registry_get(rendering_mode.renderer_kind)
