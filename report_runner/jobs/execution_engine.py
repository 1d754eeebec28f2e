"""Report execution engine: evaluate, render, post-process, persist.

The engine owns one claimed request from `PROCESSING` to a terminal status.
On the worker path it never raises for evaluation, rendering or processing
faults: they are written to the `error` and `log` artifacts and the request
is moved to `FAILED`. Callers that need typed failures (synchronous runs)
inspect `ReportExecutionResult.error`.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from report_runner.cache import ReportResultCache
from report_runner.config import config_get_logger
from report_runner.db import ReportRequestLedgerPort
from report_runner.domain import (
    CapacityError,
    EvaluationError,
    ProcessorError,
    RenderError,
    Report,
    ReportArtifactKind,
    ReportProcessorConfiguration,
    ReportRequest,
    ReportRequestStatus,
    ReportRunnerError,
    domain_build_log_line,
    domain_encode_report_data,
    domain_utc_now,
)
from report_runner.storage import ArtifactStorePort

from .interfaces import ReportEvaluatorPort, ReportExecutionResult
from .processing import ReportProcessorRegistry
from .rendering import ReportRendererRegistry

logger = config_get_logger(__name__)


class ReportExecutionEngine:
    """Execute claimed report requests end to end."""

    def __init__(
        self,
        ledger: ReportRequestLedgerPort,
        artifact_store: ArtifactStorePort,
        cache: ReportResultCache,
        evaluator: ReportEvaluatorPort,
        renderer_registry: ReportRendererRegistry,
        processor_registry: ReportProcessorRegistry | None = None,
        processor_configurations: Sequence[ReportProcessorConfiguration] = (),
        clock: Callable[[], datetime] = domain_utc_now,
    ):
        """Initialize execution engine.

        Args:
            ledger: Request ledger for status transitions.
            artifact_store: Durable artifact stream storage.
            cache: Completed-report cache.
            evaluator: Report definition evaluator.
            renderer_registry: Renderer lookup by kind tag.
            processor_registry: Optional processor lookup by kind tag.
            processor_configurations: Post-processing steps in execution order.
            clock: Timestamp provider.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies are missing or processors are unresolvable.
        """

        if ledger is None:
            raise ValueError("ledger must not be None")
        if artifact_store is None:
            raise ValueError("artifact_store must not be None")
        if cache is None:
            raise ValueError("cache must not be None")
        if evaluator is None:
            raise ValueError("evaluator must not be None")
        if renderer_registry is None:
            raise ValueError("renderer_registry must not be None")
        if processor_configurations and processor_registry is None:
            raise ValueError("processor_registry is required when processors are configured")

        self._ledger = ledger
        self._artifact_store = artifact_store
        self._cache = cache
        self._evaluator = evaluator
        self._renderer_registry = renderer_registry
        self._processor_registry = processor_registry or ReportProcessorRegistry()
        self._processor_configurations = tuple(processor_configurations)
        self._clock = clock

    def engine_execute(self, request: ReportRequest) -> ReportExecutionResult:
        """Run one claimed request to a terminal status.

        Args:
            request: Request already moved to `PROCESSING` by the claim.

        Returns:
            ReportExecutionResult: Final status with report or captured error.

        Raises:
            ValueError: Raised when the request has no uuid.
            RuntimeError: Raised when the ledger cannot record the terminal status.
        """

        if request.uuid is None:
            raise ValueError("report request uuid must be assigned before execution")
        uuid = request.uuid

        self.engine_log(uuid, f"evaluation started for definition={request.definition_ref}")
        try:
            data = self._engine_evaluate(request)
            evaluate_completed_at_utc = self._clock()
            self.engine_log(uuid, "evaluation completed")

            rendered_output: bytes | None = None
            render_completed_at_utc: datetime | None = None
            if not request.rendering_mode.raw:
                rendered_output = self._engine_render(request, data)
                render_completed_at_utc = self._clock()
                self.engine_log(uuid, f"rendering completed with renderer={request.rendering_mode.renderer_kind}")

            report = self._engine_run_processors(Report(request=request, data=data, rendered_output=rendered_output))
            try:
                data_payload = domain_encode_report_data(report.data)
            except (TypeError, ValueError) as error:
                raise EvaluationError(
                    f"evaluated data is not serializable: {error}",
                    error_code="EVALUATION_DATA_NOT_SERIALIZABLE",
                ) from error
            # Streams on disk must match the report that gets cached.
            if report.rendered_output is not None:
                self._artifact_store.storage_write_artifact(uuid, ReportArtifactKind.OUTPUT, report.rendered_output)
            else:
                self._artifact_store.storage_delete_artifact(uuid, ReportArtifactKind.OUTPUT)
            self._artifact_store.storage_write_artifact(uuid, ReportArtifactKind.DATA, data_payload)
        except (ReportRunnerError, OSError) as error:
            return self._engine_fail(request, error)

        timestamps = {"evaluate_completed_at_utc": evaluate_completed_at_utc}
        if render_completed_at_utc is not None:
            timestamps["render_completed_at_utc"] = render_completed_at_utc
        completed_request = self._ledger.db_report_request_transition(
            uuid,
            ReportRequestStatus.COMPLETED,
            timestamps=timestamps,
        )
        if completed_request is None:
            return self._engine_discard_late_completion(request)

        completed_report = Report(
            request=completed_request,
            data=report.data,
            rendered_output=report.rendered_output,
        )
        try:
            self._cache.cache_put(uuid, completed_report, persisted=True)
        except CapacityError as error:
            logger.warning("report_cache_insert_rejected", uuid=uuid, error_code=error.error_code)

        self.engine_log(uuid, "report completed")
        return ReportExecutionResult(
            request=completed_request,
            status=ReportRequestStatus.COMPLETED,
            report=completed_report,
        )

    def engine_log(self, uuid: str, message: str, level: str = "INFO") -> None:
        """Append one line to the request `log` artifact and mirror it to structured logs.

        Args:
            uuid: Request identity.
            message: Log message.
            level: Severity label.

        Returns:
            None: Log line is written as side effect.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        log_line = domain_build_log_line(message, level=level, at_utc=self._clock())
        try:
            self._artifact_store.storage_append_artifact(uuid, ReportArtifactKind.LOG, f"{log_line}\n".encode("utf-8"))
        except OSError:
            logger.exception("report_log_append_failed", uuid=uuid)
        if level.upper() == "ERROR":
            logger.error("report_execution_log", uuid=uuid, message=message)
        elif level.upper() == "WARNING":
            logger.warning("report_execution_log", uuid=uuid, message=message)
        else:
            logger.info("report_execution_log", uuid=uuid, message=message)

    def _engine_evaluate(self, request: ReportRequest) -> Any:
        try:
            return self._evaluator.evaluator_evaluate(request.definition_ref, dict(request.parameters))
        except EvaluationError:
            raise
        except Exception as error:  # pylint: disable=broad-exception-caught
            raise EvaluationError(
                f"evaluation failed: {type(error).__name__}: {error}",
                error_code="EVALUATION_FAILED",
            ) from error

    def _engine_render(self, request: ReportRequest, data: Any) -> bytes:
        renderer = self._renderer_registry.registry_get(request.rendering_mode.renderer_kind)
        try:
            rendered_output = renderer.renderer_render(request.rendering_mode, data)
        except RenderError:
            raise
        except Exception as error:  # pylint: disable=broad-exception-caught
            raise RenderError(
                f"rendering failed: {type(error).__name__}: {error}",
                error_code="RENDER_FAILED",
            ) from error

        if not isinstance(rendered_output, (bytes, bytearray)):
            raise RenderError("renderer must return bytes", error_code="RENDER_CONTRACT_ERROR")
        return bytes(rendered_output)

    def _engine_run_processors(self, report: Report) -> Report:
        """Apply configured processors in order.

        Args:
            report: Report produced by evaluation and rendering.

        Returns:
            Report: Report returned by the last successful processor.

        Raises:
            ProcessorError: Raised when a mandatory processor fails.
        """

        uuid = report.report_uuid
        for configuration in self._processor_configurations:
            try:
                processor = self._processor_registry.registry_get(configuration.processor_kind)
                processed_report = processor.processor_process(configuration, report)
            except Exception as error:  # pylint: disable=broad-exception-caught
                processor_error = (
                    error
                    if isinstance(error, ProcessorError)
                    else ProcessorError(
                        f"processor failed: {type(error).__name__}: {error}",
                        processor_name=configuration.name,
                        error_code="PROCESSOR_FAILED",
                    )
                )
                if configuration.mandatory:
                    if processor_error is error:
                        raise
                    raise processor_error from error
                self.engine_log(
                    uuid,
                    f"optional processor={configuration.name} failed: {processor_error}",
                    level="WARNING",
                )
                continue

            if isinstance(processed_report, Report):
                report = processed_report
            self.engine_log(uuid, f"processor={configuration.name} completed")
        return report

    def _engine_fail(self, request: ReportRequest, error: Exception) -> ReportExecutionResult:
        uuid = request.uuid
        error_text = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        error_payload = f"{type(error).__name__}: {error}\n\n{error_text}".encode("utf-8")
        try:
            self._artifact_store.storage_write_artifact(uuid, ReportArtifactKind.ERROR, error_payload)
            self._artifact_store.storage_delete_artifact(uuid, ReportArtifactKind.OUTPUT)
            self._artifact_store.storage_delete_artifact(uuid, ReportArtifactKind.DATA)
        except OSError:
            logger.exception("report_error_artifact_write_failed", uuid=uuid)

        self.engine_log(uuid, f"report failed: {type(error).__name__}: {error}", level="ERROR")
        failed_request = self._ledger.db_report_request_transition(uuid, ReportRequestStatus.FAILED)
        if failed_request is None:
            failed_request = self._ledger.db_report_request_get_by_uuid(uuid) or request
        return ReportExecutionResult(
            request=failed_request,
            status=ReportRequestStatus.FAILED,
            error=error,
        )

    def _engine_discard_late_completion(self, request: ReportRequest) -> ReportExecutionResult:
        uuid = request.uuid
        current_request = self._ledger.db_report_request_get_by_uuid(uuid)
        current_status = current_request.status if current_request is not None else ReportRequestStatus.DELETED
        if current_request is not None:
            self._artifact_store.storage_delete_artifact(uuid, ReportArtifactKind.OUTPUT)
            self._artifact_store.storage_delete_artifact(uuid, ReportArtifactKind.DATA)
            self.engine_log(uuid, f"late completion discarded; status={current_status.value}", level="WARNING")
        else:
            self._artifact_store.storage_purge(uuid)
            logger.warning("report_completion_discarded", uuid=uuid, reason="request_purged")

        return ReportExecutionResult(
            request=current_request or request,
            status=current_status,
            error=ReportRunnerError(
                f"report request {uuid} is no longer processing (status={current_status.value})",
                error_code="REPORT_COMPLETION_DISCARDED",
            ),
        )
