"""Tests for report execution stages, failure capture and post-processing."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

from report_runner.domain import (
    ProcessorError,
    RenderError,
    RenderingMode,
    Report,
    ReportArtifactKind,
    ReportProcessorConfiguration,
    ReportRequest,
    ReportRequestStatus,
    domain_new_request_uuid,
)
from report_runner.jobs import FileExportReportProcessor, ReportProcessorRegistry


def _claim_request(runtime, definition_ref: str, rendering_mode: RenderingMode) -> ReportRequest:
    saved_request, _ = runtime.ledger.db_report_request_save(
        ReportRequest(
            definition_ref=definition_ref,
            rendering_mode=rendering_mode,
            parameters={"month": "2026-09"},
            uuid=domain_new_request_uuid(),
        )
    )
    return runtime.ledger.db_report_request_transition(saved_request.uuid, ReportRequestStatus.PROCESSING)


def _evaluate_rows(parameters: dict[str, Any]) -> list[dict[str, Any]]:
    return [{"month": parameters["month"], "amount": 10}]


class _FailingProcessor:
    """Processor double that always fails."""

    def processor_kind(self) -> str:
        return "failing"

    def processor_process(self, configuration: ReportProcessorConfiguration, report: Report) -> Report:
        raise ProcessorError("delivery target rejected report", processor_name=configuration.name)


class _FooterProcessor:
    """Processor double appending a footer to the rendered output."""

    def processor_kind(self) -> str:
        return "footer"

    def processor_process(self, configuration: ReportProcessorConfiguration, report: Report) -> Report:
        return replace(report, rendered_output=report.rendered_output + b"\n# reviewed")


class _NonBytesRenderer:
    """Renderer double violating the bytes contract."""

    def renderer_kind(self) -> str:
        return "broken"

    def renderer_rendering_modes(self) -> tuple[RenderingMode, ...]:
        return ()

    def renderer_render(self, rendering_mode: RenderingMode, data: Any) -> bytes:
        return "not bytes"


def test_engine_execute_renders_and_persists_streams(build_runtime) -> None:
    """Rendered executions write output and data, complete and cache the report."""

    runtime = build_runtime({"ledger": _evaluate_rows})
    request = _claim_request(runtime, "ledger", RenderingMode("json", argument="pretty"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.COMPLETED
    assert result.error is None
    assert result.request.evaluate_completed_at_utc is not None
    assert result.request.render_completed_at_utc is not None
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.OUTPUT) == (
        result.report.rendered_output
    )
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.DATA) == (
        b'[{"amount":10,"month":"2026-09"}]'
    )
    assert runtime.cache.cache_get(request.uuid) == result.report
    log_payload = runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.LOG)
    assert b"evaluation started" in log_payload
    assert b"report completed" in log_payload


def test_engine_execute_skips_rendering_for_raw_modes(build_runtime) -> None:
    runtime = build_runtime({"ledger": _evaluate_rows})
    request = _claim_request(runtime, "ledger", RenderingMode("raw", raw=True))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.COMPLETED
    assert result.report.rendered_output is None
    assert result.request.render_completed_at_utc is None
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.OUTPUT) is None


def test_engine_execute_records_evaluation_failure(build_runtime) -> None:
    """Unknown definitions fail with error and log artifacts and no data."""

    runtime = build_runtime({})
    request = _claim_request(runtime, "missing", RenderingMode("json"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.FAILED
    assert runtime.ledger.db_report_request_get_by_uuid(request.uuid).status == ReportRequestStatus.FAILED
    error_payload = runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.ERROR)
    assert error_payload.startswith(b"EvaluationError: unknown report definition=missing")
    assert b"Traceback" in error_payload
    assert b"ERROR report failed" in runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.LOG)
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.DATA) is None
    assert runtime.cache.cache_get(request.uuid) is None


def test_engine_execute_wraps_unexpected_evaluator_exceptions(build_runtime) -> None:
    def _evaluate_crashing(parameters: dict[str, Any]) -> Any:
        raise KeyError("column")

    runtime = build_runtime({"crash": _evaluate_crashing})
    request = _claim_request(runtime, "crash", RenderingMode("json"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.FAILED
    assert result.error.error_code == "EVALUATION_FAILED"


def test_engine_execute_fails_on_unknown_renderer(build_runtime) -> None:
    runtime = build_runtime({"ledger": _evaluate_rows})
    request = _claim_request(runtime, "ledger", RenderingMode("pdf"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.FAILED
    assert isinstance(result.error, RenderError)
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.OUTPUT) is None


def test_engine_execute_fails_on_non_bytes_renderer(build_runtime) -> None:
    runtime = build_runtime({"ledger": _evaluate_rows})
    runtime.engine._renderer_registry._renderers["broken"] = _NonBytesRenderer()  # pylint: disable=protected-access
    request = _claim_request(runtime, "ledger", RenderingMode("broken"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.FAILED
    assert result.error.error_code == "RENDER_CONTRACT_ERROR"


def test_engine_execute_optional_processor_failure_is_logged(build_runtime) -> None:
    """Optional processor failures are logged and the request still completes."""

    runtime = build_runtime(
        {"ledger": _evaluate_rows},
        processor_registry=ReportProcessorRegistry([_FailingProcessor()]),
        processor_configurations=(ReportProcessorConfiguration(name="notify", processor_kind="failing"),),
    )
    request = _claim_request(runtime, "ledger", RenderingMode("json"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.COMPLETED
    log_payload = runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.LOG)
    assert b"WARNING optional processor=notify failed" in log_payload


def test_engine_execute_mandatory_processor_failure_fails_request(build_runtime) -> None:
    runtime = build_runtime(
        {"ledger": _evaluate_rows},
        processor_registry=ReportProcessorRegistry([_FailingProcessor()]),
        processor_configurations=(
            ReportProcessorConfiguration(name="deliver", processor_kind="failing", mandatory=True),
        ),
    )
    request = _claim_request(runtime, "ledger", RenderingMode("json"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.FAILED
    assert isinstance(result.error, ProcessorError)
    assert result.error.processor_name == "deliver"
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.OUTPUT) is None


def test_engine_execute_runs_file_export_processor(build_runtime, tmp_path: Path) -> None:
    export_directory = tmp_path / "exports"
    runtime = build_runtime(
        {"ledger": _evaluate_rows},
        processor_registry=ReportProcessorRegistry([FileExportReportProcessor()]),
        processor_configurations=(
            ReportProcessorConfiguration(
                name="export",
                processor_kind="file_export",
                configuration={"directory": str(export_directory), "file_name_pattern": "{definition_ref}-{uuid}.json"},
                mandatory=True,
            ),
        ),
    )
    request = _claim_request(runtime, "ledger", RenderingMode("json"))

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.COMPLETED
    exported_path = export_directory / f"ledger-{request.uuid}.json"
    assert exported_path.read_bytes() == result.report.rendered_output


def test_engine_execute_persists_output_changed_by_processor(build_runtime) -> None:
    """Output rewritten by a processor reads the same from the cache and from disk."""

    runtime = build_runtime(
        {"ledger": _evaluate_rows},
        processor_registry=ReportProcessorRegistry([_FooterProcessor()]),
        processor_configurations=(ReportProcessorConfiguration(name="footer", processor_kind="footer"),),
    )
    request = _claim_request(runtime, "ledger", RenderingMode("json"))

    result = runtime.engine.engine_execute(request)

    expected_output = b'[{"amount":10,"month":"2026-09"}]\n# reviewed'
    assert result.status == ReportRequestStatus.COMPLETED
    assert runtime.reader.reader_load_output(request.uuid) == expected_output
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.OUTPUT) == expected_output

    assert runtime.cache.cache_evict_overflow(0) == [request.uuid]
    assert runtime.reader.reader_load_output(request.uuid) == expected_output


def test_engine_execute_discards_completion_of_request_failed_meanwhile(build_runtime) -> None:
    """A completion arriving after a forced failure leaves no data behind."""

    runtime_holder: dict[str, Any] = {}

    def _evaluate_then_time_out(parameters: dict[str, Any]) -> list[int]:
        runtime = runtime_holder["runtime"]
        runtime.ledger.db_report_request_transition(runtime_holder["uuid"], ReportRequestStatus.FAILED)
        return [1, 2, 3]

    runtime = build_runtime({"slow": _evaluate_then_time_out})
    request = _claim_request(runtime, "slow", RenderingMode("json"))
    runtime_holder.update({"runtime": runtime, "uuid": request.uuid})

    result = runtime.engine.engine_execute(request)

    assert result.status == ReportRequestStatus.FAILED
    assert result.error.error_code == "REPORT_COMPLETION_DISCARDED"
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.DATA) is None
    assert runtime.artifact_store.storage_read_artifact(request.uuid, ReportArtifactKind.OUTPUT) is None
    assert runtime.cache.cache_get(request.uuid) is None


def test_engine_execute_completes_when_cache_is_full(build_runtime) -> None:
    """A hard-limited cache rejects the insert but the report stays durable."""

    runtime = build_runtime({"ledger": _evaluate_rows}, cache_hard_limit=1)
    first_request = _claim_request(runtime, "ledger", RenderingMode("json"))
    second_request = _claim_request(runtime, "ledger", RenderingMode("json"))

    runtime.engine.engine_execute(first_request)
    second_result = runtime.engine.engine_execute(second_request)

    assert second_result.status == ReportRequestStatus.COMPLETED
    assert runtime.cache.cache_get(second_request.uuid) is None
    assert runtime.reader.reader_load_data(second_request.uuid) == b'[{"amount":10,"month":"2026-09"}]'
