"""Tests for the report service facade: lifecycle, save, delete and background loops."""

from __future__ import annotations

import time
from typing import Any

import pytest

from report_runner.domain import (
    InvalidStatusTransitionError,
    NotFoundError,
    RenderError,
    RenderingMode,
    ReportArtifactKind,
    ReportRequest,
    ReportRequestStatus,
    ReportRunnerError,
    domain_new_request_uuid,
)
from report_runner.service import ReportService, ReportServiceConfig


def _evaluate_totals(parameters: dict[str, Any]) -> dict[str, int]:
    return {"total": int(parameters.get("base", 1)) * 2}


def _build_request(**overrides: Any) -> ReportRequest:
    values: dict[str, Any] = {"definition_ref": "totals", "rendering_mode": RenderingMode("json")}
    values.update(overrides)
    return ReportRequest(**values)


def test_service_queue_report_reports_state(build_runtime) -> None:
    runtime = build_runtime({"totals": _evaluate_totals})

    uuid = runtime.service.service_queue_report(_build_request())

    state = runtime.service.service_get_request_state(uuid)
    assert state.request.status == ReportRequestStatus.SCHEDULED
    assert state.position_in_queue == 0


def test_service_rejects_unknown_rendering_mode(build_runtime) -> None:
    runtime = build_runtime({"totals": _evaluate_totals})

    with pytest.raises(RenderError):
        runtime.service.service_queue_report(_build_request(rendering_mode=RenderingMode("pdf")))
    assert runtime.ledger.db_report_request_list() == []


def test_service_get_request_unknown_uuid(build_runtime) -> None:
    runtime = build_runtime({})

    with pytest.raises(NotFoundError) as error_info:
        runtime.service.service_get_request(domain_new_request_uuid())
    assert error_info.value.error_code == "REPORT_REQUEST_NOT_FOUND"
    with pytest.raises(ValueError):
        runtime.service.service_get_request("bogus")


def test_service_save_report_requires_completion(build_runtime) -> None:
    """Only completed reports can be saved; saving keeps streams on disk."""

    runtime = build_runtime({"totals": _evaluate_totals})
    queued_uuid = runtime.service.service_queue_report(_build_request())
    with pytest.raises(ReportRunnerError) as error_info:
        runtime.service.service_save_report(queued_uuid)
    assert error_info.value.error_code == "REPORT_REQUEST_NOT_COMPLETED"

    report = runtime.service.service_run_report(_build_request(parameters={"base": 4}))
    saved_record = runtime.service.service_save_report(report.report_uuid, "quarter close")

    assert saved_record.description == "quarter close"
    assert runtime.service.service_load_report(report.report_uuid) == saved_record
    assert runtime.artifact_store.storage_read_artifact(report.report_uuid, ReportArtifactKind.DATA) == b'{"total":8}'


def test_service_delete_request_removes_queue_slot_and_artifacts(build_runtime) -> None:
    runtime = build_runtime({"totals": _evaluate_totals})
    queued_uuid = runtime.service.service_queue_report(_build_request())
    runtime.service.service_log_report_message(queued_uuid, "queued for review")

    deleted_request = runtime.service.service_delete_request(queued_uuid)

    assert deleted_request.status == ReportRequestStatus.DELETED
    assert runtime.service.service_position_in_queue(queued_uuid) is None
    assert runtime.service.service_load_log(queued_uuid) is None
    assert runtime.service.service_dispatch_next() == []
    assert runtime.service.service_delete_request(queued_uuid).status == ReportRequestStatus.DELETED


def test_service_delete_request_refuses_processing(build_runtime) -> None:
    runtime = build_runtime({"totals": _evaluate_totals})
    queued_uuid = runtime.service.service_queue_report(_build_request())
    runtime.ledger.db_report_request_transition(queued_uuid, ReportRequestStatus.PROCESSING)

    with pytest.raises(InvalidStatusTransitionError):
        runtime.service.service_delete_request(queued_uuid)
    assert runtime.ledger.db_report_request_get_by_uuid(queued_uuid).status == ReportRequestStatus.PROCESSING


def test_service_log_report_message_validation(build_runtime) -> None:
    runtime = build_runtime({"totals": _evaluate_totals})
    report = runtime.service.service_run_report(_build_request())

    runtime.service.service_log_report_message(report.report_uuid, "  checked by finance  ", level="WARNING")

    assert runtime.service.service_load_log(report.report_uuid)[-1].endswith("WARNING checked by finance")
    with pytest.raises(ValueError):
        runtime.service.service_log_report_message(report.report_uuid, "   ")
    with pytest.raises(NotFoundError):
        runtime.service.service_log_report_message(domain_new_request_uuid(), "orphan")


def test_service_background_loops_dispatch_queued_requests(build_runtime) -> None:
    """Started loops dispatch queued work; shutdown stops loops and drains workers."""

    runtime = build_runtime({"totals": _evaluate_totals})
    service = ReportService(
        ledger=runtime.ledger,
        artifact_store=runtime.artifact_store,
        cache=runtime.cache,
        engine=runtime.engine,
        scheduler=runtime.scheduler,
        sweeper=runtime.sweeper,
        reader=runtime.reader,
        renderer_registry=runtime.engine._renderer_registry,  # pylint: disable=protected-access
        config=ReportServiceConfig(dispatch_interval_seconds=0.02, sweep_interval_seconds=0.02),
    )
    assert service.service_start() == []
    try:
        uuid = service.service_queue_report(_build_request())
        deadline = time.monotonic() + 10
        while time.monotonic() < deadline:
            if runtime.ledger.db_report_request_get_by_uuid(uuid).status == ReportRequestStatus.COMPLETED:
                break
            time.sleep(0.02)
    finally:
        service.service_shutdown()

    assert runtime.ledger.db_report_request_get_by_uuid(uuid).status == ReportRequestStatus.COMPLETED
    assert all(loop["running"] is False for loop in service.service_loop_health())
    assert service.service_loop_health()[0]["tick_count"] >= 1


def test_service_start_recovers_pending_requests(build_runtime) -> None:
    first_runtime = build_runtime({"totals": _evaluate_totals})
    uuid = first_runtime.service.service_queue_report(_build_request())

    restarted_runtime = build_runtime({"totals": _evaluate_totals})

    assert restarted_runtime.service.service_start(start_loops=False) == [uuid]
    assert restarted_runtime.service.service_position_in_queue(uuid) == 0
