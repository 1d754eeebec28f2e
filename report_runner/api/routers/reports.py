"""Report API router composition for submission, status, artifact and retention endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Query, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from report_runner.config import AppSettings
from report_runner.domain import (
    EvaluationError,
    InvalidStatusTransitionError,
    NotFoundError,
    ProcessorError,
    RenderError,
    RenderingMode,
    ReportRequest,
    ReportRequestPriority,
    ReportRequestStatus,
    ReportRunnerError,
    SavedReportRecord,
    domain_new_request_uuid,
)
from report_runner.service import ReportService


class RenderingModeBody(BaseModel):
    """Submitted rendering mode."""

    renderer_kind: str = Field(min_length=1)
    label: str = ""
    argument: str = ""
    raw: bool = False


class ReportSubmissionBody(BaseModel):
    """Submitted report request."""

    definition_ref: str = Field(min_length=1)
    rendering_mode: RenderingModeBody
    parameters: dict[str, Any] = Field(default_factory=dict)
    priority: ReportRequestPriority = ReportRequestPriority.NORMAL
    requested_by: str = Field(default="api", min_length=1)
    uuid: str | None = None
    description: str | None = None


class ReportSaveBody(BaseModel):
    """Permanent save request."""

    description: str | None = None


class ReportLogMessageBody(BaseModel):
    """Log message appended to the request log artifact."""

    message: str = Field(min_length=1)
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR)$")


def api_create_reports_router(settings: AppSettings, report_service: ReportService) -> APIRouter:
    """Create reports router with submission, status, artifact and retention endpoints.

    Args:
        settings: Runtime settings used for list limits.
        report_service: Report service facade.

    Returns:
        APIRouter: Router exposing `/reports` APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if report_service is None:
        raise ValueError("report_service must not be None")

    router = APIRouter(prefix="/reports", tags=["reports"])

    @router.post("/requests")
    def api_report_request_submit(
        body: ReportSubmissionBody,
        synchronous: bool = Query(default=False),
    ) -> JSONResponse:
        """Submit one report request, queued by default or executed inline.

        Returns:
            JSONResponse: 202 with queue position, or 200 with the completed report.

        Raises:
            RuntimeError: Raised when persistence fails unexpectedly.
        """

        request = ReportRequest(
            definition_ref=body.definition_ref.strip(),
            rendering_mode=RenderingMode(**body.rendering_mode.model_dump()),
            parameters=body.parameters,
            priority=body.priority,
            requested_by=body.requested_by,
            uuid=body.uuid or domain_new_request_uuid(),
            description=body.description,
        )
        try:
            if synchronous:
                report = report_service.service_run_report(request)
                payload = _api_request_payload(report.request)
                payload["data"] = report.data
                payload["has_output"] = report.rendered_output is not None
                return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

            uuid = report_service.service_queue_report(request)
            state = report_service.service_get_request_state(uuid)
            payload = _api_request_payload(state.request)
            payload["position_in_queue"] = state.position_in_queue
            return JSONResponse(content=payload, status_code=status.HTTP_202_ACCEPTED)
        except (EvaluationError, RenderError, ProcessorError) as error:
            return _api_error_response(
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                str(error),
                error_code=error.error_code,
                uuid=request.uuid,
            )
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        except ReportRunnerError as error:
            return _api_error_response(status.HTTP_409_CONFLICT, str(error), error_code=error.error_code)

    @router.get("/requests")
    def api_report_request_list(
        definition_ref: str | None = Query(default=None),
        requested_on_or_after: datetime | None = Query(default=None),
        requested_on_or_before: datetime | None = Query(default=None),
        status_filter: list[ReportRequestStatus] | None = Query(default=None, alias="status"),
        most_recent: int = Query(default=settings.api_default_limit, ge=1),
    ) -> JSONResponse:
        """Return ledger requests matching optional filters, newest first.

        Returns:
            JSONResponse: Request list payload.

        Raises:
            RuntimeError: Raised when ledger access fails.
        """

        if most_recent > settings.api_max_limit:
            return _api_error_response(
                status.HTTP_400_BAD_REQUEST,
                f"most_recent must be <= {settings.api_max_limit}",
            )
        if (
            requested_on_or_after is not None
            and requested_on_or_before is not None
            and requested_on_or_after > requested_on_or_before
        ):
            return _api_error_response(
                status.HTTP_400_BAD_REQUEST,
                "requested_on_or_after must not be later than requested_on_or_before",
            )

        requests = report_service.service_list_requests(
            definition_ref=definition_ref,
            requested_on_or_after=requested_on_or_after,
            requested_on_or_before=requested_on_or_before,
            statuses=status_filter,
            most_recent=most_recent,
        )
        payload = {
            "items": [_api_request_payload(request) for request in requests],
            "count": len(requests),
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/requests/{uuid}")
    def api_report_request_detail(uuid: str) -> JSONResponse:
        try:
            state = report_service.service_get_request_state(uuid)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        except NotFoundError as error:
            return _api_error_response(status.HTTP_404_NOT_FOUND, str(error), error_code=error.error_code)

        payload = _api_request_payload(state.request)
        payload["position_in_queue"] = state.position_in_queue
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/requests/{uuid}/data")
    def api_report_request_data(uuid: str) -> Response:
        """Return the evaluated data stream as JSON bytes.

        Returns:
            Response: Data bytes, or an error payload when unavailable.

        Raises:
            OSError: Raised when the artifact store cannot be read.
        """

        try:
            data_payload = report_service.service_load_data(uuid)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        if data_payload is None:
            return _api_error_response(status.HTTP_404_NOT_FOUND, "report data not found")
        return Response(content=data_payload, media_type="application/json")

    @router.get("/requests/{uuid}/output")
    def api_report_request_output(uuid: str) -> Response:
        try:
            output_payload = report_service.service_load_output(uuid)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        if output_payload is None:
            return _api_error_response(status.HTTP_404_NOT_FOUND, "report output not found")
        return Response(content=output_payload, media_type="application/octet-stream")

    @router.get("/requests/{uuid}/log")
    def api_report_request_log(uuid: str) -> JSONResponse:
        try:
            log_lines = report_service.service_load_log(uuid)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        if log_lines is None:
            return _api_error_response(status.HTTP_404_NOT_FOUND, "report log not found")
        return JSONResponse(content={"uuid": uuid, "lines": log_lines}, status_code=status.HTTP_200_OK)

    @router.post("/requests/{uuid}/log")
    def api_report_request_log_append(uuid: str, body: ReportLogMessageBody) -> JSONResponse:
        try:
            report_service.service_log_report_message(uuid, body.message, level=body.level)
        except NotFoundError as error:
            return _api_error_response(status.HTTP_404_NOT_FOUND, str(error), error_code=error.error_code)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        return JSONResponse(content={"uuid": uuid, "status": "logged"}, status_code=status.HTTP_200_OK)

    @router.get("/requests/{uuid}/error")
    def api_report_request_error(uuid: str) -> JSONResponse:
        try:
            error_text = report_service.service_load_error(uuid)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        if error_text is None:
            return _api_error_response(status.HTTP_404_NOT_FOUND, "report error not found")
        return JSONResponse(content={"uuid": uuid, "error": error_text}, status_code=status.HTTP_200_OK)

    @router.post("/requests/{uuid}/save")
    def api_report_request_save(uuid: str, body: ReportSaveBody | None = Body(default=None)) -> JSONResponse:
        """Mark a completed report as permanent.

        Returns:
            JSONResponse: Saved record payload.

        Raises:
            RuntimeError: Raised when persistence fails unexpectedly.
        """

        description = body.description if body is not None else None
        try:
            saved_record = report_service.service_save_report(uuid, description=description)
        except NotFoundError as error:
            return _api_error_response(status.HTTP_404_NOT_FOUND, str(error), error_code=error.error_code)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        except ReportRunnerError as error:
            return _api_error_response(status.HTTP_409_CONFLICT, str(error), error_code=error.error_code)
        return JSONResponse(content=_api_saved_report_payload(saved_record), status_code=status.HTTP_200_OK)

    @router.get("/requests/{uuid}/saved")
    def api_report_request_saved(uuid: str) -> JSONResponse:
        try:
            saved_record = report_service.service_load_report(uuid)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        if saved_record is None:
            return _api_error_response(status.HTTP_404_NOT_FOUND, "saved report not found")
        return JSONResponse(content=_api_saved_report_payload(saved_record), status_code=status.HTTP_200_OK)

    @router.delete("/requests/{uuid}")
    def api_report_request_delete(uuid: str) -> JSONResponse:
        """Delete one request and its artifacts.

        Returns:
            JSONResponse: Updated request payload.

        Raises:
            RuntimeError: Raised when persistence fails unexpectedly.
        """

        try:
            deleted_request = report_service.service_delete_request(uuid)
        except NotFoundError as error:
            return _api_error_response(status.HTTP_404_NOT_FOUND, str(error), error_code=error.error_code)
        except InvalidStatusTransitionError as error:
            return _api_error_response(status.HTTP_409_CONFLICT, str(error), error_code=error.error_code)
        except ValueError as error:
            return _api_error_response(status.HTTP_400_BAD_REQUEST, str(error))
        return JSONResponse(content=_api_request_payload(deleted_request), status_code=status.HTTP_200_OK)

    @router.get("/cached")
    def api_report_cached_list() -> JSONResponse:
        cached_reports = report_service.service_cached_reports()
        items = [
            {
                "uuid": uuid,
                "definition_ref": report.request.definition_ref,
                "status": report.request.status.value,
                "has_output": report.rendered_output is not None,
            }
            for uuid, report in sorted(cached_reports.items())
        ]
        return JSONResponse(content={"items": items, "count": len(items)}, status_code=status.HTTP_200_OK)

    @router.post("/sweep")
    def api_report_sweep_trigger() -> JSONResponse:
        sweep_result = report_service.service_sweep()
        return JSONResponse(content=sweep_result.result_to_payload(), status_code=status.HTTP_200_OK)

    @router.post("/dispatch")
    def api_report_dispatch_trigger(max_concurrent: int | None = Query(default=None, ge=1)) -> JSONResponse:
        claimed_requests = report_service.service_dispatch_next(max_concurrent=max_concurrent)
        payload = {"claimed": [request.uuid for request in claimed_requests], "count": len(claimed_requests)}
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/rendering-modes")
    def api_report_rendering_modes() -> JSONResponse:
        items = [rendering_mode.mode_to_payload() for rendering_mode in report_service.service_rendering_modes()]
        return JSONResponse(content={"items": items}, status_code=status.HTTP_200_OK)

    return router


def _api_request_payload(request: ReportRequest) -> dict[str, Any]:
    """Serialize one request record for API responses.

    Args:
        request: Ledger record.

    Returns:
        dict[str, Any]: JSON-compatible payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "uuid": request.uuid,
        "report_request_id": request.report_request_id,
        "definition_ref": request.definition_ref,
        "parameters": request.parameters,
        "rendering_mode": request.rendering_mode.mode_to_payload(),
        "priority": request.priority.value,
        "requested_by": request.requested_by,
        "status": request.status.value,
        "description": request.description,
        "requested_at_utc": _api_isoformat(request.requested_at_utc),
        "evaluate_started_at_utc": _api_isoformat(request.evaluate_started_at_utc),
        "evaluate_completed_at_utc": _api_isoformat(request.evaluate_completed_at_utc),
        "render_completed_at_utc": _api_isoformat(request.render_completed_at_utc),
    }


def _api_saved_report_payload(saved_record: SavedReportRecord) -> dict[str, Any]:
    return {
        "uuid": saved_record.uuid,
        "description": saved_record.description,
        "saved_at_utc": _api_isoformat(saved_record.saved_at_utc),
    }


def _api_isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _api_error_response(
    status_code: int,
    message: str,
    error_code: str | None = None,
    uuid: str | None = None,
) -> JSONResponse:
    payload: dict[str, Any] = {"status": "error", "message": message}
    if error_code is not None:
        payload["error_code"] = error_code
    if uuid is not None:
        payload["uuid"] = uuid
    return JSONResponse(content=payload, status_code=status_code)
