"""Tests for report API submission, status, artifact and retention endpoints."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from report_runner.api.application import create_api_application
from report_runner.config import AppSettings
from report_runner.domain import EvaluationError, HealthStatus, domain_new_request_uuid


class _HealthyDatabaseService:
    """Test double that simulates a healthy database target."""

    def db_connection_label(self) -> str:
        return "sqlite://test"

    def db_check_health(self) -> HealthStatus:
        return HealthStatus(status="ok", detail="database connectivity verified")


def _evaluate_sales(parameters: dict[str, Any]) -> dict[str, Any]:
    if "region" not in parameters:
        raise EvaluationError("parameter region is required", error_code="PARAMETER_MISSING")
    return {"region": parameters["region"], "total": 1250}


@pytest.fixture
def api_runtime(build_runtime):
    runtime = build_runtime({"sales": _evaluate_sales})
    settings = AppSettings(
        environment_name="test",
        database_url="sqlite:///./unused.db",
        api_default_limit=20,
        api_max_limit=50,
    )
    client = TestClient(create_api_application(settings, _HealthyDatabaseService(), runtime.service))
    return runtime, client


def _submission(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "definition_ref": "sales",
        "rendering_mode": {"renderer_kind": "json", "argument": "compact"},
        "parameters": {"region": "emea"},
    }
    payload.update(overrides)
    return payload


def test_api_submit_queues_request_and_dispatch_completes_it(api_runtime) -> None:
    """Queued submission returns 202 with queue position; dispatch completes it."""

    runtime, client = api_runtime

    submit_response = client.post("/reports/requests", json=_submission())

    assert submit_response.status_code == 202
    uuid = submit_response.json()["uuid"]
    assert submit_response.json()["status"] == "SCHEDULED"
    assert submit_response.json()["position_in_queue"] == 0

    dispatch_response = client.post("/reports/dispatch")
    assert dispatch_response.json() == {"claimed": [uuid], "count": 1}
    assert runtime.service.service_wait_for_idle(timeout_seconds=10)

    detail_response = client.get(f"/reports/requests/{uuid}")
    assert detail_response.status_code == 200
    assert detail_response.json()["status"] == "COMPLETED"
    assert detail_response.json()["position_in_queue"] is None

    data_response = client.get(f"/reports/requests/{uuid}/data")
    assert data_response.status_code == 200
    assert data_response.headers["content-type"] == "application/json"
    assert data_response.json() == {"region": "emea", "total": 1250}

    output_response = client.get(f"/reports/requests/{uuid}/output")
    assert output_response.status_code == 200
    assert output_response.content == b'{"region":"emea","total":1250}'

    log_response = client.get(f"/reports/requests/{uuid}/log")
    assert log_response.json()["lines"][-1].endswith("report completed")


def test_api_submit_synchronous_returns_data(api_runtime) -> None:
    _, client = api_runtime

    response = client.post("/reports/requests", params={"synchronous": "true"}, json=_submission())

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert response.json()["priority"] == "HIGHEST"
    assert response.json()["data"] == {"region": "emea", "total": 1250}
    assert response.json()["has_output"] is True


def test_api_submit_synchronous_evaluation_failure_returns_422(api_runtime) -> None:
    """Synchronous evaluation failures report the error code and keep the error artifact."""

    _, client = api_runtime

    response = client.post(
        "/reports/requests",
        params={"synchronous": "true"},
        json=_submission(parameters={}),
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "PARAMETER_MISSING"
    uuid = response.json()["uuid"]
    assert client.get(f"/reports/requests/{uuid}").json()["status"] == "FAILED"
    error_response = client.get(f"/reports/requests/{uuid}/error")
    assert error_response.json()["error"].startswith("EvaluationError: parameter region is required")
    assert client.get(f"/reports/requests/{uuid}/data").status_code == 404


def test_api_submit_rejects_unknown_renderer(api_runtime) -> None:
    _, client = api_runtime

    response = client.post("/reports/requests", json=_submission(rendering_mode={"renderer_kind": "pdf"}))

    assert response.status_code == 422
    assert response.json()["error_code"] == "RENDER_UNKNOWN_KIND"


def test_api_submit_rejects_malformed_uuid_and_body(api_runtime) -> None:
    _, client = api_runtime

    assert client.post("/reports/requests", json=_submission(uuid="not-a-uuid")).status_code == 400
    assert client.post("/reports/requests", json={"definition_ref": "sales"}).status_code == 422


def test_api_list_requests_filters_and_limits(api_runtime) -> None:
    """List applies status filters and rejects limits beyond the configured maximum."""

    _, client = api_runtime
    client.post("/reports/requests", json=_submission())
    client.post("/reports/requests", params={"synchronous": "true"}, json=_submission())

    all_response = client.get("/reports/requests")
    assert all_response.json()["count"] == 2

    scheduled_response = client.get("/reports/requests", params={"status": "SCHEDULED"})
    assert [item["status"] for item in scheduled_response.json()["items"]] == ["SCHEDULED"]

    assert client.get("/reports/requests", params={"most_recent": 51}).status_code == 400
    inverted_window_response = client.get(
        "/reports/requests",
        params={
            "requested_on_or_after": "2026-10-18T10:00:00+00:00",
            "requested_on_or_before": "2026-10-18T09:00:00+00:00",
        },
    )
    assert inverted_window_response.status_code == 400


def test_api_request_detail_errors(api_runtime) -> None:
    _, client = api_runtime

    assert client.get("/reports/requests/bogus").status_code == 400
    missing_response = client.get(f"/reports/requests/{domain_new_request_uuid()}")
    assert missing_response.status_code == 404
    assert missing_response.json()["error_code"] == "REPORT_REQUEST_NOT_FOUND"


def test_api_save_and_delete_lifecycle(api_runtime) -> None:
    """Saved reports are readable; delete marks the request DELETED and drops artifacts."""

    _, client = api_runtime
    uuid = client.post("/reports/requests", params={"synchronous": "true"}, json=_submission()).json()["uuid"]

    save_response = client.post(f"/reports/requests/{uuid}/save", json={"description": "board pack"})
    assert save_response.status_code == 200
    assert save_response.json()["description"] == "board pack"
    assert client.get(f"/reports/requests/{uuid}/saved").json()["uuid"] == uuid

    delete_response = client.delete(f"/reports/requests/{uuid}")
    assert delete_response.status_code == 200
    assert delete_response.json()["status"] == "DELETED"
    assert client.get(f"/reports/requests/{uuid}/data").status_code == 404
    assert client.get(f"/reports/requests/{uuid}/saved").status_code == 404


def test_api_save_rejects_pending_request(api_runtime) -> None:
    _, client = api_runtime
    uuid = client.post("/reports/requests", json=_submission()).json()["uuid"]

    response = client.post(f"/reports/requests/{uuid}/save")

    assert response.status_code == 409
    assert response.json()["error_code"] == "REPORT_REQUEST_NOT_COMPLETED"


def test_api_log_append(api_runtime) -> None:
    _, client = api_runtime
    uuid = client.post("/reports/requests", json=_submission()).json()["uuid"]

    append_response = client.post(f"/reports/requests/{uuid}/log", json={"message": "reviewed", "level": "WARNING"})

    assert append_response.status_code == 200
    assert client.get(f"/reports/requests/{uuid}/log").json()["lines"][-1].endswith("WARNING reviewed")
    assert client.post(f"/reports/requests/{uuid}/log", json={"message": "x", "level": "TRACE"}).status_code == 422
    missing_uuid = domain_new_request_uuid()
    assert client.post(f"/reports/requests/{missing_uuid}/log", json={"message": "x"}).status_code == 404


def test_api_cached_sweep_and_rendering_modes(api_runtime) -> None:
    _, client = api_runtime
    uuid = client.post("/reports/requests", params={"synchronous": "true"}, json=_submission()).json()["uuid"]

    cached_response = client.get("/reports/cached")
    assert cached_response.json()["items"][0]["uuid"] == uuid

    sweep_response = client.post("/reports/sweep")
    assert sweep_response.status_code == 200
    assert set(sweep_response.json()) == {"timed_out", "persisted", "evicted", "deleted"}

    modes_response = client.get("/reports/rendering-modes")
    assert {item["renderer_kind"] for item in modes_response.json()["items"]} == {"json", "raw"}
