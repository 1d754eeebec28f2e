"""Tests for the HTTP and in-process report evaluator adapters."""

from __future__ import annotations

import json

import httpx
import pytest

from report_runner.adapters import (
    CallableReportEvaluator,
    EvaluationConnectionError,
    EvaluationRejectedError,
    EvaluationResponseError,
    EvaluationTimeoutError,
    HttpReportEvaluator,
)
from report_runner.domain import EvaluationError


def _build_evaluator(handler) -> HttpReportEvaluator:
    return HttpReportEvaluator(
        base_url="https://reports.example.test/api/",
        request_timeout_seconds=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_http_evaluator_posts_definition_and_returns_data() -> None:
    """Successful evaluation posts the contract body and returns the data field."""

    captured_requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        captured_requests.append(request)
        return httpx.Response(200, json={"data": [{"total": 7}]})

    data = _build_evaluator(_handler).evaluator_evaluate(" sales ", {"year": 2026})

    assert data == [{"total": 7}]
    assert len(captured_requests) == 1
    assert str(captured_requests[0].url) == "https://reports.example.test/api/evaluate"
    assert captured_requests[0].method == "POST"
    assert json.loads(captured_requests[0].content) == {"definition": "sales", "parameters": {"year": 2026}}
    assert captured_requests[0].headers["User-Agent"].startswith("report-runner/")


def test_http_evaluator_maps_rejection_payload() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"error": {"code": "PARAMETER_INVALID", "message": "year is required"}})

    with pytest.raises(EvaluationRejectedError) as error_info:
        _build_evaluator(_handler).evaluator_evaluate("sales", {})

    assert error_info.value.error_code == "PARAMETER_INVALID"
    assert "year is required" in str(error_info.value)
    assert isinstance(error_info.value, EvaluationError)


def test_http_evaluator_rejection_without_error_body_uses_fallback_code() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "not found"})

    with pytest.raises(EvaluationRejectedError) as error_info:
        _build_evaluator(_handler).evaluator_evaluate("sales", {})

    assert error_info.value.error_code == "EVALUATION_REJECTED"


def test_http_evaluator_server_error_is_connection_failure() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    with pytest.raises(EvaluationConnectionError) as error_info:
        _build_evaluator(_handler).evaluator_evaluate("sales", {})

    assert error_info.value.error_code == "EVALUATION_CONNECTION_ERROR"


def test_http_evaluator_transport_failures() -> None:
    """Timeouts and connection errors are mapped to distinct typed errors."""

    def _timeout_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    def _connect_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EvaluationTimeoutError):
        _build_evaluator(_timeout_handler).evaluator_evaluate("sales", {})
    with pytest.raises(EvaluationConnectionError):
        _build_evaluator(_connect_handler).evaluator_evaluate("sales", {})


def test_http_evaluator_rejects_malformed_responses() -> None:
    def _non_json_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    def _list_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    def _missing_data_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"rows": []})

    for handler in (_non_json_handler, _list_handler, _missing_data_handler):
        with pytest.raises(EvaluationResponseError):
            _build_evaluator(handler).evaluator_evaluate("sales", {})


def test_http_evaluator_validates_configuration_and_definition() -> None:
    with pytest.raises(ValueError):
        HttpReportEvaluator(base_url=" ")
    with pytest.raises(ValueError):
        HttpReportEvaluator(base_url="https://reports.example.test", request_timeout_seconds=0)

    evaluator = HttpReportEvaluator(base_url="https://reports.example.test")
    assert evaluator.evaluator_source_name() == "http_evaluation_service"
    with pytest.raises(EvaluationRejectedError) as error_info:
        evaluator.evaluator_evaluate("  ", {})
    assert error_info.value.error_code == "EVALUATION_CONTRACT_ERROR"


def test_callable_evaluator_dispatches_by_definition() -> None:
    received_parameters: list[dict] = []

    def _evaluate(parameters: dict) -> dict:
        received_parameters.append(parameters)
        parameters["mutated"] = True
        return {"ok": True}

    evaluator = CallableReportEvaluator({"sales": _evaluate})
    original_parameters = {"year": 2026}

    assert evaluator.evaluator_evaluate("sales", original_parameters) == {"ok": True}
    assert original_parameters == {"year": 2026}
    assert evaluator.evaluator_source_name() == "in_process"
    with pytest.raises(EvaluationError) as error_info:
        evaluator.evaluator_evaluate("inventory", {})
    assert error_info.value.error_code == "EVALUATION_UNKNOWN_DEFINITION"
    with pytest.raises(ValueError):
        CallableReportEvaluator({"sales": "not callable"})
