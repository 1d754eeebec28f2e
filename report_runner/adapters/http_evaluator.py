"""HTTP report evaluation service adapter."""

from __future__ import annotations

from typing import Any, Final

import httpx

from report_runner.config import config_get_logger
from report_runner.domain import EvaluationError

from .evaluation_errors import (
    EvaluationConnectionError,
    EvaluationRejectedError,
    EvaluationResponseError,
    EvaluationTimeoutError,
)
from .interfaces import ReportEvaluatorPort

logger = config_get_logger(__name__)


class HttpReportEvaluator(ReportEvaluatorPort):
    """Adapter delegating definition evaluation to a remote HTTP service.

    The service contract is one `POST <base_url>/evaluate` call with a JSON body
    `{"definition": <ref>, "parameters": {...}}`, answered by
    `{"data": <data set>}` on success or `{"error": {"code": ..., "message": ...}}`
    with a 4xx status on rejection.
    """

    _USER_AGENT: Final[str] = "report-runner/1.0 (Python/httpx)"

    def __init__(
        self,
        base_url: str,
        request_timeout_seconds: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize HTTP evaluator adapter.

        Args:
            base_url: Base endpoint URL of the evaluation service.
            request_timeout_seconds: HTTP request timeout in seconds.
            transport: Optional httpx transport override.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_base_url = base_url.strip()
        if not normalized_base_url:
            raise ValueError("base_url must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._base_url = normalized_base_url.rstrip("/")
        self._request_timeout_seconds = request_timeout_seconds
        self._transport = transport

    def evaluator_source_name(self) -> str:
        """Return stable evaluator source label.

        Returns:
            str: Source identifier.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return "http_evaluation_service"

    def evaluator_evaluate(self, definition_ref: str, parameters: dict[str, Any]) -> Any:
        """Evaluate one definition through the remote service.

        Args:
            definition_ref: Opaque definition reference.
            parameters: Parameter values for evaluation.

        Returns:
            Any: JSON-compatible data set from the `data` response field.

        Raises:
            EvaluationConnectionError: Raised for transport failures and 5xx responses.
            EvaluationTimeoutError: Raised when the service does not answer in time.
            EvaluationRejectedError: Raised when the service rejects the request.
            EvaluationResponseError: Raised when the response payload is not usable.
        """

        normalized_definition_ref = definition_ref.strip()
        if not normalized_definition_ref:
            raise EvaluationRejectedError("definition_ref must not be blank", error_code="EVALUATION_CONTRACT_ERROR")

        request_payload = {"definition": normalized_definition_ref, "parameters": parameters}
        logger.debug("report_evaluation_requested", definition_ref=normalized_definition_ref)
        response = self._adapter_http_post(url=f"{self._base_url}/evaluate", json_payload=request_payload)

        try:
            response_payload = response.json()
        except ValueError as error:
            raise EvaluationResponseError(
                "evaluation service returned non-JSON payload",
                error_code="EVALUATION_RESPONSE_ERROR",
            ) from error

        if not isinstance(response_payload, dict):
            raise EvaluationResponseError(
                "evaluation service response must be a JSON object",
                error_code="EVALUATION_RESPONSE_ERROR",
            )

        if response.status_code >= 400:
            error_code, error_message = self._adapter_extract_response_error(response_payload)
            raise EvaluationRejectedError(
                f"evaluation rejected: code={error_code}, message={error_message}",
                error_code=error_code,
            )

        if "data" not in response_payload:
            raise EvaluationResponseError(
                "evaluation service response missing data",
                error_code="EVALUATION_RESPONSE_ERROR",
            )
        return response_payload["data"]

    def _adapter_http_post(self, url: str, json_payload: dict[str, Any]) -> httpx.Response:
        """Execute one HTTP POST and return the response for 2xx/4xx statuses.

        Args:
            url: Endpoint URL.
            json_payload: JSON request body.

        Returns:
            httpx.Response: Response with status below 500.

        Raises:
            EvaluationConnectionError: Raised for network failures and 5xx status.
            EvaluationTimeoutError: Raised when the request times out.
        """

        try:
            with httpx.Client(
                timeout=self._request_timeout_seconds,
                headers={"User-Agent": self._USER_AGENT},
                transport=self._transport,
            ) as client:
                response = client.post(url, json=json_payload)
        except httpx.TimeoutException as error:
            raise EvaluationTimeoutError(
                "evaluation request timed out",
                error_code="EVALUATION_TIMEOUT_ERROR",
            ) from error
        except httpx.HTTPError as error:
            raise EvaluationConnectionError(
                "evaluation request failed",
                error_code="EVALUATION_CONNECTION_ERROR",
            ) from error

        if response.status_code >= 500:
            raise EvaluationConnectionError(
                f"evaluation service returned HTTP {response.status_code}",
                error_code="EVALUATION_CONNECTION_ERROR",
            )
        return response

    def _adapter_extract_response_error(self, response_payload: dict[str, Any]) -> tuple[str, str]:
        """Extract normalized error code and message from an error response.

        Args:
            response_payload: Decoded JSON response object.

        Returns:
            tuple[str, str]: Error code and message with deterministic fallbacks.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        error_value = response_payload.get("error")
        if not isinstance(error_value, dict):
            return "EVALUATION_REJECTED", "evaluation rejected by service"
        error_code = str(error_value.get("code") or "EVALUATION_REJECTED").strip()
        error_message = str(error_value.get("message") or "evaluation rejected by service").strip()
        return error_code, error_message


class CallableReportEvaluator(ReportEvaluatorPort):
    """In-process evaluator mapping definition refs to plain callables."""

    def __init__(self, definitions: dict[str, Any]):
        """Initialize callable evaluator.

        Args:
            definitions: Mapping of definition ref to `callable(parameters) -> data`.

        Raises:
            ValueError: Raised when a mapping value is not callable.
        """

        for definition_ref, evaluate_callable in definitions.items():
            if not callable(evaluate_callable):
                raise ValueError(f"definition {definition_ref} must map to a callable")
        self._definitions = dict(definitions)

    def evaluator_source_name(self) -> str:
        return "in_process"

    def evaluator_evaluate(self, definition_ref: str, parameters: dict[str, Any]) -> Any:
        """Evaluate one registered definition.

        Args:
            definition_ref: Registered definition reference.
            parameters: Parameter values passed to the callable.

        Returns:
            Any: Callable result.

        Raises:
            EvaluationError: Raised when the definition is unknown.
        """

        evaluate_callable = self._definitions.get(definition_ref)
        if evaluate_callable is None:
            raise EvaluationError(
                f"unknown report definition={definition_ref}",
                error_code="EVALUATION_UNKNOWN_DEFINITION",
            )
        return evaluate_callable(dict(parameters))
