"""Project-native typed exceptions for remote evaluation failures."""

from __future__ import annotations

from report_runner.domain import EvaluationError


class EvaluationConnectionError(EvaluationError, ConnectionError):
    """Transport-level connectivity failure while calling the evaluation service."""


class EvaluationTimeoutError(EvaluationError, TimeoutError):
    """Evaluation service did not answer within the configured timeout."""


class EvaluationRejectedError(EvaluationError, ValueError):
    """Evaluation service rejected the definition or its parameters."""


class EvaluationResponseError(EvaluationError, RuntimeError):
    """Evaluation service answered with a payload that violates the response contract."""
