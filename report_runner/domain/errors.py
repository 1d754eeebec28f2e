"""Project-native typed exceptions for report request lifecycle failures."""

from __future__ import annotations


class ReportRunnerError(Exception):
    """Base exception for report lifecycle failures.

    Attributes:
        error_code: Optional deterministic error code.
    """

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class EvaluationError(ReportRunnerError):
    """Report definition could not produce data (parameter or data-source fault)."""


class RenderError(ReportRunnerError):
    """Rendering mode was rejected or failed on the produced data."""


class ProcessorError(ReportRunnerError):
    """Post-processing step faulted.

    Attributes:
        processor_name: Name of the failing processor configuration.
    """

    def __init__(self, message: str, processor_name: str | None = None, error_code: str | None = None):
        super().__init__(message=message, error_code=error_code)
        self.processor_name = processor_name


class NotFoundError(ReportRunnerError, LookupError):
    """Unknown uuid or id on a lookup that requires an existing request."""


class CapacityError(ReportRunnerError, RuntimeError):
    """Cache insert beyond the configured hard limit."""


class InvalidStatusTransitionError(ReportRunnerError, ValueError):
    """Requested status change would violate lifecycle monotonicity."""
