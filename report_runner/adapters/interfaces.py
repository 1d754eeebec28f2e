"""Typed interfaces for adapter-layer responsibilities."""

from typing import Any, Protocol


class ReportEvaluatorPort(Protocol):
    """Port definition for evaluating a report definition into a data set."""

    def evaluator_source_name(self) -> str:
        """Return evaluator source identifier for diagnostics and telemetry.

        Returns:
            str: Human-readable evaluator identifier.

        Raises:
            RuntimeError: Raised when source metadata is unavailable.
        """

    def evaluator_evaluate(self, definition_ref: str, parameters: dict[str, Any]) -> Any:
        """Evaluate one report definition.

        Args:
            definition_ref: Opaque definition reference.
            parameters: Parameter values for evaluation.

        Returns:
            Any: JSON-compatible data set.

        Raises:
            EvaluationError: Raised when the definition cannot produce data.
        """
