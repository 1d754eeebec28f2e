"""Typed interfaces for job-layer execution responsibilities."""

from dataclasses import dataclass
from typing import Any, Protocol

from report_runner.adapters import ReportEvaluatorPort
from report_runner.domain import (
    RenderingMode,
    Report,
    ReportProcessorConfiguration,
    ReportRequest,
    ReportRequestStatus,
)


@dataclass(frozen=True)
class ReportExecutionResult:
    """Result contract for one report execution.

    Attributes:
        request: Latest known request record.
        status: Final execution state.
        report: Completed report, or None on failure.
        error: Captured failure, or None on success.
    """

    request: ReportRequest
    status: ReportRequestStatus
    report: Report | None = None
    error: Exception | None = None


class ReportRendererPort(Protocol):
    """Port definition for turning evaluated data into output bytes."""

    def renderer_kind(self) -> str:
        """Return registry tag handled by this renderer.

        Returns:
            str: Renderer kind tag.

        Raises:
            RuntimeError: Raised when renderer metadata is unavailable.
        """

    def renderer_rendering_modes(self) -> tuple[RenderingMode, ...]:
        """Return rendering modes offered by this renderer.

        Returns:
            tuple[RenderingMode, ...]: Offered modes.

        Raises:
            RuntimeError: Raised when renderer metadata is unavailable.
        """

    def renderer_render(self, rendering_mode: RenderingMode, data: Any) -> bytes:
        """Render one data set.

        Args:
            rendering_mode: Selected output format.
            data: Evaluated data set.

        Returns:
            bytes: Rendered output.

        Raises:
            RenderError: Raised when the mode is rejected or rendering fails.
        """


class ReportProcessorPort(Protocol):
    """Port definition for post-processing completed reports."""

    def processor_kind(self) -> str:
        """Return registry tag handled by this processor.

        Returns:
            str: Processor kind tag.

        Raises:
            RuntimeError: Raised when processor metadata is unavailable.
        """

    def processor_process(self, configuration: ReportProcessorConfiguration, report: Report) -> Report:
        """Apply one post-processing step.

        Args:
            configuration: Processor configuration.
            report: Report produced by evaluation and rendering.

        Returns:
            Report: Report passed to the next step.

        Raises:
            ProcessorError: Raised when the step fails.
        """


__all__ = [
    "ReportEvaluatorPort",
    "ReportExecutionResult",
    "ReportProcessorPort",
    "ReportRendererPort",
]
