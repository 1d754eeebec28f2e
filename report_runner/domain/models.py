"""Typed domain models shared across runtime layers.

This module provides the report request lifecycle contracts used by the
scheduler, execution engine, cache, artifact store and request ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final
from uuid import UUID, uuid4

from .errors import InvalidStatusTransitionError


class ReportRequestStatus(str, Enum):
    """Lifecycle states of one report request."""

    REQUESTED = "REQUESTED"
    SCHEDULED = "SCHEDULED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    DELETED = "DELETED"

    def status_is_terminal(self) -> bool:
        """Return whether no further execution can happen for this status.

        Returns:
            bool: True for `COMPLETED`, `FAILED` and `DELETED`.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return self in TERMINAL_REPORT_REQUEST_STATUSES

    def status_is_pending(self) -> bool:
        """Return whether the request still waits for a worker.

        Returns:
            bool: True for `REQUESTED` and `SCHEDULED`.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return self in PENDING_REPORT_REQUEST_STATUSES


class ReportRequestPriority(str, Enum):
    """Queue priority levels, highest first."""

    HIGHEST = "HIGHEST"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"
    LOWEST = "LOWEST"

    @property
    def priority_rank(self) -> int:
        """Return sort rank where a lower value is dispatched earlier.

        Returns:
            int: Zero-based rank.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return _PRIORITY_RANKS[self]


class ReportArtifactKind(str, Enum):
    """Named byte streams persisted per report request."""

    DATA = "data"
    OUTPUT = "output"
    LOG = "log"
    ERROR = "error"


_PRIORITY_RANKS: Final[dict[ReportRequestPriority, int]] = {
    ReportRequestPriority.HIGHEST: 0,
    ReportRequestPriority.HIGH: 1,
    ReportRequestPriority.NORMAL: 2,
    ReportRequestPriority.LOW: 3,
    ReportRequestPriority.LOWEST: 4,
}

TERMINAL_REPORT_REQUEST_STATUSES: Final[frozenset[ReportRequestStatus]] = frozenset(
    {
        ReportRequestStatus.COMPLETED,
        ReportRequestStatus.FAILED,
        ReportRequestStatus.DELETED,
    }
)

PENDING_REPORT_REQUEST_STATUSES: Final[frozenset[ReportRequestStatus]] = frozenset(
    {
        ReportRequestStatus.REQUESTED,
        ReportRequestStatus.SCHEDULED,
    }
)

_ALLOWED_STATUS_TRANSITIONS: Final[dict[ReportRequestStatus, frozenset[ReportRequestStatus]]] = {
    ReportRequestStatus.REQUESTED: frozenset(
        {
            ReportRequestStatus.SCHEDULED,
            ReportRequestStatus.PROCESSING,
            ReportRequestStatus.FAILED,
            ReportRequestStatus.DELETED,
        }
    ),
    ReportRequestStatus.SCHEDULED: frozenset(
        {
            ReportRequestStatus.PROCESSING,
            ReportRequestStatus.FAILED,
            ReportRequestStatus.DELETED,
        }
    ),
    ReportRequestStatus.PROCESSING: frozenset({ReportRequestStatus.COMPLETED, ReportRequestStatus.FAILED}),
    ReportRequestStatus.COMPLETED: frozenset({ReportRequestStatus.DELETED}),
    ReportRequestStatus.FAILED: frozenset({ReportRequestStatus.DELETED}),
    ReportRequestStatus.DELETED: frozenset(),
}


def domain_status_predecessors(target_status: ReportRequestStatus) -> frozenset[ReportRequestStatus]:
    """Return every status from which `target_status` may be entered.

    Args:
        target_status: Desired next status.

    Returns:
        frozenset[ReportRequestStatus]: Allowed source statuses.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return frozenset(
        source_status
        for source_status, allowed_targets in _ALLOWED_STATUS_TRANSITIONS.items()
        if target_status in allowed_targets
    )


def domain_validate_status_transition(
    current_status: ReportRequestStatus,
    target_status: ReportRequestStatus,
) -> ReportRequestStatus:
    """Validate one forward status transition.

    Args:
        current_status: Status currently recorded for the request.
        target_status: Desired next status.

    Returns:
        ReportRequestStatus: The validated target status.

    Raises:
        InvalidStatusTransitionError: Raised when the transition would move backwards or leave a terminal state.
    """

    if target_status not in _ALLOWED_STATUS_TRANSITIONS[current_status]:
        raise InvalidStatusTransitionError(
            f"invalid report request status transition {current_status.value} -> {target_status.value}"
        )
    return target_status


def domain_validate_request_uuid(value: str) -> str:
    """Validate and normalize a client-visible request uuid.

    Args:
        value: Candidate uuid text.

    Returns:
        str: Canonical lowercase hyphenated uuid text.

    Raises:
        ValueError: Raised when value is not a valid uuid.
    """

    if not isinstance(value, str) or not value.strip():
        raise ValueError("report request uuid must not be blank")
    try:
        return str(UUID(value.strip()))
    except ValueError as error:
        raise ValueError(f"malformed report request uuid={value!r}") from error


def domain_new_request_uuid() -> str:
    """Return a new globally unique request uuid."""

    return str(uuid4())


def domain_utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RenderingMode:
    """Descriptor of one output format offered by a registered renderer.

    Attributes:
        renderer_kind: Registry tag of the renderer implementation.
        label: Human-readable mode label.
        argument: Renderer-specific argument (for example a design identifier).
        raw: Whether the caller wants unrendered data only.
    """

    renderer_kind: str
    label: str = ""
    argument: str = ""
    raw: bool = False

    def mode_to_payload(self) -> dict[str, object]:
        """Serialize mode to a JSON-compatible payload.

        Returns:
            dict[str, object]: Serialized mode.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return {
            "renderer_kind": self.renderer_kind,
            "label": self.label,
            "argument": self.argument,
            "raw": self.raw,
        }

    @classmethod
    def mode_from_payload(cls, payload: dict[str, Any]) -> RenderingMode:
        """Build mode from a JSON-compatible payload.

        Args:
            payload: Serialized mode mapping.

        Returns:
            RenderingMode: Parsed mode.

        Raises:
            ValueError: Raised when renderer kind is missing.
        """

        renderer_kind = str(payload.get("renderer_kind") or "").strip()
        if not renderer_kind:
            raise ValueError("rendering mode renderer_kind must not be blank")
        return cls(
            renderer_kind=renderer_kind,
            label=str(payload.get("label") or ""),
            argument=str(payload.get("argument") or ""),
            raw=bool(payload.get("raw", False)),
        )


@dataclass(frozen=True)
class ReportRequest:
    """One request to evaluate and optionally render a report definition.

    Attributes:
        definition_ref: Opaque reference to the report definition to evaluate.
        rendering_mode: Output format selection.
        parameters: Parameter values passed to evaluation.
        priority: Queue priority.
        requested_by: Identity of the requesting user or system.
        uuid: Client-visible identity; assigned on enqueue when absent.
        report_request_id: Ledger-assigned identity; None until first save.
        requested_at_utc: Submission timestamp.
        evaluate_started_at_utc: Processing start timestamp.
        evaluate_completed_at_utc: Evaluation end timestamp.
        render_completed_at_utc: Rendering end timestamp.
        status: Current lifecycle status.
        description: Optional free-text description.
    """

    definition_ref: str
    rendering_mode: RenderingMode
    parameters: dict[str, Any] = field(default_factory=dict)
    priority: ReportRequestPriority = ReportRequestPriority.NORMAL
    requested_by: str = "system"
    uuid: str | None = None
    report_request_id: int | None = None
    requested_at_utc: datetime | None = None
    evaluate_started_at_utc: datetime | None = None
    evaluate_completed_at_utc: datetime | None = None
    render_completed_at_utc: datetime | None = None
    status: ReportRequestStatus = ReportRequestStatus.REQUESTED
    description: str | None = None


@dataclass(frozen=True)
class Report:
    """Result of executing one report request.

    Attributes:
        request: Request this report was produced for.
        data: Evaluated, JSON-compatible data set.
        rendered_output: Rendered bytes, or None for raw modes.
    """

    request: ReportRequest
    data: Any
    rendered_output: bytes | None = None

    @property
    def report_uuid(self) -> str:
        """Return the owning request uuid.

        Returns:
            str: Request uuid.

        Raises:
            ValueError: Raised when the request was never assigned a uuid.
        """

        if self.request.uuid is None:
            raise ValueError("report request uuid is not assigned")
        return self.request.uuid


@dataclass(frozen=True)
class SavedReportRecord:
    """Permanent save marker for a completed report.

    Attributes:
        uuid: Saved request uuid.
        description: Optional description supplied on save.
        saved_at_utc: Save timestamp.
    """

    uuid: str
    description: str | None
    saved_at_utc: datetime


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text for service health.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str


@dataclass(frozen=True)
class ReportProcessorConfiguration:
    """Configured post-processing step applied to completed reports.

    Attributes:
        name: Unique configuration name used in logs.
        processor_kind: Registry tag of the processor implementation.
        configuration: Processor-specific settings.
        mandatory: Whether a failure of this step fails the whole request.
    """

    name: str
    processor_kind: str
    configuration: dict[str, Any] = field(default_factory=dict)
    mandatory: bool = False
