"""Domain models used across application layer boundaries."""

from .errors import (
	CapacityError,
	EvaluationError,
	InvalidStatusTransitionError,
	NotFoundError,
	ProcessorError,
	RenderError,
	ReportRunnerError,
)
from .models import (
	PENDING_REPORT_REQUEST_STATUSES,
	TERMINAL_REPORT_REQUEST_STATUSES,
	HealthStatus,
	RenderingMode,
	Report,
	ReportArtifactKind,
	ReportProcessorConfiguration,
	ReportRequest,
	ReportRequestPriority,
	ReportRequestStatus,
	SavedReportRecord,
	domain_new_request_uuid,
	domain_status_predecessors,
	domain_utc_now,
	domain_validate_request_uuid,
	domain_validate_status_transition,
)
from .timeline import domain_build_log_line, domain_decode_report_data, domain_encode_report_data

__all__ = [
	"CapacityError",
	"EvaluationError",
	"InvalidStatusTransitionError",
	"NotFoundError",
	"ProcessorError",
	"RenderError",
	"ReportRunnerError",
	"PENDING_REPORT_REQUEST_STATUSES",
	"TERMINAL_REPORT_REQUEST_STATUSES",
	"HealthStatus",
	"RenderingMode",
	"Report",
	"ReportArtifactKind",
	"ReportProcessorConfiguration",
	"ReportRequest",
	"ReportRequestPriority",
	"ReportRequestStatus",
	"SavedReportRecord",
	"domain_build_log_line",
	"domain_decode_report_data",
	"domain_encode_report_data",
	"domain_new_request_uuid",
	"domain_status_predecessors",
	"domain_utc_now",
	"domain_validate_request_uuid",
	"domain_validate_status_transition",
]
