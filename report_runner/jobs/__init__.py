"""Job layer package for report scheduling and execution."""

from .dispatcher import PeriodicTickLoop
from .execution_engine import ReportExecutionEngine
from .interfaces import ReportEvaluatorPort, ReportExecutionResult, ReportProcessorPort, ReportRendererPort
from .processing import FILE_EXPORT_PROCESSOR_KIND, FileExportReportProcessor, ReportProcessorRegistry
from .queue import ReportRequestQueue
from .rendering import (
	JSON_RENDERER_KIND,
	RAW_RENDERER_KIND,
	JsonReportRenderer,
	RawPassthroughRenderer,
	ReportRendererRegistry,
	registry_create_default_renderers,
)
from .report_reader import ReportReader
from .retention import ReportRetentionSweeper, RetentionSweepResult
from .scheduler import ReportScheduler

__all__ = [
	"FILE_EXPORT_PROCESSOR_KIND",
	"JSON_RENDERER_KIND",
	"RAW_RENDERER_KIND",
	"FileExportReportProcessor",
	"JsonReportRenderer",
	"PeriodicTickLoop",
	"RawPassthroughRenderer",
	"ReportEvaluatorPort",
	"ReportExecutionEngine",
	"ReportExecutionResult",
	"ReportProcessorPort",
	"ReportProcessorRegistry",
	"ReportReader",
	"ReportRendererPort",
	"ReportRendererRegistry",
	"ReportRequestQueue",
	"ReportRetentionSweeper",
	"ReportScheduler",
	"RetentionSweepResult",
	"registry_create_default_renderers",
]
