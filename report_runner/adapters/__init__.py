"""Adapter layer package for report evaluation boundaries."""

from .evaluation_errors import (
	EvaluationConnectionError,
	EvaluationRejectedError,
	EvaluationResponseError,
	EvaluationTimeoutError,
)
from .http_evaluator import CallableReportEvaluator, HttpReportEvaluator
from .interfaces import ReportEvaluatorPort

__all__ = [
	"CallableReportEvaluator",
	"EvaluationConnectionError",
	"EvaluationRejectedError",
	"EvaluationResponseError",
	"EvaluationTimeoutError",
	"HttpReportEvaluator",
	"ReportEvaluatorPort",
]
