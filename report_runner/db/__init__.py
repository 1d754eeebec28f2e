"""Database layer package for all SQL and persistence boundaries."""

from .health import SQLAlchemyDatabaseHealthService
from .interfaces import DatabaseHealthPort, ReportRequestLedgerPort
from .request_ledger import SQLAlchemyReportRequestLedger
from .session import db_create_engine

__all__ = [
	"DatabaseHealthPort",
	"ReportRequestLedgerPort",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyReportRequestLedger",
	"db_create_engine",
]
