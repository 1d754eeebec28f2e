"""Database health service for ledger connectivity and backlog checks."""

from sqlalchemy import Engine, bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from report_runner.domain import PENDING_REPORT_REQUEST_STATUSES, HealthStatus, ReportRequestStatus

from .interfaces import DatabaseHealthPort


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service that verifies the request ledger is queryable."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL with credentials hidden.

        Returns:
            str: Rendered engine URL string.

        Raises:
            RuntimeError: Raised if URL rendering fails.
        """

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Query the ledger backlog to prove schema and connectivity.

        Returns:
            HealthStatus: Health payload with pending and processing counts.

        Raises:
            ConnectionError: Raised when the ledger cannot be queried.
        """

        try:
            with self._engine.connect() as connection:
                pending_count = connection.execute(
                    text("SELECT COUNT(*) FROM report_request WHERE status IN :statuses").bindparams(
                        bindparam("statuses", expanding=True)
                    ),
                    {"statuses": sorted(status.value for status in PENDING_REPORT_REQUEST_STATUSES)},
                ).scalar_one()
                processing_count = connection.execute(
                    text("SELECT COUNT(*) FROM report_request WHERE status = :status"),
                    {"status": ReportRequestStatus.PROCESSING.value},
                ).scalar_one()
        except SQLAlchemyError as error:
            raise ConnectionError("request ledger health check failed") from error

        return HealthStatus(
            status="ok",
            detail=f"request ledger reachable; pending={pending_count}, processing={processing_count}",
        )
