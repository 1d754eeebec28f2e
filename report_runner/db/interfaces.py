"""Typed interfaces for database-layer services.

All SQL access must remain in the db package and its submodules.
"""

from collections.abc import Collection
from datetime import datetime
from typing import Protocol

from report_runner.domain import HealthStatus, ReportRequest, ReportRequestStatus, SavedReportRecord


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


class ReportRequestLedgerPort(Protocol):
    """Port definition for durable report request records."""

    def db_report_request_save(self, request: ReportRequest) -> tuple[ReportRequest, bool]:
        """Insert a request, or return the existing record for the same uuid.

        Args:
            request: Request with an assigned uuid.

        Returns:
            tuple[ReportRequest, bool]: Persisted record and whether it was newly created.

        Raises:
            ValueError: Raised when the request has no uuid.
            RuntimeError: Raised when persistence fails.
        """

    def db_report_request_get_by_id(self, report_request_id: int) -> ReportRequest | None:
        """Fetch one request by ledger id.

        Args:
            report_request_id: Ledger identifier.

        Returns:
            ReportRequest | None: Matching request or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_report_request_get_by_uuid(self, uuid: str) -> ReportRequest | None:
        """Fetch one request by uuid.

        Args:
            uuid: Client-visible request identity.

        Returns:
            ReportRequest | None: Matching request or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_report_request_list(
        self,
        definition_ref: str | None = None,
        requested_on_or_after: datetime | None = None,
        requested_on_or_before: datetime | None = None,
        statuses: Collection[ReportRequestStatus] | None = None,
        most_recent: int | None = None,
    ) -> list[ReportRequest]:
        """List requests matching optional filters, newest first.

        Args:
            definition_ref: Optional definition filter.
            requested_on_or_after: Optional lower bound on request timestamp.
            requested_on_or_before: Optional upper bound on request timestamp.
            statuses: Optional status set filter.
            most_recent: Optional maximum number of rows.

        Returns:
            list[ReportRequest]: Matching requests.

        Raises:
            ValueError: Raised when most_recent is invalid.
            RuntimeError: Raised when database read fails.
        """

    def db_report_request_transition(
        self,
        uuid: str,
        target_status: ReportRequestStatus,
        timestamps: dict[str, datetime] | None = None,
    ) -> ReportRequest | None:
        """Move a request to `target_status` when its current status allows it.

        Args:
            uuid: Request identity.
            target_status: Desired next status.
            timestamps: Optional lifecycle timestamp columns to set.

        Returns:
            ReportRequest | None: Updated record, or None when the transition was not applied.

        Raises:
            ValueError: Raised when a timestamp column is unknown.
            RuntimeError: Raised when persistence fails.
        """

    def db_report_request_reset_stale_processing(self) -> list[str]:
        """Reset every `PROCESSING` request to `REQUESTED`.

        Returns:
            list[str]: Uuids that were reset.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

    def db_report_request_list_expired(self, requested_before: datetime) -> list[ReportRequest]:
        """List terminal, unsaved requests older than a cutoff.

        Args:
            requested_before: Exclusive request timestamp cutoff.

        Returns:
            list[ReportRequest]: Requests eligible for retention deletion.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_report_request_list_processing_started_before(self, started_before: datetime) -> list[ReportRequest]:
        """List `PROCESSING` requests whose processing started before a cutoff.

        Args:
            started_before: Exclusive processing start cutoff.

        Returns:
            list[ReportRequest]: Overdue requests.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_report_request_purge(self, uuid: str) -> bool:
        """Delete one request and its saved-report marker.

        Args:
            uuid: Request identity.

        Returns:
            bool: True when a request row was deleted.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

    def db_saved_report_save(self, uuid: str, description: str | None) -> SavedReportRecord:
        """Create or update the permanent save marker of a request.

        Args:
            uuid: Request identity.
            description: Optional description.

        Returns:
            SavedReportRecord: Persisted marker.

        Raises:
            LookupError: Raised when the request does not exist.
            RuntimeError: Raised when persistence fails.
        """

    def db_saved_report_get(self, uuid: str) -> SavedReportRecord | None:
        """Fetch the save marker of a request.

        Args:
            uuid: Request identity.

        Returns:
            SavedReportRecord | None: Marker or None when the request was never saved.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_saved_report_delete(self, uuid: str) -> bool:
        """Remove the save marker of a request.

        Args:
            uuid: Request identity.

        Returns:
            bool: True when a marker was removed.

        Raises:
            RuntimeError: Raised when persistence fails.
        """
