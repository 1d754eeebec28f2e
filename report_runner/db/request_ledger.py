"""Database service for report request lifecycle persistence and claim enforcement."""

from __future__ import annotations

import json
from collections.abc import Collection
from datetime import datetime, timezone
from typing import Any, Final

from sqlalchemy import DateTime, Engine, bindparam, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from report_runner.domain import (
    TERMINAL_REPORT_REQUEST_STATUSES,
    RenderingMode,
    ReportRequest,
    ReportRequestPriority,
    ReportRequestStatus,
    SavedReportRecord,
    domain_status_predecessors,
    domain_utc_now,
    domain_validate_request_uuid,
)

from .interfaces import ReportRequestLedgerPort

_TIMESTAMP_COLUMNS: Final[tuple[str, ...]] = (
    "requested_at_utc",
    "evaluate_started_at_utc",
    "evaluate_completed_at_utc",
    "render_completed_at_utc",
)

_SELECT_REPORT_REQUEST_SQL: Final[str] = (
    "SELECT "
    "report_request_id, uuid, definition_ref, parameters, rendering_mode, priority, requested_by, "
    "requested_at_utc, evaluate_started_at_utc, evaluate_completed_at_utc, render_completed_at_utc, "
    "status, description "
    "FROM report_request "
)


def _db_timestamp_type() -> DateTime:
    return DateTime(timezone=True)


def _db_to_utc(value: datetime) -> datetime:
    """Normalize a timestamp to timezone-aware UTC.

    Args:
        value: Naive (assumed UTC) or aware timestamp.

    Returns:
        datetime: Aware UTC timestamp.

    Raises:
        TypeError: Raised when value is not a datetime.
    """

    if not isinstance(value, datetime):
        raise TypeError("timestamp value must be a datetime")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _db_from_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return _db_to_utc(value)


class SQLAlchemyReportRequestLedger(ReportRequestLedgerPort):
    """SQLAlchemy-backed report request ledger.

    This service centralizes report request write/read operations in the db
    layer, including the conditional status updates that make a claim
    at-most-once across concurrent dispatchers and processes.
    """

    def __init__(self, engine: Engine):
        """Initialize report request ledger.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_report_request_save(self, request: ReportRequest) -> tuple[ReportRequest, bool]:
        """Insert a request, or return the existing record for the same uuid.

        Args:
            request: Request with an assigned uuid.

        Returns:
            tuple[ReportRequest, bool]: Persisted record and whether it was newly created.

        Raises:
            ValueError: Raised when uuid or definition reference are invalid.
            RuntimeError: Raised when persistence fails.
        """

        normalized_uuid = domain_validate_request_uuid(request.uuid or "")
        normalized_definition_ref = self._validate_non_empty_text(request.definition_ref, "definition_ref")
        requested_at_utc = _db_to_utc(request.requested_at_utc or domain_utc_now())

        insert_statement = text(
            "INSERT INTO report_request ("
            "uuid, definition_ref, parameters, rendering_mode, priority, requested_by, "
            "requested_at_utc, status, description"
            ") VALUES ("
            ":uuid, :definition_ref, :parameters, :rendering_mode, :priority, :requested_by, "
            ":requested_at_utc, :status, :description"
            ")"
        ).bindparams(bindparam("requested_at_utc", type_=_db_timestamp_type()))

        try:
            with self._engine.begin() as connection:
                existing_record = self._db_fetch_by_uuid(connection=connection, uuid=normalized_uuid)
                if existing_record is not None:
                    return existing_record, False

                connection.execute(
                    insert_statement,
                    {
                        "uuid": normalized_uuid,
                        "definition_ref": normalized_definition_ref,
                        "parameters": json.dumps(request.parameters, sort_keys=True),
                        "rendering_mode": json.dumps(request.rendering_mode.mode_to_payload(), sort_keys=True),
                        "priority": request.priority.value,
                        "requested_by": request.requested_by,
                        "requested_at_utc": requested_at_utc,
                        "status": request.status.value,
                        "description": request.description,
                    },
                )
                created_record = self._db_fetch_by_uuid(connection=connection, uuid=normalized_uuid)
                if created_record is None:
                    raise RuntimeError("report request insert was not visible inside its transaction")
                return created_record, True
        except IntegrityError:
            concurrent_record = self.db_report_request_get_by_uuid(uuid=normalized_uuid)
            if concurrent_record is None:
                raise RuntimeError("report request uuid conflict occurred without existing row") from None
            return concurrent_record, False
        except SQLAlchemyError as error:
            raise RuntimeError("failed to save report request") from error

    def db_report_request_get_by_id(self, report_request_id: int) -> ReportRequest | None:
        """Fetch one request by ledger id.

        Args:
            report_request_id: Ledger identifier.

        Returns:
            ReportRequest | None: Matching request or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    self._db_select_statement("WHERE report_request_id = :report_request_id"),
                    {"report_request_id": report_request_id},
                ).mappings().first()
                if row is None:
                    return None
                return self._map_report_request(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch report request by id") from error

    def db_report_request_get_by_uuid(self, uuid: str) -> ReportRequest | None:
        """Fetch one request by uuid.

        Args:
            uuid: Client-visible request identity.

        Returns:
            ReportRequest | None: Matching request or None.

        Raises:
            ValueError: Raised when uuid is malformed.
            RuntimeError: Raised when database read fails.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        try:
            with self._engine.connect() as connection:
                return self._db_fetch_by_uuid(connection=connection, uuid=normalized_uuid)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch report request by uuid") from error

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
            requested_on_or_after: Optional inclusive lower bound on request timestamp.
            requested_on_or_before: Optional inclusive upper bound on request timestamp.
            statuses: Optional status set filter; an empty set matches nothing.
            most_recent: Optional maximum number of rows.

        Returns:
            list[ReportRequest]: Matching requests ordered by request timestamp descending.

        Raises:
            ValueError: Raised when most_recent is invalid.
            RuntimeError: Raised when database read fails.
        """

        if most_recent is not None and most_recent < 1:
            raise ValueError("most_recent must be >= 1")
        if statuses is not None and len(statuses) == 0:
            return []

        where_fragments: list[str] = []
        parameters: dict[str, Any] = {}
        bind_parameters = []
        if definition_ref is not None:
            where_fragments.append("definition_ref = :definition_ref")
            parameters["definition_ref"] = definition_ref
        if requested_on_or_after is not None:
            where_fragments.append("requested_at_utc >= :requested_on_or_after")
            parameters["requested_on_or_after"] = _db_to_utc(requested_on_or_after)
            bind_parameters.append(bindparam("requested_on_or_after", type_=_db_timestamp_type()))
        if requested_on_or_before is not None:
            where_fragments.append("requested_at_utc <= :requested_on_or_before")
            parameters["requested_on_or_before"] = _db_to_utc(requested_on_or_before)
            bind_parameters.append(bindparam("requested_on_or_before", type_=_db_timestamp_type()))
        if statuses is not None:
            where_fragments.append("status IN :statuses")
            parameters["statuses"] = sorted(status.value for status in statuses)
            bind_parameters.append(bindparam("statuses", expanding=True))

        clause_sql = ""
        if where_fragments:
            clause_sql = "WHERE " + " AND ".join(where_fragments) + " "
        clause_sql += "ORDER BY requested_at_utc DESC, report_request_id DESC"
        if most_recent is not None:
            clause_sql += " LIMIT :most_recent"
            parameters["most_recent"] = most_recent

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    self._db_select_statement(clause_sql, bind_parameters),
                    parameters,
                ).mappings().all()
                return [self._map_report_request(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list report requests") from error

    def db_report_request_transition(
        self,
        uuid: str,
        target_status: ReportRequestStatus,
        timestamps: dict[str, datetime] | None = None,
    ) -> ReportRequest | None:
        """Move a request to `target_status` when its current status allows it.

        The status guard lives in the UPDATE predicate so two concurrent callers
        can never both apply the same transition.

        Args:
            uuid: Request identity.
            target_status: Desired next status.
            timestamps: Optional lifecycle timestamp columns to set.

        Returns:
            ReportRequest | None: Updated record, or None when the transition was not applied.

        Raises:
            ValueError: Raised when uuid is malformed or a timestamp column is unknown.
            RuntimeError: Raised when persistence fails.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        expected_statuses = domain_status_predecessors(target_status)
        if not expected_statuses:
            return None

        set_fragments = ["status = :target_status"]
        parameters: dict[str, Any] = {
            "uuid": normalized_uuid,
            "target_status": target_status.value,
            "expected_statuses": sorted(status.value for status in expected_statuses),
        }
        bind_parameters = [bindparam("expected_statuses", expanding=True)]
        for column_name, column_value in sorted((timestamps or {}).items()):
            if column_name not in _TIMESTAMP_COLUMNS:
                raise ValueError(f"unsupported timestamp column={column_name}")
            set_fragments.append(f"{column_name} = :{column_name}")
            parameters[column_name] = _db_to_utc(column_value)
            bind_parameters.append(bindparam(column_name, type_=_db_timestamp_type()))

        update_statement = text(
            "UPDATE report_request SET "
            + ", ".join(set_fragments)
            + " WHERE uuid = :uuid AND status IN :expected_statuses"
        ).bindparams(*bind_parameters)

        try:
            with self._engine.begin() as connection:
                update_result = connection.execute(update_statement, parameters)
                if update_result.rowcount != 1:
                    return None
                return self._db_fetch_by_uuid(connection=connection, uuid=normalized_uuid)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to transition report request status") from error

    def db_report_request_reset_stale_processing(self) -> list[str]:
        """Reset every `PROCESSING` request to `REQUESTED`.

        Returns:
            list[str]: Uuids that were reset.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        try:
            with self._engine.begin() as connection:
                stale_rows = connection.execute(
                    text("SELECT uuid FROM report_request WHERE status = :status ORDER BY report_request_id"),
                    {"status": ReportRequestStatus.PROCESSING.value},
                ).all()
                connection.execute(
                    text(
                        "UPDATE report_request SET "
                        "status = :reset_status, evaluate_started_at_utc = NULL "
                        "WHERE status = :status"
                    ),
                    {
                        "reset_status": ReportRequestStatus.REQUESTED.value,
                        "status": ReportRequestStatus.PROCESSING.value,
                    },
                )
                return [str(row[0]) for row in stale_rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to reset stale processing report requests") from error

    def db_report_request_list_expired(self, requested_before: datetime) -> list[ReportRequest]:
        """List terminal, unsaved requests older than a cutoff.

        Args:
            requested_before: Exclusive request timestamp cutoff.

        Returns:
            list[ReportRequest]: Requests eligible for retention deletion, oldest first.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    self._db_select_statement(
                        "WHERE status IN :terminal_statuses "
                        "AND requested_at_utc < :requested_before "
                        "AND NOT EXISTS ("
                        "SELECT 1 FROM saved_report WHERE saved_report.uuid = report_request.uuid"
                        ") "
                        "ORDER BY requested_at_utc ASC, report_request_id ASC",
                        [
                            bindparam("terminal_statuses", expanding=True),
                            bindparam("requested_before", type_=_db_timestamp_type()),
                        ],
                    ),
                    {
                        "terminal_statuses": sorted(status.value for status in TERMINAL_REPORT_REQUEST_STATUSES),
                        "requested_before": _db_to_utc(requested_before),
                    },
                ).mappings().all()
                return [self._map_report_request(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list expired report requests") from error

    def db_report_request_list_processing_started_before(self, started_before: datetime) -> list[ReportRequest]:
        """List `PROCESSING` requests whose processing started before a cutoff.

        Args:
            started_before: Exclusive processing start cutoff.

        Returns:
            list[ReportRequest]: Overdue requests.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    self._db_select_statement(
                        "WHERE status = :status AND evaluate_started_at_utc < :started_before "
                        "ORDER BY evaluate_started_at_utc ASC, report_request_id ASC",
                        [bindparam("started_before", type_=_db_timestamp_type())],
                    ),
                    {
                        "status": ReportRequestStatus.PROCESSING.value,
                        "started_before": _db_to_utc(started_before),
                    },
                ).mappings().all()
                return [self._map_report_request(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list overdue report requests") from error

    def db_report_request_purge(self, uuid: str) -> bool:
        """Delete one request and its saved-report marker.

        Args:
            uuid: Request identity.

        Returns:
            bool: True when a request row was deleted.

        Raises:
            ValueError: Raised when uuid is malformed.
            RuntimeError: Raised when persistence fails.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        try:
            with self._engine.begin() as connection:
                connection.execute(text("DELETE FROM saved_report WHERE uuid = :uuid"), {"uuid": normalized_uuid})
                delete_result = connection.execute(
                    text("DELETE FROM report_request WHERE uuid = :uuid"),
                    {"uuid": normalized_uuid},
                )
                return delete_result.rowcount == 1
        except SQLAlchemyError as error:
            raise RuntimeError("failed to purge report request") from error

    def db_saved_report_save(self, uuid: str, description: str | None) -> SavedReportRecord:
        """Create or update the permanent save marker of a request.

        Args:
            uuid: Request identity.
            description: Optional description.

        Returns:
            SavedReportRecord: Persisted marker.

        Raises:
            LookupError: Raised when the request does not exist.
            ValueError: Raised when uuid is malformed.
            RuntimeError: Raised when persistence fails.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        saved_at_utc = domain_utc_now()
        try:
            with self._engine.begin() as connection:
                if self._db_fetch_by_uuid(connection=connection, uuid=normalized_uuid) is None:
                    raise LookupError("report request not found")

                update_result = connection.execute(
                    text("UPDATE saved_report SET description = :description WHERE uuid = :uuid"),
                    {"uuid": normalized_uuid, "description": description},
                )
                if update_result.rowcount == 0:
                    connection.execute(
                        text(
                            "INSERT INTO saved_report (uuid, description, saved_at_utc) "
                            "VALUES (:uuid, :description, :saved_at_utc)"
                        ).bindparams(bindparam("saved_at_utc", type_=_db_timestamp_type())),
                        {"uuid": normalized_uuid, "description": description, "saved_at_utc": saved_at_utc},
                    )

                saved_record = self._db_fetch_saved_report(connection=connection, uuid=normalized_uuid)
                if saved_record is None:
                    raise RuntimeError("saved report marker was not visible inside its transaction")
                return saved_record
        except SQLAlchemyError as error:
            raise RuntimeError("failed to save report") from error

    def db_saved_report_get(self, uuid: str) -> SavedReportRecord | None:
        """Fetch the save marker of a request.

        Args:
            uuid: Request identity.

        Returns:
            SavedReportRecord | None: Marker or None when the request was never saved.

        Raises:
            ValueError: Raised when uuid is malformed.
            RuntimeError: Raised when database read fails.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        try:
            with self._engine.connect() as connection:
                return self._db_fetch_saved_report(connection=connection, uuid=normalized_uuid)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch saved report") from error

    def db_saved_report_delete(self, uuid: str) -> bool:
        """Remove the save marker of a request.

        Args:
            uuid: Request identity.

        Returns:
            bool: True when a marker was removed.

        Raises:
            ValueError: Raised when uuid is malformed.
            RuntimeError: Raised when persistence fails.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        try:
            with self._engine.begin() as connection:
                delete_result = connection.execute(
                    text("DELETE FROM saved_report WHERE uuid = :uuid"),
                    {"uuid": normalized_uuid},
                )
                return delete_result.rowcount == 1
        except SQLAlchemyError as error:
            raise RuntimeError("failed to delete saved report") from error

    def _db_select_statement(self, clause_sql: str, bind_parameters: list | None = None):
        """Build a typed report request SELECT with a fixed column list.

        Args:
            clause_sql: WHERE/ORDER/LIMIT clause appended to the fixed SELECT.
            bind_parameters: Optional typed or expanding bind parameters.

        Returns:
            TextualSelect: Statement with timestamp result columns typed.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        statement = text(_SELECT_REPORT_REQUEST_SQL + clause_sql)
        if bind_parameters:
            statement = statement.bindparams(*bind_parameters)
        return statement.columns(**{column_name: _db_timestamp_type() for column_name in _TIMESTAMP_COLUMNS})

    def _db_fetch_by_uuid(self, connection, uuid: str) -> ReportRequest | None:
        row = connection.execute(
            self._db_select_statement("WHERE uuid = :uuid"),
            {"uuid": uuid},
        ).mappings().first()
        if row is None:
            return None
        return self._map_report_request(row)

    def _db_fetch_saved_report(self, connection, uuid: str) -> SavedReportRecord | None:
        row = connection.execute(
            text("SELECT uuid, description, saved_at_utc FROM saved_report WHERE uuid = :uuid").columns(
                saved_at_utc=_db_timestamp_type()
            ),
            {"uuid": uuid},
        ).mappings().first()
        if row is None:
            return None
        return SavedReportRecord(
            uuid=str(row["uuid"]),
            description=row["description"],
            saved_at_utc=_db_to_utc(row["saved_at_utc"]),
        )

    def _map_report_request(self, row: Any) -> ReportRequest:
        """Map SQLAlchemy row mapping to typed report request.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            ReportRequest: Typed request record.

        Raises:
            TypeError: Raised when JSON columns have an incompatible shape.
            ValueError: Raised when enum columns hold unknown values.
        """

        parameters_value = json.loads(row["parameters"]) if row["parameters"] else {}
        if not isinstance(parameters_value, dict):
            raise TypeError("report_request.parameters must be a JSON object")
        rendering_mode_value = json.loads(row["rendering_mode"])
        if not isinstance(rendering_mode_value, dict):
            raise TypeError("report_request.rendering_mode must be a JSON object")

        return ReportRequest(
            report_request_id=int(row["report_request_id"]),
            uuid=str(row["uuid"]),
            definition_ref=row["definition_ref"],
            parameters=parameters_value,
            rendering_mode=RenderingMode.mode_from_payload(rendering_mode_value),
            priority=ReportRequestPriority(row["priority"]),
            requested_by=row["requested_by"],
            requested_at_utc=_db_from_utc(row["requested_at_utc"]),
            evaluate_started_at_utc=_db_from_utc(row["evaluate_started_at_utc"]),
            evaluate_completed_at_utc=_db_from_utc(row["evaluate_completed_at_utc"]),
            render_completed_at_utc=_db_from_utc(row["render_completed_at_utc"]),
            status=ReportRequestStatus(row["status"]),
            description=row["description"],
        )

    def _validate_non_empty_text(self, value: str, field_name: str) -> str:
        """Validate required text input and return stripped value.

        Args:
            value: Candidate string value.
            field_name: Field name for error reporting.

        Returns:
            str: Stripped non-empty value.

        Raises:
            ValueError: Raised when value is blank.
        """

        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError(f"{field_name} must not be blank")
        return stripped_value
