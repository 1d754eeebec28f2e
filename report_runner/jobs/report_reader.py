"""Read composition over the result cache, artifact store and ledger."""

from __future__ import annotations

from report_runner.cache import ReportResultCache
from report_runner.db import ReportRequestLedgerPort
from report_runner.domain import (
    ReportArtifactKind,
    SavedReportRecord,
    domain_encode_report_data,
    domain_validate_request_uuid,
)
from report_runner.storage import ArtifactStorePort


class ReportReader:
    """Serve report artifacts by uuid, cache first for `data` and `output`.

    Unknown uuids yield None; malformed uuids raise `ValueError`.
    """

    def __init__(self, ledger: ReportRequestLedgerPort, artifact_store: ArtifactStorePort, cache: ReportResultCache):
        if ledger is None:
            raise ValueError("ledger must not be None")
        if artifact_store is None:
            raise ValueError("artifact_store must not be None")
        if cache is None:
            raise ValueError("cache must not be None")

        self._ledger = ledger
        self._artifact_store = artifact_store
        self._cache = cache

    def reader_load_data(self, uuid: str) -> bytes | None:
        """Return encoded `data` stream bytes.

        Args:
            uuid: Request identity.

        Returns:
            bytes | None: Canonical JSON bytes, or None when not available.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        cached_report = self._cache.cache_get(normalized_uuid)
        if cached_report is not None:
            return domain_encode_report_data(cached_report.data)
        return self._artifact_store.storage_read_artifact(normalized_uuid, ReportArtifactKind.DATA)

    def reader_load_output(self, uuid: str) -> bytes | None:
        """Return rendered `output` stream bytes.

        Args:
            uuid: Request identity.

        Returns:
            bytes | None: Rendered bytes, or None for raw modes and unknown requests.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        cached_report = self._cache.cache_get(normalized_uuid)
        if cached_report is not None and cached_report.rendered_output is not None:
            return cached_report.rendered_output
        return self._artifact_store.storage_read_artifact(normalized_uuid, ReportArtifactKind.OUTPUT)

    def reader_load_error(self, uuid: str) -> str | None:
        normalized_uuid = domain_validate_request_uuid(uuid)
        error_payload = self._artifact_store.storage_read_artifact(normalized_uuid, ReportArtifactKind.ERROR)
        if error_payload is None:
            return None
        return error_payload.decode("utf-8", errors="replace")

    def reader_load_log(self, uuid: str) -> list[str] | None:
        """Return `log` stream lines.

        Args:
            uuid: Request identity.

        Returns:
            list[str] | None: Log lines without line terminators, or None when no log exists.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        log_payload = self._artifact_store.storage_read_artifact(normalized_uuid, ReportArtifactKind.LOG)
        if log_payload is None:
            return None
        return log_payload.decode("utf-8", errors="replace").splitlines()

    def reader_load_report(self, uuid: str) -> SavedReportRecord | None:
        """Return the permanent save record of a report, if it was saved."""

        normalized_uuid = domain_validate_request_uuid(uuid)
        return self._ledger.db_saved_report_get(normalized_uuid)
