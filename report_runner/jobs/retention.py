"""Retention sweeps: cache flush, age-based deletion and execution timeouts."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from report_runner.cache import ReportResultCache
from report_runner.config import config_get_logger
from report_runner.db import ReportRequestLedgerPort
from report_runner.domain import ReportArtifactKind, ReportRequestStatus, domain_build_log_line, domain_utc_now
from report_runner.storage import ArtifactStorePort

logger = config_get_logger(__name__)


@dataclass(frozen=True)
class RetentionSweepResult:
    """Summary of one combined retention sweep.

    Attributes:
        timed_out_uuids: Requests force-failed by the execution timeout.
        persisted_uuids: Cache entries made durable.
        evicted_uuids: Cache entries evicted to respect the size bound.
        deleted_uuids: Requests purged by age.
    """

    timed_out_uuids: tuple[str, ...] = ()
    persisted_uuids: tuple[str, ...] = ()
    evicted_uuids: tuple[str, ...] = ()
    deleted_uuids: tuple[str, ...] = ()

    def result_to_payload(self) -> dict[str, list[str]]:
        return {
            "timed_out": list(self.timed_out_uuids),
            "persisted": list(self.persisted_uuids),
            "evicted": list(self.evicted_uuids),
            "deleted": list(self.deleted_uuids),
        }


class ReportRetentionSweeper:
    """Apply cache bounds and retention rules to the ledger, cache and store."""

    def __init__(
        self,
        ledger: ReportRequestLedgerPort,
        artifact_store: ArtifactStorePort,
        cache: ReportResultCache,
        clock: Callable[[], datetime] = domain_utc_now,
    ):
        """Initialize retention sweeper.

        Args:
            ledger: Request ledger.
            artifact_store: Durable artifact storage.
            cache: Completed-report cache.
            clock: Timestamp provider.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies are missing.
        """

        if ledger is None:
            raise ValueError("ledger must not be None")
        if artifact_store is None:
            raise ValueError("artifact_store must not be None")
        if cache is None:
            raise ValueError("cache must not be None")

        self._ledger = ledger
        self._artifact_store = artifact_store
        self._cache = cache
        self._clock = clock

    def retention_persist_cached_reports(self, max_cache_size: int) -> tuple[list[str], list[str]]:
        """Persist every unpersisted cache entry, then evict down to `max_cache_size`.

        Args:
            max_cache_size: Target maximum cache size.

        Returns:
            tuple[list[str], list[str]]: Persisted uuids and evicted uuids.

        Raises:
            ValueError: Raised when max_cache_size is negative.
            OSError: Raised when persisting fails.
        """

        persisted_uuids = self._cache.cache_persist_pending()
        evicted_uuids = self._cache.cache_evict_overflow(max_cache_size)
        return persisted_uuids, evicted_uuids

    def retention_delete_old_requests(self, max_age_hours: int) -> list[str]:
        """Purge terminal, unsaved requests older than `max_age_hours`.

        Args:
            max_age_hours: Age threshold in hours; zero disables deletion.

        Returns:
            list[str]: Purged uuids.

        Raises:
            ValueError: Raised when max_age_hours is negative.
            RuntimeError: Raised when ledger access fails.
        """

        if max_age_hours < 0:
            raise ValueError("max_age_hours must be >= 0")
        if max_age_hours == 0:
            return []

        cutoff_utc = self._clock() - timedelta(hours=max_age_hours)
        deleted_uuids: list[str] = []
        for expired_request in self._ledger.db_report_request_list_expired(cutoff_utc):
            uuid = expired_request.uuid
            self._cache.cache_remove(uuid)
            self._artifact_store.storage_purge(uuid)
            if self._ledger.db_report_request_purge(uuid):
                deleted_uuids.append(uuid)

        if deleted_uuids:
            logger.info("report_requests_expired", count=len(deleted_uuids), max_age_hours=max_age_hours)
        return deleted_uuids

    def retention_fail_timed_out_requests(self, timeout_seconds: float | None) -> list[str]:
        """Force-fail `PROCESSING` requests that exceeded the execution timeout.

        Args:
            timeout_seconds: Execution timeout; None disables the check.

        Returns:
            list[str]: Uuids moved to `FAILED`.

        Raises:
            ValueError: Raised when timeout_seconds is not positive.
            RuntimeError: Raised when ledger access fails.
        """

        if timeout_seconds is None:
            return []
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        now_utc = self._clock()
        started_before = now_utc - timedelta(seconds=timeout_seconds)
        failed_uuids: list[str] = []
        for stale_request in self._ledger.db_report_request_list_processing_started_before(started_before):
            uuid = stale_request.uuid
            failed_request = self._ledger.db_report_request_transition(uuid, ReportRequestStatus.FAILED)
            if failed_request is None:
                continue

            message = f"execution timed out after {timeout_seconds:g} seconds"
            self._artifact_store.storage_write_artifact(
                uuid,
                ReportArtifactKind.ERROR,
                f"ExecutionTimeoutError: {message}\n".encode("utf-8"),
            )
            log_line = domain_build_log_line(message, level="ERROR", at_utc=now_utc)
            self._artifact_store.storage_append_artifact(uuid, ReportArtifactKind.LOG, f"{log_line}\n".encode("utf-8"))
            failed_uuids.append(uuid)

        if failed_uuids:
            logger.warning("report_requests_timed_out", count=len(failed_uuids), timeout_seconds=timeout_seconds)
        return failed_uuids

    def retention_sweep(
        self,
        max_cache_size: int,
        max_age_hours: int,
        timeout_seconds: float | None = None,
    ) -> RetentionSweepResult:
        """Run timeout, cache flush and age-based deletion in one pass.

        Args:
            max_cache_size: Target maximum cache size.
            max_age_hours: Age threshold in hours; zero disables deletion.
            timeout_seconds: Optional execution timeout.

        Returns:
            RetentionSweepResult: Summary of affected uuids.

        Raises:
            RuntimeError: Raised when ledger access fails.
            OSError: Raised when artifact persistence fails.
        """

        timed_out_uuids = self.retention_fail_timed_out_requests(timeout_seconds)
        persisted_uuids, evicted_uuids = self.retention_persist_cached_reports(max_cache_size)
        deleted_uuids = self.retention_delete_old_requests(max_age_hours)
        return RetentionSweepResult(
            timed_out_uuids=tuple(timed_out_uuids),
            persisted_uuids=tuple(persisted_uuids),
            evicted_uuids=tuple(evicted_uuids),
            deleted_uuids=tuple(deleted_uuids),
        )
