"""Bounded in-memory cache of completed reports with spill-to-store eviction."""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from report_runner.config import config_get_logger
from report_runner.domain import CapacityError, Report, domain_utc_now, domain_validate_request_uuid
from report_runner.storage import ArtifactStorePort

logger = config_get_logger(__name__)


@dataclass
class _CacheEntry:
    """Mutable cache slot for one report.

    Attributes:
        report: Cached report.
        completed_at_utc: Completion (or last replace) timestamp used for eviction order.
        sequence: Insertion counter breaking completion-time ties.
        persisted: Whether the report's streams are known to be durable.
    """

    report: Report
    completed_at_utc: datetime
    sequence: int
    persisted: bool

    def entry_eviction_key(self) -> tuple[datetime, int]:
        return (self.completed_at_utc, self.sequence)


class ReportResultCache:
    """Thread-safe mapping from request uuid to completed report.

    Size is bounded only through `cache_evict_overflow`; there is no time-based
    expiry. Eviction takes the entry with the oldest completion time and never
    drops an entry whose streams are not durable: it persists them first.
    """

    def __init__(
        self,
        artifact_store: ArtifactStorePort,
        hard_limit: int | None = None,
        clock: Callable[[], datetime] = domain_utc_now,
    ):
        """Initialize result cache.

        Args:
            artifact_store: Store used to persist entries before eviction.
            hard_limit: Optional size at which new inserts raise `CapacityError`.
            clock: Timestamp provider for completion times.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies or limits are invalid.
        """

        if artifact_store is None:
            raise ValueError("artifact_store must not be None")
        if hard_limit is not None and hard_limit < 1:
            raise ValueError("hard_limit must be >= 1")

        self._artifact_store = artifact_store
        self._hard_limit = hard_limit
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def cache_put(self, uuid: str, report: Report, persisted: bool = False) -> None:
        """Insert or replace one report and refresh its completion time.

        Args:
            uuid: Request identity.
            report: Completed report.
            persisted: Whether the report's streams are already durable.

        Returns:
            None: Cache is updated as side effect.

        Raises:
            ValueError: Raised when uuid is malformed or does not match the report.
            CapacityError: Raised when inserting a new uuid would exceed the hard limit.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        if report.report_uuid != normalized_uuid:
            raise ValueError("report uuid does not match cache key")

        with self._lock:
            if (
                self._hard_limit is not None
                and normalized_uuid not in self._entries
                and len(self._entries) >= self._hard_limit
            ):
                raise CapacityError(
                    f"report cache is full (hard_limit={self._hard_limit})",
                    error_code="CACHE_HARD_LIMIT_REACHED",
                )
            self._entries[normalized_uuid] = _CacheEntry(
                report=report,
                completed_at_utc=self._clock(),
                sequence=next(self._sequence),
                persisted=persisted,
            )

    def cache_get(self, uuid: str) -> Report | None:
        """Return a cached report without any disk fallback.

        Args:
            uuid: Request identity.

        Returns:
            Report | None: Cached report or None.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        with self._lock:
            entry = self._entries.get(normalized_uuid)
            return entry.report if entry is not None else None

    def cache_remove(self, uuid: str) -> bool:
        """Drop one entry regardless of persistence state (used on deletion).

        Args:
            uuid: Request identity.

        Returns:
            bool: True when an entry was removed.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        with self._lock:
            return self._entries.pop(normalized_uuid, None) is not None

    def cache_all(self) -> dict[str, Report]:
        """Return a snapshot mapping of every cached report."""

        with self._lock:
            return {uuid: entry.report for uuid, entry in self._entries.items()}

    def cache_size(self) -> int:
        """Return the number of cached reports."""

        with self._lock:
            return len(self._entries)

    def cache_persist_pending(self) -> list[str]:
        """Persist every entry whose streams are not yet durable.

        Returns:
            list[str]: Uuids persisted by this call.

        Raises:
            TypeError: Raised when report data is not serializable.
            OSError: Raised when the store write fails.
        """

        persisted_uuids: list[str] = []
        with self._lock:
            for uuid, entry in self._entries.items():
                if entry.persisted:
                    continue
                self._artifact_store.storage_persist_report(entry.report)
                entry.persisted = True
                persisted_uuids.append(uuid)

        if persisted_uuids:
            logger.info("report_cache_entries_persisted", count=len(persisted_uuids))
        return persisted_uuids

    def cache_evict_overflow(self, max_size: int) -> list[str]:
        """Evict oldest entries until the cache holds at most `max_size` reports.

        Args:
            max_size: Target maximum size.

        Returns:
            list[str]: Evicted uuids, oldest first.

        Raises:
            ValueError: Raised when max_size is negative.
            TypeError: Raised when a report must be persisted but is not serializable.
            OSError: Raised when persisting an entry fails; the entry stays cached.
        """

        if max_size < 0:
            raise ValueError("max_size must be >= 0")

        evicted_uuids: list[str] = []
        with self._lock:
            while len(self._entries) > max_size:
                oldest_uuid, oldest_entry = min(
                    self._entries.items(),
                    key=lambda item: item[1].entry_eviction_key(),
                )
                if not oldest_entry.persisted:
                    self._artifact_store.storage_persist_report(oldest_entry.report)
                    oldest_entry.persisted = True
                del self._entries[oldest_uuid]
                evicted_uuids.append(oldest_uuid)

        if evicted_uuids:
            logger.info("report_cache_overflow_evicted", count=len(evicted_uuids), max_size=max_size)
        return evicted_uuids
