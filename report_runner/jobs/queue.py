"""In-memory pending-request ordering with atomic claim semantics."""

from __future__ import annotations

import heapq
import threading
from collections.abc import Callable
from datetime import datetime

from report_runner.config import config_get_logger
from report_runner.domain import ReportRequest, domain_validate_request_uuid

logger = config_get_logger(__name__)

_QueueKey = tuple[int, datetime, int, str]


class ReportRequestQueue:
    """Priority queue of pending report requests.

    Ordering is priority rank, then `requested_at_utc`, then ledger id. Removal
    is lazy: heap slots whose uuid is no longer tracked are skipped on claim.
    Claims run the supplied ledger callback while the queue lock is held, so
    popping a uuid and moving it to `PROCESSING` is one atomic step per process;
    the ledger's conditional update makes it atomic across processes.
    """

    def __init__(self):
        self._heap: list[_QueueKey] = []
        self._entries: dict[str, _QueueKey] = {}
        self._lock = threading.Lock()

    def queue_push(self, request: ReportRequest) -> bool:
        """Insert one ledger-saved request into the pending ordering.

        Args:
            request: Persisted request with uuid, id and request timestamp.

        Returns:
            bool: True when inserted, False when the uuid is already queued.

        Raises:
            ValueError: Raised when the request was not saved to the ledger.
        """

        if request.uuid is None or request.report_request_id is None or request.requested_at_utc is None:
            raise ValueError("only ledger-saved report requests can be queued")

        queue_key: _QueueKey = (
            request.priority.priority_rank,
            request.requested_at_utc,
            request.report_request_id,
            request.uuid,
        )
        with self._lock:
            if request.uuid in self._entries:
                return False
            self._entries[request.uuid] = queue_key
            heapq.heappush(self._heap, queue_key)
        logger.debug("report_request_queued", uuid=request.uuid, priority=request.priority.value)
        return True

    def queue_position(self, uuid: str) -> int | None:
        """Return zero-based count of pending requests ahead of `uuid`.

        Args:
            uuid: Request identity.

        Returns:
            int | None: Position, or None when the uuid is not pending in this queue.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        with self._lock:
            queue_key = self._entries.get(normalized_uuid)
            if queue_key is None:
                return None
            return sum(1 for other_key in self._entries.values() if other_key < queue_key)

    def queue_claim_next(
        self,
        claim_callback: Callable[[str], ReportRequest | None],
    ) -> ReportRequest | None:
        """Pop and claim the next pending request.

        Args:
            claim_callback: Ledger transition to `PROCESSING`; returns None when
                the request was already claimed, deleted or otherwise moved on.

        Returns:
            ReportRequest | None: Claimed request, or None when nothing is claimable.

        Raises:
            RuntimeError: Raised when the claim callback fails; the popped uuid is dropped.
        """

        with self._lock:
            while self._heap:
                queue_key = heapq.heappop(self._heap)
                uuid = queue_key[3]
                if self._entries.get(uuid) != queue_key:
                    continue
                del self._entries[uuid]
                claimed_request = claim_callback(uuid)
                if claimed_request is not None:
                    return claimed_request
                logger.info("report_request_claim_skipped", uuid=uuid)
        return None

    def queue_claim(
        self,
        uuid: str,
        claim_callback: Callable[[str], ReportRequest | None],
    ) -> ReportRequest | None:
        """Claim one specific request, removing it from the pending ordering.

        Args:
            uuid: Request identity.
            claim_callback: Ledger transition to `PROCESSING`.

        Returns:
            ReportRequest | None: Claimed request, or None when not claimable.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        with self._lock:
            self._entries.pop(normalized_uuid, None)
            return claim_callback(normalized_uuid)

    def queue_remove(self, uuid: str) -> bool:
        """Drop one uuid from the pending ordering.

        Args:
            uuid: Request identity.

        Returns:
            bool: True when the uuid was queued.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

        normalized_uuid = domain_validate_request_uuid(uuid)
        with self._lock:
            return self._entries.pop(normalized_uuid, None) is not None

    def queue_size(self) -> int:
        with self._lock:
            return len(self._entries)

    def queue_pending_uuids(self) -> list[str]:
        """Return queued uuids in claim order."""

        with self._lock:
            return [queue_key[3] for queue_key in sorted(self._entries.values())]
