"""Report request scheduling: enqueue, claim and dispatch to the worker pool."""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import datetime

from report_runner.config import config_get_logger
from report_runner.db import ReportRequestLedgerPort
from report_runner.domain import (
    PENDING_REPORT_REQUEST_STATUSES,
    Report,
    ReportRequest,
    ReportRequestPriority,
    ReportRequestStatus,
    ReportRunnerError,
    domain_new_request_uuid,
    domain_utc_now,
    domain_validate_request_uuid,
)

from .execution_engine import ReportExecutionEngine
from .interfaces import ReportExecutionResult
from .queue import ReportRequestQueue

logger = config_get_logger(__name__)


class ReportScheduler:
    """Own the pending queue and the bounded worker pool.

    One scheduler instance is constructed per process; `scheduler_recover`
    rebuilds its queue from the ledger and `scheduler_shutdown` drains the pool.
    """

    def __init__(
        self,
        ledger: ReportRequestLedgerPort,
        queue: ReportRequestQueue,
        engine: ReportExecutionEngine,
        max_concurrent_executions: int = 1,
        executor: ThreadPoolExecutor | None = None,
        clock: Callable[[], datetime] = domain_utc_now,
    ):
        """Initialize scheduler.

        Args:
            ledger: Request ledger.
            queue: Pending request ordering.
            engine: Execution engine run by workers and synchronous callers.
            max_concurrent_executions: Worker pool size and upper in-flight bound for dispatch.
            executor: Optional worker pool; created with `max_concurrent_executions` workers when omitted.
            clock: Timestamp provider.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies or bounds are invalid.
        """

        if ledger is None:
            raise ValueError("ledger must not be None")
        if queue is None:
            raise ValueError("queue must not be None")
        if engine is None:
            raise ValueError("engine must not be None")
        if max_concurrent_executions < 1:
            raise ValueError("max_concurrent_executions must be >= 1")

        self._ledger = ledger
        self._queue = queue
        self._engine = engine
        self._max_concurrent_executions = max_concurrent_executions
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_concurrent_executions,
            thread_name_prefix="report-worker",
        )
        self._clock = clock
        self._in_flight: dict[str, Future] = {}
        self._in_flight_lock = threading.Lock()
        self._accepting_work = True

    @property
    def max_concurrent_executions(self) -> int:
        return self._max_concurrent_executions

    def scheduler_enqueue(self, request: ReportRequest) -> str:
        """Save and queue one request for asynchronous execution.

        Args:
            request: Request to submit; a uuid is assigned when absent.

        Returns:
            str: Request uuid.

        Raises:
            ValueError: Raised when the request uuid is malformed.
            RuntimeError: Raised when ledger persistence fails.
        """

        saved_request = self._scheduler_save_scheduled(request)
        if saved_request.status.status_is_pending():
            queued = self._queue.queue_push(saved_request)
            logger.info(
                "report_request_enqueued",
                uuid=saved_request.uuid,
                priority=saved_request.priority.value,
                newly_queued=queued,
            )
        return saved_request.uuid

    def scheduler_position_in_queue(self, uuid: str) -> int | None:
        """Return zero-based queue position, or None once processing started."""

        return self._queue.queue_position(uuid)

    def scheduler_run_synchronously(self, request: ReportRequest) -> Report:
        """Execute one request inline on the calling thread at `HIGHEST` priority.

        Args:
            request: Request to run.

        Returns:
            Report: Completed report.

        Raises:
            EvaluationError: Raised when evaluation fails.
            RenderError: Raised when rendering fails.
            ProcessorError: Raised when a mandatory processor fails.
            ReportRunnerError: Raised when the request cannot be claimed or its completion was discarded.
        """

        saved_request = self._scheduler_save_scheduled(replace(request, priority=ReportRequestPriority.HIGHEST))
        claimed_request = self._queue.queue_claim(saved_request.uuid, self._scheduler_claim)
        if claimed_request is None:
            raise ReportRunnerError(
                f"report request {saved_request.uuid} cannot be claimed (status={saved_request.status.value})",
                error_code="REPORT_REQUEST_NOT_CLAIMABLE",
            )

        logger.info("report_request_running_synchronously", uuid=claimed_request.uuid)
        result = self._engine.engine_execute(claimed_request)
        if result.error is not None:
            raise result.error
        return result.report

    def scheduler_dispatch_next(self, max_concurrent: int | None = None) -> list[ReportRequest]:
        """Claim pending requests up to the free in-flight capacity and submit them.

        The override can only lower the bound: the worker pool never runs more
        than `max_concurrent_executions` requests, and a claimed request must
        start executing right away.

        Args:
            max_concurrent: Optional in-flight bound overriding the configured default.

        Returns:
            list[ReportRequest]: Requests claimed and submitted by this call, in claim order.

        Raises:
            ValueError: Raised when max_concurrent is invalid.
        """

        concurrency_bound = self._max_concurrent_executions if max_concurrent is None else max_concurrent
        if concurrency_bound < 1:
            raise ValueError("max_concurrent must be >= 1")
        concurrency_bound = min(concurrency_bound, self._max_concurrent_executions)

        claimed_requests: list[ReportRequest] = []
        with self._in_flight_lock:
            free_slots = concurrency_bound - len(self._in_flight)
            while free_slots > 0 and self._accepting_work:
                claimed_request = self._queue.queue_claim_next(self._scheduler_claim)
                if claimed_request is None:
                    break
                try:
                    future = self._executor.submit(self._engine.engine_execute, claimed_request)
                except RuntimeError:
                    # Pool closed outside scheduler_shutdown; recovery requeues the claimed request.
                    self._accepting_work = False
                    logger.error("report_worker_pool_unavailable", uuid=claimed_request.uuid)
                    break
                self._in_flight[claimed_request.uuid] = future
                claimed_requests.append(claimed_request)
                free_slots -= 1

        for claimed_request in claimed_requests:
            self._in_flight[claimed_request.uuid].add_done_callback(
                lambda future, uuid=claimed_request.uuid: self._scheduler_on_execution_done(uuid, future)
            )
        if claimed_requests:
            logger.info("report_requests_dispatched", count=len(claimed_requests), bound=concurrency_bound)
        return claimed_requests

    def scheduler_recover(self) -> list[str]:
        """Requeue pending requests after a restart.

        Requests left in `PROCESSING` by a previous process are reset to
        `REQUESTED` first, then every pending request is queued again.

        Returns:
            list[str]: Uuids queued by this call, in claim order.

        Raises:
            RuntimeError: Raised when ledger access fails.
        """

        reset_uuids = self._ledger.db_report_request_reset_stale_processing()
        if reset_uuids:
            logger.warning("report_requests_reset_after_restart", count=len(reset_uuids))

        pending_requests = self._ledger.db_report_request_list(statuses=PENDING_REPORT_REQUEST_STATUSES)
        pending_requests.sort(
            key=lambda request: (request.priority.priority_rank, request.requested_at_utc, request.report_request_id)
        )

        requeued_uuids: list[str] = []
        for pending_request in pending_requests:
            scheduled_request = pending_request
            if pending_request.status == ReportRequestStatus.REQUESTED:
                scheduled_request = self._ledger.db_report_request_transition(
                    pending_request.uuid,
                    ReportRequestStatus.SCHEDULED,
                )
                if scheduled_request is None:
                    continue
            if self._queue.queue_push(scheduled_request):
                requeued_uuids.append(scheduled_request.uuid)

        logger.info("report_queue_recovered", requeued=len(requeued_uuids))
        return requeued_uuids

    def scheduler_remove(self, uuid: str) -> bool:
        """Drop one uuid from the pending ordering."""

        return self._queue.queue_remove(uuid)

    def scheduler_queued_count(self) -> int:
        return self._queue.queue_size()

    def scheduler_in_flight_count(self) -> int:
        with self._in_flight_lock:
            return len(self._in_flight)

    def scheduler_wait_for_idle(self, timeout_seconds: float | None = None) -> bool:
        """Block until every in-flight execution finished.

        Args:
            timeout_seconds: Optional wait bound.

        Returns:
            bool: True when no execution is still running.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        with self._in_flight_lock:
            futures = list(self._in_flight.values())
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout_seconds)
        return not not_done

    def scheduler_shutdown(self, wait_for_completion: bool = True) -> None:
        """Stop accepting work and optionally drain running executions."""

        with self._in_flight_lock:
            self._accepting_work = False
        self._executor.shutdown(wait=wait_for_completion)
        logger.info("report_scheduler_stopped", drained=wait_for_completion)

    def _scheduler_save_scheduled(self, request: ReportRequest) -> ReportRequest:
        uuid = domain_validate_request_uuid(request.uuid) if request.uuid is not None else domain_new_request_uuid()
        saved_request, created = self._ledger.db_report_request_save(
            replace(
                request,
                uuid=uuid,
                status=ReportRequestStatus.REQUESTED,
                requested_at_utc=request.requested_at_utc or self._clock(),
            )
        )
        if not created:
            logger.info("report_request_already_known", uuid=uuid, status=saved_request.status.value)

        if saved_request.status == ReportRequestStatus.REQUESTED:
            scheduled_request = self._ledger.db_report_request_transition(uuid, ReportRequestStatus.SCHEDULED)
            if scheduled_request is not None:
                return scheduled_request
            return self._ledger.db_report_request_get_by_uuid(uuid) or saved_request
        return saved_request

    def _scheduler_claim(self, uuid: str) -> ReportRequest | None:
        claimed_request = self._ledger.db_report_request_transition(
            uuid,
            ReportRequestStatus.PROCESSING,
            timestamps={"evaluate_started_at_utc": self._clock()},
        )
        if claimed_request is not None:
            logger.info("report_request_claimed", uuid=uuid)
        return claimed_request

    def _scheduler_on_execution_done(self, uuid: str, future: Future) -> None:
        with self._in_flight_lock:
            if self._in_flight.get(uuid) is future:
                del self._in_flight[uuid]

        error = future.exception()
        if error is not None:
            logger.error(
                "report_execution_crashed",
                uuid=uuid,
                error_type=type(error).__name__,
                error=str(error),
            )
            return

        result: ReportExecutionResult = future.result()
        logger.info("report_execution_finished", uuid=uuid, status=result.status.value)
