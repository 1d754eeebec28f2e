"""Background tick loops for queue dispatch and retention sweeps."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime

from report_runner.config import config_get_logger
from report_runner.domain import domain_utc_now

logger = config_get_logger(__name__)


class PeriodicTickLoop:
    """Invoke one callback on a fixed cadence from a daemon thread.

    Tick failures are logged and the loop keeps running; `loop_stop` waits
    for the current tick to finish.
    """

    def __init__(self, name: str, tick_callback: Callable[[], object], interval_seconds: float):
        """Initialize tick loop.

        Args:
            name: Loop name used for the thread and logs.
            tick_callback: Callable invoked once per tick.
            interval_seconds: Tick cadence.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when interval_seconds is not positive.
        """

        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._name = name
        self._tick_callback = tick_callback
        self._interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick_utc: datetime | None = None
        self._lock = threading.Lock()

    @property
    def loop_is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def loop_tick_count(self) -> int:
        with self._lock:
            return self._tick_count

    def loop_start(self) -> None:
        """Start the loop thread; repeated calls are ignored."""

        if self.loop_is_running:
            logger.warning("tick_loop_already_started", loop=self._name)
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop_run, daemon=True, name=f"report-{self._name}")
        self._thread.start()
        logger.info("tick_loop_started", loop=self._name, interval_seconds=self._interval_seconds)

    def loop_stop(self, join_timeout_seconds: float = 5.0) -> None:
        """Signal the loop to stop and wait for the current tick."""

        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=join_timeout_seconds)
        if self._thread.is_alive():
            logger.warning("tick_loop_did_not_stop", loop=self._name)
        self._thread = None
        logger.info("tick_loop_stopped", loop=self._name, tick_count=self.loop_tick_count)

    def loop_tick(self) -> None:
        """Run one tick synchronously, logging failures."""

        with self._lock:
            self._tick_count += 1
            self._last_tick_utc = domain_utc_now()
        try:
            self._tick_callback()
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("tick_loop_tick_failed", loop=self._name)

    def loop_health(self) -> dict[str, object]:
        with self._lock:
            return {
                "loop": self._name,
                "running": self.loop_is_running,
                "tick_count": self._tick_count,
                "last_tick_utc": self._last_tick_utc.isoformat() if self._last_tick_utc else None,
                "interval_seconds": self._interval_seconds,
            }

    def _loop_run(self) -> None:
        while not self._stop_event.wait(self._interval_seconds):
            self.loop_tick()
