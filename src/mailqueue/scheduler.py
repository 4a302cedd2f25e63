"""Periodic driver that runs the batch dispatcher on an interval."""
from __future__ import annotations

import logging
import threading
from datetime import timedelta

from .dispatcher import BatchDispatcher
from .exceptions import MailQueueError

logger = logging.getLogger(__name__)


class QueueScheduler:
    """Runs one dispatch cycle per interval until stopped.

    A failing cycle is logged and the loop carries on with the next one. The
    stop signal is checked between cycles and interrupts the inter-cycle wait;
    a cycle already in flight is allowed to finish.
    """

    def __init__(
        self,
        dispatcher: BatchDispatcher,
        interval: timedelta = timedelta(minutes=2),
        batch_size: int = 10,
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        self.dispatcher = dispatcher
        self.interval = interval
        self.batch_size = batch_size
        self._stop_event = threading.Event()
        self._cycle_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self.cycles_completed = 0
        self.cycles_failed = 0

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_cycle(self) -> int:
        """Run a single dispatch cycle; never raises."""
        with self._cycle_lock:
            try:
                processed = self.dispatcher.process_queue(self.batch_size)
            except MailQueueError as exc:
                self.cycles_failed += 1
                logger.exception(
                    "Error in queue processing cycle (severity=%s): %s", exc.severity.value, exc.message
                )
                return 0
            except Exception:
                self.cycles_failed += 1
                logger.exception("Error in queue processing cycle")
                return 0
            self.cycles_completed += 1
        if processed:
            logger.info("Queue processing cycle completed (processed %s entries)", processed)
        return processed

    def start(self, run_once: bool = False) -> None:
        """Block running cycles until :meth:`stop` is called."""
        logger.info(
            "Queue scheduler starting (interval=%ss, batch_size=%s, run_once=%s)",
            int(self.interval.total_seconds()),
            self.batch_size,
            run_once,
        )
        try:
            while not self._stop_event.is_set():
                self.run_cycle()
                if run_once:
                    break
                self._stop_event.wait(self.interval.total_seconds())
        except KeyboardInterrupt:  # pragma: no cover - interactive stop
            logger.info("Queue scheduler interrupted")
        logger.info("Queue scheduler stopped")

    def start_in_background(self) -> threading.Thread:
        if self.is_running:
            raise RuntimeError("Scheduler is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.start, name="mailqueue-scheduler", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to exit and wait for a background thread to finish."""
        logger.info("Queue scheduler is stopping")
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)


__all__ = ["QueueScheduler"]
