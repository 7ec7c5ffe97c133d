"""Periodic and on-demand triggering of insertion cycles.

A daemon thread runs ``pipeline.run_cycle()`` every ``interval_seconds``.
Operators can run a cycle immediately with ``trigger_now``; both paths may
overlap and rely on the reading cache to hand each reading to only one of
them.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..core.pipeline.processor import ReadingInsertionPipeline
from ..metrics.models import InsertionMetrics

logger = logging.getLogger(__name__)


class CollectionScheduler:
    """Runs insertion cycles on a fixed interval."""

    DEFAULT_INTERVAL = 60.0  # seconds

    def __init__(
        self,
        pipeline: ReadingInsertionPipeline,
        interval_seconds: float = DEFAULT_INTERVAL,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._pipeline = pipeline
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Counters
        self._scheduled_runs = 0
        self._manual_runs = 0
        self._failed_runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the periodic thread, undoing a cancel left by ``stop``."""
        if self.running:
            return

        self._pipeline.resume()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="collection-scheduler", daemon=True
        )
        self._thread.start()
        logger.info("CollectionScheduler started with interval=%.1fs", self._interval)

    def stop(self, cancel_pipeline: bool = True, timeout: float = 10.0) -> None:
        """Stop the periodic thread.

        Args:
            cancel_pipeline: Also cancel the pipeline so running batches stop
                retrying and are retained in the cache.
            timeout: Seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if cancel_pipeline:
            self._pipeline.cancel()

        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

        logger.info(
            "CollectionScheduler stopped. Stats: scheduled=%d, manual=%d, failed=%d",
            self._scheduled_runs, self._manual_runs, self._failed_runs,
        )

    def trigger_now(self) -> InsertionMetrics:
        """Run one cycle immediately in the caller's thread."""
        logger.info("MANUAL_TRIGGER")
        metrics = self._pipeline.run_cycle()
        self._manual_runs += 1
        return metrics

    def _loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._pipeline.run_cycle()
                self._scheduled_runs += 1
            except Exception:
                self._failed_runs += 1
                logger.exception("Scheduled insertion cycle failed, continuing")

    @property
    def stats(self) -> dict:
        return {
            "running": self.running,
            "interval_seconds": self._interval,
            "scheduled_runs": self._scheduled_runs,
            "manual_runs": self._manual_runs,
            "failed_runs": self._failed_runs,
        }
