"""Per-invocation aggregation of insertion outcomes.

Batches report from worker threads, so every update happens under a lock.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Optional

from .models import InsertionEvent, InsertionMetrics, MetricsEventType

logger = logging.getLogger(__name__)


class MetricsAggregator:
    """Accumulates counters for one pipeline invocation.

    A new aggregator is created per invocation; its snapshot supersedes the
    previous invocation's metrics instead of being merged into them.
    """

    def __init__(self, cycle_id: Optional[str] = None):
        self._cycle_id = cycle_id
        self._lock = threading.Lock()
        self._started = time.monotonic()
        self._operation_timestamp = datetime.now(timezone.utc)

        self._total_processed = 0
        self._inserted = 0
        self._skipped = 0
        self._failed_batches = 0
        self._failed_readings = 0
        self._retry_attempts = 0
        self._last_error: Optional[str] = None

    def record(self, event: InsertionEvent) -> None:
        with self._lock:
            if event.type is MetricsEventType.PROCESSED:
                self._total_processed += event.count
            elif event.type is MetricsEventType.SKIPPED:
                self._skipped += event.count
            elif event.type is MetricsEventType.ATTEMPT:
                self._retry_attempts += 1
            elif event.type is MetricsEventType.COMMITTED:
                self._inserted += event.count
            elif event.type is MetricsEventType.EXHAUSTED:
                self._failed_batches += 1
                self._failed_readings += event.count
                self._last_error = event.error
            else:
                raise ValueError(f"unknown metrics event {event.type!r}")

    def snapshot(self) -> InsertionMetrics:
        with self._lock:
            return InsertionMetrics(
                total_processed=self._total_processed,
                inserted_count=self._inserted,
                skipped_count=self._skipped,
                failed_count=self._failed_batches,
                failed_reading_count=self._failed_readings,
                retry_attempts=self._retry_attempts,
                operation_timestamp=self._operation_timestamp,
                last_error_message=self._last_error,
                cycle_id=self._cycle_id,
                duration_ms=round((time.monotonic() - self._started) * 1000, 2),
            )
