"""Insertion pipeline orchestrator.

One invocation: validate → split → retry/insert each batch → publish
metrics. Batches run on a thread pool so one batch's backoff never holds up
another; all of them are joined before the invocation's metrics are
published.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from ...cache.reading_cache import PendingCacheEntry, ReadingCache
from ...metrics.aggregator import MetricsAggregator
from ...metrics.models import InsertionEvent, InsertionMetrics
from ...persistence.inserter import TransactionalInserter
from ...resilience.retry import BatchRetryController
from ..batching.splitter import split
from ..domain.batch import Batch, new_cycle_id
from ..domain.reading import PendingReading
from ..validation.reading_validator import error_summary, validate
from .config import PipelineConfig

logger = logging.getLogger(__name__)


class ReadingInsertionPipeline:
    """Entry point shared by the scheduler tick and the manual trigger.

    Args:
        cache: Shared reading cache; drained by ``run_cycle`` and fed with
            exhausted batches.
        inserter: Transactional inserter for single batches.
        config: Batch size, worker count and retry policy.
        retry_controller: Overrides the controller built from ``config``.
    """

    def __init__(
        self,
        cache: ReadingCache,
        inserter: TransactionalInserter,
        config: Optional[PipelineConfig] = None,
        retry_controller: Optional[BatchRetryController] = None,
    ):
        self._cache = cache
        self._config = config or PipelineConfig()
        self._cancel_event = threading.Event()
        self._retry = retry_controller or BatchRetryController(
            inserter,
            cache,
            config=self._config.retry,
            cancel_event=self._cancel_event,
        )

        self._latest: Optional[InsertionMetrics] = None
        self._latest_lock = threading.Lock()
        self._total_runs = 0

    @property
    def cache(self) -> ReadingCache:
        return self._cache

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop retrying; uncommitted batches end up retained in the cache.

        Transactions already running are left to commit or roll back. The
        pipeline stays cancelled until ``resume`` is called.
        """
        if not self._cancel_event.is_set():
            logger.warning("PIPELINE_CANCEL requested")
        self._cancel_event.set()

    def resume(self) -> None:
        """Accept new invocations again after ``cancel``."""
        if self._cancel_event.is_set():
            logger.info("PIPELINE_RESUME")
        self._cancel_event.clear()

    def run_cycle(self, cycle_id: Optional[str] = None) -> InsertionMetrics:
        """Drain the cache and insert everything it held."""
        drained = self._cache.drain()
        return self.run(drained.fresh, cycle_id=cycle_id, retained=drained.retained)

    def run(
        self,
        readings: Iterable[PendingReading],
        cycle_id: Optional[str] = None,
        retained: Sequence[PendingCacheEntry] = (),
    ) -> InsertionMetrics:
        """Run one invocation over ``readings`` plus previously retained batches.

        Retained batches are not validated again; they get a fresh retry
        sequence as they are.

        Returns:
            The published metrics of this invocation.
        """
        cycle_id = cycle_id or new_cycle_id()
        readings = list(readings)
        metrics = MetricsAggregator(cycle_id=cycle_id)
        batches: Optional[List[Batch]] = None

        try:
            retained_total = sum(len(entry.readings) for entry in retained)
            metrics.record(InsertionEvent.processed(len(readings) + retained_total))

            result = validate(readings)
            if result.invalid:
                metrics.record(InsertionEvent.skipped(result.invalid_count))
                for line in error_summary(result):
                    logger.debug("READING_SKIPPED cycle=%s %s", cycle_id, line)

            batches = self._build_batches(cycle_id, result.valid, retained)
            self._execute(batches, metrics)
        except Exception:
            self._restore_unsettled(cycle_id, readings, retained, batches)
            raise

        snapshot = metrics.snapshot()
        self._publish(snapshot)

        logger.info(
            "CYCLE_DONE cycle=%s processed=%d inserted=%d skipped=%d failed_batches=%d attempts=%d duration_ms=%.1f",
            cycle_id,
            snapshot.total_processed,
            snapshot.inserted_count,
            snapshot.skipped_count,
            snapshot.failed_count,
            snapshot.retry_attempts,
            snapshot.duration_ms or 0.0,
        )
        if not snapshot.is_balanced():
            logger.error("METRICS_UNBALANCED cycle=%s metrics=%s", cycle_id, snapshot.to_dict())
        return snapshot

    def _build_batches(
        self,
        cycle_id: str,
        valid: Sequence[PendingReading],
        retained: Sequence[PendingCacheEntry],
    ) -> List[Batch]:
        batches = [
            Batch(cycle_id=cycle_id, index=i, readings=entry.readings)
            for i, entry in enumerate(retained)
        ]
        batches.extend(
            split(
                valid,
                batch_size=self._config.batch_size,
                cycle_id=cycle_id,
                start_index=len(batches),
            )
        )
        return batches

    def _execute(self, batches: List[Batch], metrics: MetricsAggregator) -> None:
        if not batches:
            return

        workers = min(self._config.max_workers, len(batches))
        if workers <= 1:
            for batch in batches:
                self._retry.run(batch, metrics)
            return

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="batch-insert") as pool:
            futures = [pool.submit(self._retry.run, batch, metrics) for batch in batches]
            for future in as_completed(futures):
                # Controllers only raise on cache failures, which are fatal.
                future.result()

    def _restore_unsettled(
        self,
        cycle_id: str,
        readings: List[PendingReading],
        retained: Sequence[PendingCacheEntry],
        batches: Optional[List[Batch]],
    ) -> None:
        """Put readings back in the cache when an invocation fails midway.

        Before batching, everything handed to ``run`` goes back. Afterwards,
        only batches that neither committed nor were retained do; committed
        rows are in the store and skipped readings stay skipped.
        """
        try:
            if batches is None:
                self._cache.reinstate(retained)
                restored = list(readings)
                self._cache.accumulate(restored, cycle_id=cycle_id)
                count = len(restored) + sum(len(e.readings) for e in retained)
            else:
                restored = [
                    reading
                    for batch in batches
                    if not batch.state.is_terminal
                    for reading in batch.readings
                ]
                self._cache.accumulate(restored, cycle_id=cycle_id)
                count = len(restored)
        except Exception:
            logger.exception("CYCLE_RESTORE_FAILED cycle=%s", cycle_id)
            return
        logger.error("CYCLE_FAILED cycle=%s restored_readings=%d", cycle_id, count)

    def _publish(self, snapshot: InsertionMetrics) -> None:
        with self._latest_lock:
            self._latest = snapshot
            self._total_runs += 1

    def snapshot(self) -> InsertionMetrics:
        """Metrics of the most recent invocation (all zero before the first)."""
        with self._latest_lock:
            if self._latest is not None:
                return self._latest
        return InsertionMetrics(
            total_processed=0,
            inserted_count=0,
            skipped_count=0,
            failed_count=0,
            failed_reading_count=0,
            retry_attempts=0,
            operation_timestamp=datetime.now(timezone.utc),
        )

    @property
    def stats(self) -> dict:
        with self._latest_lock:
            return {
                "total_runs": self._total_runs,
                "last_cycle_id": self._latest.cycle_id if self._latest else None,
                "cancelled": self._cancel_event.is_set(),
            }
