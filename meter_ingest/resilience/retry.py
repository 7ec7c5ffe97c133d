"""Retry with exponential backoff for batch inserts.

Each batch is an explicit state machine:

    PENDING -> ATTEMPTING -> COMMITTED
                   |  ^
                   v  |  (backoff)
                 failure -> EXHAUSTED after the last attempt

Batches are independent; the controller drives one batch at a time and the
pipeline runs several controllers' loops on worker threads.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..cache.reading_cache import ReadingCache
from ..core.domain.batch import Batch, BatchState, InsertionAttempt
from ..exceptions import ExhaustedRetryError, TransientPersistenceError
from ..metrics.aggregator import MetricsAggregator
from ..metrics.models import InsertionEvent
from ..persistence.inserter import InsertOutcome, TransactionalInserter

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "insertion cancelled before commit"


@dataclass
class RetryConfig:
    """Attempt bound and backoff schedule for batch inserts."""

    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        return cls(
            max_attempts=settings.insert_max_attempts,
            base_delay=settings.insert_retry_base_delay,
            exponential_base=settings.insert_retry_multiplier,
        )

    def calculate_delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt ``attempt`` (1-indexed).

        With the defaults: 1s before attempt 2, 2s before attempt 3.
        """
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            # Only ever lengthens the wait so the minimum backoff holds.
            delay += random.uniform(0, delay * 0.25)

        return max(0.0, delay)


class BatchRetryController:
    """Drives a batch through insertion attempts until it is terminal.

    Args:
        inserter: Executes one attempt as one transaction.
        cache: Receives exhausted batches and drops committed readings.
        config: Attempt bound and backoff schedule.
        cancel_event: When set, backoff waits end early and the batch is
            retained instead of attempted again.
        waiter: Replaces the backoff wait; takes the delay and returns True
            when the wait was cancelled. Defaults to ``cancel_event.wait``.
    """

    def __init__(
        self,
        inserter: TransactionalInserter,
        cache: ReadingCache,
        config: Optional[RetryConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        waiter: Optional[Callable[[float], bool]] = None,
    ):
        self._inserter = inserter
        self._cache = cache
        self._config = config or RetryConfig()
        self._cancel_event = cancel_event or threading.Event()
        self._waiter = waiter or self._cancel_event.wait

    @property
    def config(self) -> RetryConfig:
        return self._config

    def wait(self, delay: float) -> bool:
        """Backoff wait. Returns True if the wait was cut short by cancellation."""
        return bool(self._waiter(delay))

    def run(self, batch: Batch, metrics: MetricsAggregator) -> Batch:
        """Attempt ``batch`` until it is COMMITTED or EXHAUSTED."""
        if batch.state.is_terminal:
            return batch

        while not batch.state.is_terminal:
            if self._cancel_event.is_set():
                self._exhaust(batch, metrics, CANCELLED_ERROR)
                break

            attempt_number = batch.attempt_count + 1
            batch.state = BatchState.ATTEMPTING
            metrics.record(InsertionEvent.attempt())

            outcome = self._attempt(batch)
            batch.attempts.append(
                InsertionAttempt(
                    number=attempt_number,
                    succeeded=outcome.success,
                    error=outcome.reason,
                )
            )

            if outcome.success:
                self._commit(batch, metrics, attempt_number)
                break

            batch.last_error = outcome.reason
            if attempt_number >= self._config.max_attempts:
                self._exhaust(batch, metrics, outcome.reason)
                break

            delay = self._config.calculate_delay(attempt_number)
            logger.warning(
                "INSERT_RETRY batch=%s attempt=%d/%d delay=%.2fs err=%s",
                batch.key, attempt_number, self._config.max_attempts,
                delay, outcome.reason,
            )
            if self.wait(delay):
                self._exhaust(batch, metrics, CANCELLED_ERROR)
                break

        return batch

    def _attempt(self, batch: Batch) -> InsertOutcome:
        try:
            return self._inserter.insert(batch)
        except Exception as e:
            logger.exception("INSERT_UNEXPECTED_ERROR batch=%s", batch.key)
            return InsertOutcome.failure(
                TransientPersistenceError(f"{type(e).__name__}: {e}", cause=e)
            )

    def _commit(self, batch: Batch, metrics: MetricsAggregator, attempts: int) -> None:
        batch.state = BatchState.COMMITTED
        metrics.record(InsertionEvent.committed(len(batch)))
        self._cache.evict(batch.readings)
        logger.info(
            "BATCH_COMMITTED batch=%s rows=%d attempts=%d",
            batch.key, len(batch), attempts,
        )

    def _exhaust(
        self, batch: Batch, metrics: MetricsAggregator, reason: Optional[str]
    ) -> None:
        error = ExhaustedRetryError(batch.key, batch.attempt_count, reason)
        batch.last_error = reason
        # Terminal only once the readings are safely back in the cache.
        self._cache.retain(batch, error=str(error))
        batch.state = BatchState.EXHAUSTED
        metrics.record(InsertionEvent.exhausted(len(batch), str(error)))
        logger.error("INSERT_EXHAUSTED %s", error)
