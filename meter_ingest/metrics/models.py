"""Data models for insertion metrics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class MetricsEventType(Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    ATTEMPT = "attempt"
    COMMITTED = "committed"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class InsertionEvent:
    """One outcome reported to the aggregator."""
    type: MetricsEventType
    count: int = 0
    error: Optional[str] = None

    @classmethod
    def processed(cls, count: int) -> "InsertionEvent":
        return cls(MetricsEventType.PROCESSED, count)

    @classmethod
    def skipped(cls, count: int) -> "InsertionEvent":
        return cls(MetricsEventType.SKIPPED, count)

    @classmethod
    def attempt(cls) -> "InsertionEvent":
        return cls(MetricsEventType.ATTEMPT, 1)

    @classmethod
    def committed(cls, count: int) -> "InsertionEvent":
        return cls(MetricsEventType.COMMITTED, count)

    @classmethod
    def exhausted(cls, count: int, error: Optional[str]) -> "InsertionEvent":
        return cls(MetricsEventType.EXHAUSTED, count, error)


@dataclass(frozen=True)
class InsertionMetrics:
    """Counters for one pipeline invocation."""

    total_processed: int
    inserted_count: int
    skipped_count: int
    failed_count: int  # batches that exhausted their retries
    failed_reading_count: int
    retry_attempts: int
    operation_timestamp: datetime
    last_error_message: Optional[str] = None
    cycle_id: Optional[str] = None
    duration_ms: Optional[float] = None

    def is_balanced(self) -> bool:
        """Every processed reading was inserted, skipped or left in a failed batch."""
        return self.total_processed == (
            self.inserted_count + self.skipped_count + self.failed_reading_count
        )

    def to_dict(self) -> dict:
        return {
            "cycleId": self.cycle_id,
            "totalProcessed": self.total_processed,
            "insertedCount": self.inserted_count,
            "skippedCount": self.skipped_count,
            "failedCount": self.failed_count,
            "failedReadingCount": self.failed_reading_count,
            "retryAttempts": self.retry_attempts,
            "operationTimestamp": self.operation_timestamp.isoformat(),
            "lastErrorMessage": self.last_error_message,
            "durationMs": self.duration_ms,
        }
