from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

from .core.domain.reading import PendingReading


class MeterReadingIn(BaseModel):
    # Accepts snake_case and camelCase from collectors.
    model_config = ConfigDict(populate_by_name=True)

    meter_id: int = Field(..., alias="meterId")
    timestamp: datetime
    data_point: str = Field(..., alias="dataPoint")
    # Numbers only; text is rejected, never coerced.
    value: Union[StrictFloat, StrictInt]
    unit: Optional[str] = None

    def to_pending(self) -> PendingReading:
        return PendingReading(
            meter_id=self.meter_id,
            timestamp=self.timestamp,
            data_point=self.data_point,
            value=self.value,
            unit=self.unit,
        )


class ReadingSubmissionIn(BaseModel):
    cycle_id: Optional[str] = None
    readings: List[MeterReadingIn] = Field(default_factory=list)


class ReadingSubmissionResult(BaseModel):
    cycle_id: str
    accepted: int
    pending: int


class InsertionMetricsOut(BaseModel):
    cycleId: Optional[str] = None
    totalProcessed: int
    insertedCount: int
    skippedCount: int
    failedCount: int
    failedReadingCount: int
    retryAttempts: int
    operationTimestamp: datetime
    lastErrorMessage: Optional[str] = None
    durationMs: Optional[float] = None


class PendingEntryOut(BaseModel):
    key: str
    cycle_id: str
    batch_index: int
    readings: int
    attempts: int
    last_error: Optional[str] = None
    retained_at: datetime


class PendingCacheOut(BaseModel):
    pending: int
    entries: List[PendingEntryOut] = Field(default_factory=list)


class DiscardResult(BaseModel):
    discarded: int
