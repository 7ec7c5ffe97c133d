"""Batch model and per-batch insertion state."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from .reading import PendingReading


class BatchState(Enum):
    """Lifecycle of a batch inside the retry controller."""
    PENDING = "pending"
    ATTEMPTING = "attempting"
    COMMITTED = "committed"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchState.COMMITTED, BatchState.EXHAUSTED)


@dataclass(frozen=True)
class InsertionAttempt:
    """One try at persisting a batch."""
    number: int
    succeeded: bool
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Batch:
    """A bounded slice of valid readings inserted as one atomic unit."""
    cycle_id: str
    index: int
    readings: Tuple[PendingReading, ...]
    state: BatchState = BatchState.PENDING
    attempts: List[InsertionAttempt] = field(default_factory=list)
    last_error: Optional[str] = None

    @property
    def key(self) -> str:
        """Stable identity of the batch, also used as its cache entry key."""
        return f"{self.cycle_id}:{self.index}"

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def __len__(self) -> int:
        return len(self.readings)


def new_cycle_id() -> str:
    """Identifier for one collection cycle, e.g. ``cycle-1760000000000-3f9a1c2b7``."""
    return f"cycle-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
