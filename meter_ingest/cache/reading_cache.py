"""Concurrency-safe accumulator for readings awaiting insertion.

A reading is in exactly one place at a time: this cache, an in-flight
pipeline invocation, or the database. Collected readings are grouped by the
collection cycle that produced them; batches that exhausted their retries
come back as retained entries and are handed out again on the next drain.

The cache is an explicit object created at process start and passed to the
pipeline; there is no module-level instance.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

from ..core.domain.batch import Batch, new_cycle_id
from ..core.domain.reading import PendingReading
from ..exceptions import CacheConcurrencyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingCacheEntry:
    """Readings of a batch that failed every insertion attempt."""
    key: str
    cycle_id: str
    batch_index: int
    readings: Tuple[PendingReading, ...]
    last_error: Optional[str] = None
    attempts: int = 0
    retained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "cycle_id": self.cycle_id,
            "batch_index": self.batch_index,
            "readings": len(self.readings),
            "attempts": self.attempts,
            "last_error": self.last_error,
            "retained_at": self.retained_at.isoformat(),
        }


@dataclass(frozen=True)
class DrainedReadings:
    """Everything taken out of the cache by one drain."""
    fresh: Tuple[PendingReading, ...] = ()
    retained: Tuple[PendingCacheEntry, ...] = ()

    @property
    def all_readings(self) -> List[PendingReading]:
        readings = list(self.fresh)
        for entry in self.retained:
            readings.extend(entry.readings)
        return readings

    def __len__(self) -> int:
        return len(self.fresh) + sum(len(e.readings) for e in self.retained)


def _index_key(reading: PendingReading) -> Hashable:
    # Untyped readings may carry unhashable values; those match by identity.
    try:
        hash(reading)
    except TypeError:
        return ("unhashable", id(reading))
    return reading


class ReadingCache:
    """In-memory store of pending readings keyed by collection cycle.

    Every operation runs under a single lock so that a drain never sees a
    half-written accumulation and never races with a retain. A count of held
    readings is kept alongside the storage so that evicting a reading that is
    not held costs a single lookup.
    """

    DEFAULT_LOCK_TIMEOUT = 5.0  # seconds

    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout
        self._fresh: Dict[str, List[PendingReading]] = {}
        self._retained: Dict[str, PendingCacheEntry] = {}
        self._held: Counter = Counter()

        # Counters
        self._total_accumulated = 0
        self._total_drained = 0
        self._total_retained = 0
        self._total_discarded = 0

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise CacheConcurrencyError(
                f"reading cache lock not acquired within {self._lock_timeout:.1f}s"
            )
        try:
            yield
        finally:
            self._lock.release()

    def _hold(self, readings: Iterable[PendingReading]) -> None:
        self._held.update(_index_key(r) for r in readings)

    def _release(self, readings: Iterable[PendingReading]) -> None:
        for reading in readings:
            key = _index_key(reading)
            self._held[key] -= 1
            if self._held[key] <= 0:
                del self._held[key]

    def accumulate(
        self, readings: Iterable[PendingReading], cycle_id: Optional[str] = None
    ) -> str:
        """Add collected readings under their collection cycle.

        Returns:
            The cycle id the readings were stored under.
        """
        cycle_id = cycle_id or new_cycle_id()
        items = list(readings)
        with self._locked():
            if items:
                self._fresh.setdefault(cycle_id, []).extend(items)
                self._hold(items)
                self._total_accumulated += len(items)
        logger.debug("CACHE_ACCUMULATE cycle=%s readings=%d", cycle_id, len(items))
        return cycle_id

    def drain(self) -> DrainedReadings:
        """Take and clear every held reading in one step."""
        with self._locked():
            fresh: List[PendingReading] = []
            for readings in self._fresh.values():
                fresh.extend(readings)
            retained = tuple(self._retained.values())
            self._fresh = {}
            self._retained = {}
            self._held = Counter()
            drained = DrainedReadings(fresh=tuple(fresh), retained=retained)
            self._total_drained += len(drained)

        if drained:
            logger.info(
                "CACHE_DRAIN fresh=%d retained_entries=%d",
                len(drained.fresh), len(drained.retained),
            )
        return drained

    def drain_for_insertion(self) -> List[PendingReading]:
        """Take and clear every held reading, retained ones included."""
        return self.drain().all_readings

    def retain(self, batch: Batch, error: Optional[str] = None) -> PendingCacheEntry:
        """Keep an exhausted batch's readings for the next drain, unchanged."""
        entry = PendingCacheEntry(
            key=batch.key,
            cycle_id=batch.cycle_id,
            batch_index=batch.index,
            readings=tuple(batch.readings),
            last_error=error if error is not None else batch.last_error,
            attempts=batch.attempt_count,
        )
        with self._locked():
            self._put_entry(entry)
            self._total_retained += len(entry.readings)
        logger.warning(
            "CACHE_RETAIN batch=%s readings=%d attempts=%d",
            entry.key, len(entry.readings), entry.attempts,
        )
        return entry

    def reinstate(self, entries: Iterable[PendingCacheEntry]) -> int:
        """Put drained entries back as they were. Returns readings reinstated."""
        entries = list(entries)
        with self._locked():
            for entry in entries:
                self._put_entry(entry)
        count = sum(len(e.readings) for e in entries)
        if count:
            logger.warning("CACHE_REINSTATE entries=%d readings=%d", len(entries), count)
        return count

    def _put_entry(self, entry: PendingCacheEntry) -> None:
        previous = self._retained.get(entry.key)
        if previous is not None:
            self._release(previous.readings)
        self._retained[entry.key] = entry
        self._hold(entry.readings)

    def evict(self, readings: Iterable[PendingReading]) -> int:
        """Remove committed readings that are still held, one occurrence each.

        Returns:
            Number of readings removed.
        """
        removed = 0
        with self._locked():
            for reading in readings:
                if self._held[_index_key(reading)] <= 0:
                    continue
                if self._remove_one(reading):
                    self._release((reading,))
                    removed += 1
        if removed:
            logger.debug("CACHE_EVICT readings=%d", removed)
        return removed

    def _remove_one(self, reading: PendingReading) -> bool:
        for cycle_id, held in self._fresh.items():
            if reading in held:
                held.remove(reading)
                if not held:
                    del self._fresh[cycle_id]
                return True
        for key, entry in self._retained.items():
            if reading in entry.readings:
                remaining = list(entry.readings)
                remaining.remove(reading)
                if remaining:
                    self._retained[key] = replace(entry, readings=tuple(remaining))
                else:
                    del self._retained[key]
                return True
        return False

    def discard(self, key: str) -> Optional[PendingCacheEntry]:
        """Operator action: drop one retained entry for good."""
        with self._locked():
            entry = self._retained.pop(key, None)
            if entry is not None:
                self._release(entry.readings)
                self._total_discarded += len(entry.readings)
        if entry is not None:
            logger.warning(
                "CACHE_DISCARD batch=%s readings=%d", key, len(entry.readings)
            )
        return entry

    def discard_all(self) -> int:
        """Operator action: drop every retained entry. Returns readings dropped."""
        with self._locked():
            dropped = 0
            for entry in self._retained.values():
                self._release(entry.readings)
                dropped += len(entry.readings)
            self._retained = {}
            self._total_discarded += dropped
        if dropped:
            logger.warning("CACHE_DISCARD_ALL readings=%d", dropped)
        return dropped

    def pending_count(self) -> int:
        with self._locked():
            return self._pending_count_unlocked()

    def _pending_count_unlocked(self) -> int:
        fresh = sum(len(r) for r in self._fresh.values())
        return fresh + sum(len(e.readings) for e in self._retained.values())

    def entries(self) -> List[PendingCacheEntry]:
        with self._locked():
            return list(self._retained.values())

    @property
    def stats(self) -> dict:
        """Cache counters for the readiness and pending views."""
        with self._locked():
            return {
                "pending": self._pending_count_unlocked(),
                "cycles": len(self._fresh),
                "retained_entries": len(self._retained),
                "total_accumulated": self._total_accumulated,
                "total_drained": self._total_drained,
                "total_retained": self._total_retained,
                "total_discarded": self._total_discarded,
            }
