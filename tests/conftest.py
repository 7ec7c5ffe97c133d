"""Shared fixtures for the insertion pipeline tests."""

import threading
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest
from sqlalchemy import create_engine, func, select

from common.config import Settings
from meter_ingest.cache.reading_cache import ReadingCache
from meter_ingest.core.domain.batch import Batch
from meter_ingest.core.domain.reading import PendingReading
from meter_ingest.exceptions import TransientPersistenceError
from meter_ingest.persistence.inserter import InsertOutcome
from meter_ingest.persistence.schema import create_schema, meter_reading


# =============================================================================
# READINGS
# =============================================================================

@pytest.fixture
def make_reading() -> Callable[..., PendingReading]:
    """Factory of valid readings; keyword overrides change single fields."""
    counter = {"n": 0}

    def _make(**overrides) -> PendingReading:
        counter["n"] += 1
        fields = {
            "meter_id": 1,
            "timestamp": datetime.now(timezone.utc) - timedelta(minutes=counter["n"]),
            "data_point": "total_kwh",
            "value": 100.0 + counter["n"],
            "unit": "kWh",
        }
        fields.update(overrides)
        return PendingReading(**fields)

    return _make


@pytest.fixture
def make_readings(make_reading) -> Callable[[int], List[PendingReading]]:
    def _make(n: int, **overrides) -> List[PendingReading]:
        return [make_reading(**overrides) for _ in range(n)]

    return _make


# =============================================================================
# INSERTER DOUBLES
# =============================================================================

class ScriptedInserter:
    """Inserter double: ``plan(batch, attempt_number)`` decides success.

    Records every call with a monotonic timestamp.
    """

    def __init__(self, plan: Optional[Callable[[Batch, int], bool]] = None):
        self._plan = plan or (lambda batch, attempt: True)
        self._lock = threading.Lock()
        self._attempts: Dict[str, int] = defaultdict(int)
        self.calls: List[tuple] = []
        self.committed: List[PendingReading] = []

    def insert(self, batch: Batch) -> InsertOutcome:
        with self._lock:
            self._attempts[batch.key] += 1
            attempt = self._attempts[batch.key]
            self.calls.append((batch.key, attempt, time.monotonic()))
        if self._plan(batch, attempt):
            with self._lock:
                self.committed.extend(batch.readings)
            return InsertOutcome.ok(len(batch))
        return InsertOutcome.failure(
            TransientPersistenceError(f"simulated failure on attempt {attempt}")
        )

    def attempts_for(self, key: str) -> int:
        with self._lock:
            return self._attempts[key]


@pytest.fixture
def scripted_inserter():
    return ScriptedInserter


class RecordingWaiter:
    """Backoff waiter that records delays instead of sleeping."""

    def __init__(self, cancel_after: Optional[int] = None):
        self.delays: List[float] = []
        self._cancel_after = cancel_after
        self._lock = threading.Lock()

    def __call__(self, delay: float) -> bool:
        with self._lock:
            self.delays.append(delay)
            return self._cancel_after is not None and len(self.delays) >= self._cancel_after


@pytest.fixture
def recording_waiter():
    return RecordingWaiter


# =============================================================================
# CACHE / DATABASE
# =============================================================================

@pytest.fixture
def cache() -> ReadingCache:
    return ReadingCache(lock_timeout=2.0)


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'meter_readings.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def count_rows():
    def _count(engine) -> int:
        with engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(meter_reading)).scalar_one()

    return _count


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        db_host="localhost",
        db_port=1433,
        db_user="sa",
        db_password="",
        db_name="meter_readings",
        odbc_driver="ODBC Driver 17 for SQL Server",
        reading_batch_size=100,
        insert_max_attempts=3,
        insert_retry_base_delay=0.0,
        insert_retry_multiplier=2.0,
        insert_max_workers=1,
        collection_interval_seconds=3600.0,
        collection_scheduler_enabled=False,
        cache_lock_timeout_seconds=2.0,
    )
