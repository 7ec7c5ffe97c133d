"""Tests for the transactional inserter against SQLite."""

from unittest.mock import MagicMock

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from meter_ingest.core.domain.batch import Batch
from meter_ingest.exceptions import TransientPersistenceError
from meter_ingest.persistence.inserter import TransactionalInserter
from meter_ingest.persistence.schema import meter_reading


def _batch(readings, index=0):
    return Batch(cycle_id="cycle-test", index=index, readings=tuple(readings))


class TestInsert:
    """Successful inserts."""

    def test_all_rows_committed(self, sqlite_engine, make_readings, count_rows):
        inserter = TransactionalInserter(sqlite_engine)

        outcome = inserter.insert(_batch(make_readings(25)))

        assert outcome.success is True
        assert outcome.rows == 25
        assert outcome.reason is None
        assert count_rows(sqlite_engine) == 25

    def test_defaults_applied_to_every_row(self, sqlite_engine, make_readings):
        TransactionalInserter(sqlite_engine).insert(_batch(make_readings(10)))

        with sqlite_engine.connect() as conn:
            rows = conn.execute(
                select(meter_reading.c.is_synchronized, meter_reading.c.retry_count)
            ).all()

        assert len(rows) == 10
        assert all(r.is_synchronized is False for r in rows)
        assert all(r.retry_count == 0 for r in rows)

    def test_values_are_persisted(self, sqlite_engine, make_reading):
        reading = make_reading(meter_id=42, data_point="voltage", value=230.5, unit=None)

        TransactionalInserter(sqlite_engine).insert(_batch([reading]))

        with sqlite_engine.connect() as conn:
            row = conn.execute(select(meter_reading)).one()
        assert row.meter_id == 42
        assert row.data_point == "voltage"
        assert row.value == 230.5
        assert row.unit is None

    def test_empty_batch_is_a_no_op(self, sqlite_engine, count_rows):
        outcome = TransactionalInserter(sqlite_engine).insert(_batch([]))

        assert outcome.success is True
        assert outcome.rows == 0
        assert count_rows(sqlite_engine) == 0

    def test_build_rows_sets_defaults(self, make_readings):
        rows = TransactionalInserter.build_rows(_batch(make_readings(3)))

        assert all(row["is_synchronized"] is False for row in rows)
        assert all(row["retry_count"] == 0 for row in rows)


class TestAtomicity:
    """A failure part-way through leaves no rows of the batch behind."""

    def test_failure_midway_rolls_back_whole_batch(self, sqlite_engine, make_reading, count_rows):
        readings = [make_reading() for _ in range(5)]
        # Bypasses validation: violates NOT NULL on the fourth row.
        readings.insert(3, make_reading(meter_id=None))

        outcome = TransactionalInserter(sqlite_engine).insert(_batch(readings))

        assert outcome.success is False
        assert isinstance(outcome.error, TransientPersistenceError)
        assert "IntegrityError" in outcome.reason
        assert count_rows(sqlite_engine) == 0

    def test_failed_batch_does_not_affect_committed_batch(
        self, sqlite_engine, make_reading, make_readings, count_rows
    ):
        inserter = TransactionalInserter(sqlite_engine)
        good = _batch(make_readings(4), index=0)
        bad = _batch(make_readings(2) + [make_reading(data_point=None)], index=1)

        assert inserter.insert(good).success is True
        assert inserter.insert(bad).success is False

        assert count_rows(sqlite_engine) == 4

    def test_connection_error_is_reported_not_raised(self, make_readings):
        engine = MagicMock()
        engine.begin.side_effect = OperationalError("INSERT", {}, Exception("server gone"))

        outcome = TransactionalInserter(engine).insert(_batch(make_readings(2)))

        assert outcome.success is False
        assert "OperationalError" in outcome.reason
        assert "server gone" in outcome.reason
