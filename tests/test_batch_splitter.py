"""Tests for the batch splitter."""

import math

import pytest

from meter_ingest.core.batching import MAX_BATCH_SIZE, split
from meter_ingest.core.domain.batch import BatchState


class TestSplit:
    """Bounded, order-preserving partitioning."""

    @pytest.mark.parametrize("n", [1, 99, 100, 101, 199, 200, 250, 1000])
    def test_batch_count_and_bound(self, make_readings, n):
        readings = make_readings(n)

        batches = split(readings)

        assert len(batches) == math.ceil(n / MAX_BATCH_SIZE)
        assert all(len(b) <= MAX_BATCH_SIZE for b in batches)
        flattened = [r for b in batches for r in b.readings]
        assert flattened == readings

    def test_250_readings_give_100_100_50(self, make_readings):
        batches = split(make_readings(250))

        assert [len(b) for b in batches] == [100, 100, 50]

    def test_empty_input_gives_no_batches(self):
        assert split([]) == []

    def test_batches_are_indexed_and_pending(self, make_readings):
        batches = split(make_readings(5), batch_size=2, cycle_id="cycle-x", start_index=3)

        assert [b.index for b in batches] == [3, 4, 5]
        assert [b.key for b in batches] == ["cycle-x:3", "cycle-x:4", "cycle-x:5"]
        assert all(b.state is BatchState.PENDING for b in batches)
        assert all(b.attempts == [] for b in batches)

    def test_custom_batch_size(self, make_readings):
        batches = split(make_readings(7), batch_size=3)

        assert [len(b) for b in batches] == [3, 3, 1]

    @pytest.mark.parametrize("size", [0, -1, MAX_BATCH_SIZE + 1])
    def test_batch_size_out_of_range(self, make_readings, size):
        with pytest.raises(ValueError):
            split(make_readings(3), batch_size=size)

    def test_split_is_deterministic(self, make_readings):
        readings = make_readings(130)

        first = [b.readings for b in split(readings, cycle_id="c")]
        second = [b.readings for b in split(readings, cycle_id="c")]

        assert first == second
