"""Tests for the collection scheduler."""

import threading

import pytest

from meter_ingest.scheduler.collection_scheduler import CollectionScheduler


class FakePipeline:
    def __init__(self, fail_first=False):
        self.runs = 0
        self.cancelled = False
        self.ran = threading.Event()
        self._fail_first = fail_first

    def run_cycle(self):
        self.runs += 1
        if self._fail_first and self.runs == 1:
            raise RuntimeError("database unreachable")
        if self.runs >= 2:
            self.ran.set()
        return "metrics"

    def cancel(self):
        self.cancelled = True

    def resume(self):
        self.cancelled = False


class TestCollectionScheduler:

    def test_runs_cycles_periodically(self):
        pipeline = FakePipeline()
        scheduler = CollectionScheduler(pipeline, interval_seconds=0.05)

        scheduler.start()
        try:
            assert pipeline.ran.wait(timeout=5.0)
            assert scheduler.running
        finally:
            scheduler.stop()

        assert not scheduler.running
        assert scheduler.stats["scheduled_runs"] >= 2

    def test_failed_cycle_does_not_stop_the_loop(self):
        pipeline = FakePipeline(fail_first=True)
        scheduler = CollectionScheduler(pipeline, interval_seconds=0.05)

        scheduler.start()
        try:
            assert pipeline.ran.wait(timeout=5.0)
        finally:
            scheduler.stop()

        assert scheduler.stats["failed_runs"] == 1

    def test_stop_cancels_pipeline(self):
        pipeline = FakePipeline()
        scheduler = CollectionScheduler(pipeline, interval_seconds=60)
        scheduler.start()

        scheduler.stop(cancel_pipeline=True)

        assert pipeline.cancelled is True
        assert pipeline.runs == 0

    def test_stop_without_cancel(self):
        pipeline = FakePipeline()
        scheduler = CollectionScheduler(pipeline, interval_seconds=60)
        scheduler.start()

        scheduler.stop(cancel_pipeline=False)

        assert pipeline.cancelled is False

    def test_restart_after_stop_resumes_pipeline(self):
        pipeline = FakePipeline()
        scheduler = CollectionScheduler(pipeline, interval_seconds=0.05)
        scheduler.start()
        scheduler.stop(cancel_pipeline=True)
        assert pipeline.cancelled is True

        scheduler.start()
        try:
            assert pipeline.cancelled is False
            assert pipeline.ran.wait(timeout=5.0)
        finally:
            scheduler.stop()

    def test_trigger_now_runs_in_caller_thread(self):
        pipeline = FakePipeline()
        scheduler = CollectionScheduler(pipeline, interval_seconds=60)

        assert scheduler.trigger_now() == "metrics"
        assert pipeline.runs == 1
        assert scheduler.stats["manual_runs"] == 1

    def test_start_twice_keeps_one_thread(self):
        scheduler = CollectionScheduler(FakePipeline(), interval_seconds=60)
        scheduler.start()
        first = scheduler._thread
        try:
            scheduler.start()
            assert scheduler._thread is first
        finally:
            scheduler.stop()

    @pytest.mark.parametrize("interval", [0, -1])
    def test_interval_must_be_positive(self, interval):
        with pytest.raises(ValueError):
            CollectionScheduler(FakePipeline(), interval_seconds=interval)
