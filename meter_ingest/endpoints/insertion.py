"""Insertion metrics, manual trigger and reading submission."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..auth import require_api_key
from ..cache.reading_cache import ReadingCache
from ..core.pipeline.processor import ReadingInsertionPipeline
from ..dependencies import get_cache, get_pipeline, get_scheduler
from ..scheduler.collection_scheduler import CollectionScheduler
from ..schemas import InsertionMetricsOut, ReadingSubmissionIn, ReadingSubmissionResult

router = APIRouter(tags=["insertion"])
logger = logging.getLogger(__name__)


@router.get("/metrics/insertion", response_model=InsertionMetricsOut)
def insertion_metrics(pipeline: ReadingInsertionPipeline = Depends(get_pipeline)):
    """Metrics of the most recent insertion cycle (polling only)."""
    return pipeline.snapshot().to_dict()


@router.post(
    "/collection/trigger",
    response_model=InsertionMetricsOut,
    dependencies=[Depends(require_api_key)],
)
def trigger_collection(scheduler: CollectionScheduler = Depends(get_scheduler)):
    """Run one insertion cycle now and return its metrics."""
    return scheduler.trigger_now().to_dict()


@router.post(
    "/readings",
    response_model=ReadingSubmissionResult,
    dependencies=[Depends(require_api_key)],
)
def submit_readings(
    payload: ReadingSubmissionIn,
    cache: ReadingCache = Depends(get_cache),
):
    """Accept collected readings into the cache for the next cycle."""
    readings = [r.to_pending() for r in payload.readings]
    cycle_id = cache.accumulate(readings, cycle_id=payload.cycle_id)
    logger.info("READINGS_SUBMITTED cycle=%s count=%d", cycle_id, len(readings))
    return ReadingSubmissionResult(
        cycle_id=cycle_id,
        accepted=len(readings),
        pending=cache.pending_count(),
    )
