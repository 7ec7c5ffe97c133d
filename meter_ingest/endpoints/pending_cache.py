"""Operator view and discard of readings held in the cache."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..auth import require_api_key
from ..cache.reading_cache import ReadingCache
from ..dependencies import get_cache
from ..schemas import DiscardResult, PendingCacheOut

router = APIRouter(tags=["cache"])


@router.get("/cache/pending", response_model=PendingCacheOut)
def pending_readings(cache: ReadingCache = Depends(get_cache)):
    return {
        "pending": cache.pending_count(),
        "entries": [entry.to_dict() for entry in cache.entries()],
    }


@router.delete(
    "/cache/pending/{entry_key}",
    response_model=DiscardResult,
    dependencies=[Depends(require_api_key)],
)
def discard_entry(entry_key: str, cache: ReadingCache = Depends(get_cache)):
    """Drop one retained batch; its readings will not be inserted."""
    entry = cache.discard(entry_key)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Entry {entry_key} not found")
    return DiscardResult(discarded=len(entry.readings))


@router.delete(
    "/cache/pending",
    response_model=DiscardResult,
    dependencies=[Depends(require_api_key)],
)
def discard_all_entries(cache: ReadingCache = Depends(get_cache)):
    return DiscardResult(discarded=cache.discard_all())
