"""FastAPI dependencies resolving the components built by the lifespan."""

from __future__ import annotations

from fastapi import HTTPException, Request
from sqlalchemy.engine import Engine

from common.config import Settings

from .cache.reading_cache import ReadingCache
from .core.pipeline.processor import ReadingInsertionPipeline
from .scheduler.collection_scheduler import CollectionScheduler


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialised")
    return value


def get_engine(request: Request) -> Engine:
    return _state(request, "engine")


def get_cache(request: Request) -> ReadingCache:
    return _state(request, "cache")


def get_pipeline(request: Request) -> ReadingInsertionPipeline:
    return _state(request, "pipeline")


def get_scheduler(request: Request) -> CollectionScheduler:
    return _state(request, "scheduler")


def get_app_settings(request: Request) -> Settings:
    return _state(request, "settings")
