"""FastAPI application for the meter reading insertion service.

Run with: uvicorn meter_ingest.main:app --port 8001
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from common.config import Settings, get_settings
from common.db import get_engine

from .cache.reading_cache import ReadingCache
from .core.pipeline.config import PipelineConfig
from .core.pipeline.processor import ReadingInsertionPipeline
from .endpoints import health_router, insertion_router, pending_cache_router
from .persistence.inserter import TransactionalInserter
from .scheduler.collection_scheduler import CollectionScheduler

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """Build the app; components are created on startup and torn down on shutdown.

    Args:
        settings: Configuration; read from the environment when omitted.
        engine: Database engine; built from ``settings`` when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or get_settings()
        db_engine = engine or get_engine(cfg)

        cache = ReadingCache(lock_timeout=cfg.cache_lock_timeout_seconds)
        pipeline = ReadingInsertionPipeline(
            cache,
            TransactionalInserter(db_engine),
            config=PipelineConfig.from_settings(cfg),
        )
        scheduler = CollectionScheduler(
            pipeline, interval_seconds=cfg.collection_interval_seconds
        )

        app.state.settings = cfg
        app.state.engine = db_engine
        app.state.cache = cache
        app.state.pipeline = pipeline
        app.state.scheduler = scheduler

        if cfg.collection_scheduler_enabled:
            scheduler.start()
        logger.info(
            "Insertion service started batch_size=%d max_attempts=%d scheduler=%s",
            cfg.reading_batch_size,
            cfg.insert_max_attempts,
            cfg.collection_scheduler_enabled,
        )
        try:
            yield
        finally:
            scheduler.stop(cancel_pipeline=True)
            pending = cache.pending_count()
            if pending:
                logger.warning("Shutting down with %d readings still in the cache", pending)
            if engine is None:
                db_engine.dispose()

    app = FastAPI(title="Meter Reading Ingest Service", version="0.1.0", lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(insertion_router)
    app.include_router(pending_cache_router)
    return app


app = create_app()
