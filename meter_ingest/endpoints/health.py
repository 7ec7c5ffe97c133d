"""Health and readiness endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Engine

from common.db import ping
from ..dependencies import get_engine, get_scheduler
from ..scheduler.collection_scheduler import CollectionScheduler

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
def health():
    """Liveness probe: ok whenever the process is up."""
    return {"status": "ok"}


@router.get("/ready")
def ready(
    engine: Engine = Depends(get_engine),
    scheduler: CollectionScheduler = Depends(get_scheduler),
):
    """Readiness probe: database answers and scheduler state."""
    try:
        ping(engine)
    except Exception:
        # Do not expose error details to the client
        logger.exception("Readiness DB check failed")
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready", "scheduler": scheduler.stats}
