"""HTTP endpoints, organised by function."""

from .health import router as health_router
from .insertion import router as insertion_router
from .pending_cache import router as pending_cache_router

__all__ = [
    "health_router",
    "insertion_router",
    "pending_cache_router",
]
