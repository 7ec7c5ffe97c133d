"""Scheduling of collection cycles."""

from .collection_scheduler import CollectionScheduler

__all__ = ["CollectionScheduler"]
