"""Batching layer - bounded partitioning of validated readings."""

from .splitter import MAX_BATCH_SIZE, split

__all__ = ["MAX_BATCH_SIZE", "split"]
