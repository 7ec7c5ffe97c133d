"""Domain layer - readings and batches."""

from .reading import PendingReading
from .batch import Batch, BatchState, InsertionAttempt, new_cycle_id

__all__ = ["PendingReading", "Batch", "BatchState", "InsertionAttempt", "new_cycle_id"]
