"""Deterministic splitting of validated readings into insert batches."""

from __future__ import annotations

from typing import List, Sequence

from ..domain.batch import Batch
from ..domain.reading import PendingReading

# Upper bound for rows in a single insert statement; a failed batch never
# affects more readings than this.
MAX_BATCH_SIZE = 100


def split(
    valid: Sequence[PendingReading],
    batch_size: int = MAX_BATCH_SIZE,
    cycle_id: str = "manual",
    start_index: int = 0,
) -> List[Batch]:
    """Group readings into contiguous batches of at most ``batch_size``.

    Args:
        valid: Readings that already passed validation, in collection order.
        batch_size: Maximum readings per batch (1..MAX_BATCH_SIZE).
        cycle_id: Collection cycle the batches belong to.
        start_index: Sequence index assigned to the first batch.

    Returns:
        Batches in input order; the last one may be smaller. Empty input
        yields no batches.
    """
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ValueError(
            f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
        )

    return [
        Batch(
            cycle_id=cycle_id,
            index=start_index + offset // batch_size,
            readings=tuple(valid[offset:offset + batch_size]),
        )
        for offset in range(0, len(valid), batch_size)
    ]
