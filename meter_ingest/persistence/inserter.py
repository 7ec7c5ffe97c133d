"""Transactional insertion of one batch of readings.

Each call runs inside its own transaction: every row of the batch is
committed or none is. The inserter never retries; that decision belongs to
the retry controller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import Table, insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..core.domain.batch import Batch
from ..exceptions import TransientPersistenceError
from .schema import meter_reading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsertOutcome:
    """Result of one insert call."""
    success: bool
    rows: int = 0
    error: Optional[TransientPersistenceError] = None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    @classmethod
    def ok(cls, rows: int) -> "InsertOutcome":
        return cls(success=True, rows=rows)

    @classmethod
    def failure(cls, error: TransientPersistenceError) -> "InsertOutcome":
        return cls(success=False, error=error)


class TransactionalInserter:
    """Inserts a batch into meter_reading as a single atomic unit."""

    def __init__(self, engine: Engine, table: Table = meter_reading):
        self._engine = engine
        self._table = table

    @staticmethod
    def build_rows(batch: Batch) -> List[dict]:
        """Row parameters with the defaults raw readings do not carry."""
        rows = []
        for reading in batch.readings:
            row = reading.to_row()
            row["is_synchronized"] = False
            row["retry_count"] = 0
            rows.append(row)
        return rows

    def insert(self, batch: Batch) -> InsertOutcome:
        """Persist every reading of ``batch`` or none of them.

        Returns:
            ``InsertOutcome.ok`` with the row count, or ``InsertOutcome.failure``
            carrying a TransientPersistenceError after the rollback.
        """
        if not batch.readings:
            return InsertOutcome.ok(0)

        rows = self.build_rows(batch)
        try:
            # engine.begin() commits on exit and rolls back on any exception.
            with self._engine.begin() as conn:
                conn.execute(insert(self._table), rows)
        except SQLAlchemyError as e:
            logger.warning(
                "BATCH_INSERT_FAILED batch=%s rows=%d err=%s",
                batch.key, len(rows), type(e).__name__,
            )
            return InsertOutcome.failure(
                TransientPersistenceError(
                    f"{type(e).__name__}: {getattr(e, 'orig', None) or e}", cause=e
                )
            )

        logger.debug("BATCH_INSERTED batch=%s rows=%d", batch.key, len(rows))
        return InsertOutcome.ok(len(rows))
