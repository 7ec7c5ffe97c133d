"""Persistence layer - meter_reading table and transactional batch insert."""

from .schema import create_schema, meter_reading
from .inserter import InsertOutcome, TransactionalInserter

__all__ = ["create_schema", "meter_reading", "InsertOutcome", "TransactionalInserter"]
