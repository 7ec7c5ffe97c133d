"""Table definition for persisted meter readings.

Migrations live outside this service; ``create_schema`` only exists for
local development and tests.
"""

from __future__ import annotations

import logging

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    false,
    func,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

meter_reading = Table(
    "meter_reading",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("meter_id", Integer, nullable=False, index=True),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    Column("data_point", String(255), nullable=False),
    Column("value", Float, nullable=False),
    Column("unit", String(50), nullable=True),
    Column("is_synchronized", Boolean, nullable=False, server_default=false()),
    Column("retry_count", Integer, nullable=False, server_default="0"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)


def create_schema(engine: Engine) -> None:
    """Create the meter_reading table if it does not exist."""
    metadata.create_all(engine, tables=[meter_reading])
    logger.info("[DB] meter_reading schema ensured")
