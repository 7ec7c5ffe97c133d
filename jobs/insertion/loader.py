"""Reading file parsing for the insertion runner.

Accepts a JSON array or JSON lines. Records that are not JSON objects are
dropped with a warning. Objects that do not match the typed
schema are still passed on as raw readings so the validator reports them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Mapping

from pydantic import ValidationError

from meter_ingest.core.domain.reading import PendingReading
from meter_ingest.schemas import MeterReadingIn

logger = logging.getLogger(__name__)


def _parse_records(text: str) -> List[Any]:
    stripped = text.strip()
    if not stripped:
        return []
    if stripped.startswith("["):
        return list(json.loads(stripped))
    return [json.loads(line) for line in stripped.splitlines() if line.strip()]


def load_readings(path: Path) -> List[PendingReading]:
    records = _parse_records(Path(path).read_text(encoding="utf-8"))
    readings: List[PendingReading] = []
    loose = 0
    dropped = 0
    for record in records:
        if not isinstance(record, Mapping):
            dropped += 1
            logger.warning("READING_RECORD_DROPPED file=%s record=%r", path, record)
            continue
        try:
            readings.append(MeterReadingIn.model_validate(record).to_pending())
        except ValidationError:
            loose += 1
            readings.append(PendingReading.from_mapping(record))
    logger.info(
        "Loaded %d readings from %s (%d untyped, %d dropped)",
        len(readings), path, loose, dropped,
    )
    return readings
