"""Domain model for meter readings pending insertion."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

# Upstream collectors are not consistent about key casing.
_FIELD_ALIASES = {
    "meter_id": ("meter_id", "meterId"),
    "timestamp": ("timestamp", "ts"),
    "data_point": ("data_point", "dataPoint"),
    "value": ("value",),
    "unit": ("unit",),
}


@dataclass(frozen=True)
class PendingReading:
    """One candidate measurement collected from a meter.

    Field types are what a well-behaved collector sends; they are not
    enforced here. ``validate`` in the validation module is the gate that
    decides whether a reading may reach persistence.
    """
    meter_id: int
    timestamp: datetime
    data_point: str
    value: float
    unit: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PendingReading":
        """Build a reading from a loosely shaped dict without coercing types."""
        values = {}
        for field_name, aliases in _FIELD_ALIASES.items():
            values[field_name] = next(
                (data[key] for key in aliases if key in data), None
            )
        return cls(**values)

    def to_row(self) -> dict:
        """Row parameters for the meter_reading table."""
        return {
            "meter_id": self.meter_id,
            "timestamp": self.timestamp,
            "data_point": self.data_point,
            "value": float(self.value),
            "unit": self.unit,
        }
