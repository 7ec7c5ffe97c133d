"""Validator for meter readings pending insertion.

Catches upstream type drift (for example a timestamp that went through a
queue and came back as text) before it reaches the database. Every rule is
evaluated for every reading and error messages carry the expected and the
observed representation of the offending value.
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ...exceptions import ReadingValidationError
from ..domain.reading import PendingReading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvalidReading:
    """A rejected reading together with every rule it violated."""
    reading: PendingReading
    errors: Tuple[str, ...]


@dataclass(frozen=True)
class ValidationResult:
    """Partition of one reading set into valid and invalid readings."""
    valid: Tuple[PendingReading, ...] = field(default_factory=tuple)
    invalid: Tuple[InvalidReading, ...] = field(default_factory=tuple)

    @property
    def valid_count(self) -> int:
        return len(self.valid)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid)

    @property
    def total(self) -> int:
        return self.valid_count + self.invalid_count


def _check_meter_id(reading: PendingReading, now: datetime) -> None:
    if reading.meter_id is None:
        raise ReadingValidationError("meter_id", "meter_id is required")


def _check_timestamp(reading: PendingReading, now: datetime) -> None:
    ts = reading.timestamp
    if not isinstance(ts, datetime):
        raise ReadingValidationError(
            "timestamp", "timestamp is not a valid Date",
            expected="datetime", observed=ts,
        )
    # Naive timestamps are taken as UTC.
    aware = ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)
    if aware > now:
        raise ReadingValidationError(
            "timestamp", "timestamp is in the future",
            observed=ts.isoformat(), include_observed=True,
        )


def _is_finite_number(value) -> bool:
    """True when ``value`` is a number that stores as a finite float.

    Raises OverflowError for ints beyond float range.
    """
    if isinstance(value, bool):
        return False
    if not isinstance(value, (numbers.Real, Decimal)):
        return False
    # Decimal('1e400') is finite but stores as inf.
    return math.isfinite(float(value))


def _check_value(reading: PendingReading, now: datetime) -> None:
    value = reading.value
    try:
        finite = _is_finite_number(value)
    except (OverflowError, TypeError, ValueError):
        finite = False
    if not finite:
        raise ReadingValidationError(
            "value", "value is not a valid number or is NaN",
            expected="finite number", observed=value,
        )


def _check_data_point(reading: PendingReading, now: datetime) -> None:
    dp = reading.data_point
    if not isinstance(dp, str) or not dp.strip():
        raise ReadingValidationError("data_point", "data_point must not be empty")


_RULES: Tuple[Callable[[PendingReading, datetime], None], ...] = (
    _check_meter_id,
    _check_timestamp,
    _check_value,
    _check_data_point,
)


def validate_reading(
    reading: PendingReading, now: Optional[datetime] = None
) -> List[str]:
    """Run every rule against one reading.

    Returns:
        Error messages, empty when the reading is valid.
    """
    now = now or datetime.now(timezone.utc)
    errors: List[str] = []
    for rule in _RULES:
        try:
            rule(reading, now)
        except ReadingValidationError as e:
            errors.append(str(e))
    return errors


def validate(
    readings: Iterable[PendingReading], now: Optional[datetime] = None
) -> ValidationResult:
    """Partition readings into valid and invalid, preserving input order.

    Never raises: a reading that breaks the rules ends up in ``invalid``
    with the full list of violations.
    """
    now = now or datetime.now(timezone.utc)
    valid: List[PendingReading] = []
    invalid: List[InvalidReading] = []

    for reading in readings:
        errors = validate_reading(reading, now)
        if errors:
            invalid.append(InvalidReading(reading=reading, errors=tuple(errors)))
        else:
            valid.append(reading)

    if invalid:
        logger.warning(
            "READINGS_INVALID count=%d first_meter_id=%r first_errors=%s",
            len(invalid),
            getattr(invalid[0].reading, "meter_id", None),
            "; ".join(invalid[0].errors),
        )

    return ValidationResult(valid=tuple(valid), invalid=tuple(invalid))


def error_summary(result: ValidationResult) -> Sequence[str]:
    """Flatten invalid readings into one line each, for logs and operators."""
    return [
        f"meter_id={item.reading.meter_id!r} data_point={item.reading.data_point!r}: "
        + "; ".join(item.errors)
        for item in result.invalid
    ]
