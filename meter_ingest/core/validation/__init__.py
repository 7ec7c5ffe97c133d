"""Validation layer - gate between upstream collection and persistence."""

from .reading_validator import InvalidReading, ValidationResult, validate, validate_reading

__all__ = ["InvalidReading", "ValidationResult", "validate", "validate_reading"]
