"""Insertion runner configuration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RunnerConfig:
    """Options of the insertion runner."""
    readings_file: Path
    sleep_seconds: float
    once: bool
    create_schema: bool
