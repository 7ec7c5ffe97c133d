"""Insertion runner package: runs the insertion pipeline outside the API.

Modules:
- config: RunnerConfig dataclass
- loader: Reading file parsing
- cli: CLI entry point (main)
"""

from .config import RunnerConfig
from .loader import load_readings
from .cli import main

__all__ = ["RunnerConfig", "load_readings", "main"]
