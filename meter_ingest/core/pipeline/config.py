"""Pipeline configuration."""

from __future__ import annotations

from dataclasses import dataclass, field

from ...resilience.retry import RetryConfig
from ..batching.splitter import MAX_BATCH_SIZE


@dataclass(frozen=True)
class PipelineConfig:
    """Batch size, worker count and retry policy of one pipeline."""
    batch_size: int = MAX_BATCH_SIZE
    max_workers: int = 4
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_settings(cls, settings) -> "PipelineConfig":
        return cls(
            batch_size=settings.reading_batch_size,
            max_workers=max(1, settings.insert_max_workers),
            retry=RetryConfig.from_settings(settings),
        )
