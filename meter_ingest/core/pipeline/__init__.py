"""Pipeline - one insertion invocation from raw readings to metrics."""

from .config import PipelineConfig
from .processor import ReadingInsertionPipeline

__all__ = ["PipelineConfig", "ReadingInsertionPipeline"]
