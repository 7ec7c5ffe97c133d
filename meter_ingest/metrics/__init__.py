"""Metrics module for insertion observability."""

from .models import InsertionEvent, InsertionMetrics, MetricsEventType
from .aggregator import MetricsAggregator

__all__ = [
    "InsertionEvent",
    "InsertionMetrics",
    "MetricsEventType",
    "MetricsAggregator",
]
