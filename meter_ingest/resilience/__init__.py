"""Resilience - retry with exponential backoff for batch inserts."""

from .retry import BatchRetryController, RetryConfig

__all__ = ["BatchRetryController", "RetryConfig"]
