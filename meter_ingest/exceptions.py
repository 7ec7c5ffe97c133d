"""Error taxonomy for the insertion pipeline."""

from __future__ import annotations

from typing import Any, Optional


class ReadingPipelineError(Exception):
    """Base class for insertion pipeline errors."""


class ReadingValidationError(ReadingPipelineError):
    """A single validation rule failed for a reading.

    Non-fatal: the reading is skipped and never retried.
    """

    def __init__(
        self,
        field: str,
        message: str,
        expected: Optional[str] = None,
        observed: Any = None,
        include_observed: bool = False,
    ):
        self.field = field
        self.expected = expected
        self.observed = observed
        detail = message
        if expected is not None:
            detail = (
                f"{message} (expected {expected}, got "
                f"{type(observed).__name__}: {observed!r})"
            )
        elif include_observed:
            detail = f"{message} (got {observed!r})"
        super().__init__(detail)


class TransientPersistenceError(ReadingPipelineError):
    """A batch insert failed and was rolled back; the batch may be retried."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ExhaustedRetryError(ReadingPipelineError):
    """A batch failed every insertion attempt.

    Recorded in metrics and in the reading cache, never raised to the caller
    of the pipeline.
    """

    def __init__(self, batch_key: str, attempts: int, last_error: Optional[str]):
        self.batch_key = batch_key
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"batch {batch_key} failed after {attempts} attempt(s): {last_error}"
        )


class CacheConcurrencyError(ReadingPipelineError):
    """The reading cache lock could not be acquired. Fatal to the invocation."""
