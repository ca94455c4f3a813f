"""Error recovery utilities for moreapps.

This module holds the retry policy used by the load orchestrator and the
helpers it uses to describe failures in logs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from moreapps.core.errors import CatalogError, DecodeError

DEFAULT_RETRY_DELAYS: Tuple[float, ...] = (2.0, 4.0, 8.0)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry schedule with a fixed list of delays.

    Attributes
    ----------
    max_retries: int
        Number of retries allowed after the first failed attempt.
    delays: tuple of float
        Delay in seconds before each retry.  Retries past the end of the
        list reuse the last delay.
    """

    max_retries: int = 3
    delays: Tuple[float, ...] = DEFAULT_RETRY_DELAYS

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if not self.delays:
            raise ValueError("delays cannot be empty")
        if any(d < 0 for d in self.delays):
            raise ValueError("delays must be non-negative")

    def can_retry(self, retry_count: int) -> bool:
        """Check if another retry is allowed after ``retry_count`` retries."""
        return retry_count < self.max_retries

    def delay_for(self, retry_count: int) -> float:
        """Delay before the retry that follows ``retry_count`` earlier retries."""
        index = min(max(retry_count, 0), len(self.delays) - 1)
        return self.delays[index]


def describe_error(exception: BaseException) -> str:
    """Short, log-friendly description of a load failure."""
    if isinstance(exception, DecodeError):
        return f"decode error: {exception}"
    if isinstance(exception, CatalogError):
        return f"network error: {exception}"
    return f"unexpected {type(exception).__name__}: {exception}"


def is_recoverable_error(exception: BaseException) -> bool:
    """Determine if a failure comes from the lookup service.

    Lookup failures are expected (offline, outage) and logged quietly;
    anything else points at a bug and is logged with a traceback.
    """
    return isinstance(exception, CatalogError)
