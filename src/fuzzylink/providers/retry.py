"""Retry policy for remote provider calls."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from fuzzylink.errors import ProviderError

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Whether an exception is a transient provider failure."""
    return isinstance(exc, ProviderError) and exc.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter for retryable provider errors.

    Only ``ProviderError`` subclasses flagged ``retryable`` are retried.
    Once ``max_attempts`` is exhausted the last error propagates unchanged.

    Attributes
    ----------
    max_attempts : int
        Total attempts, including the first call.
    initial_wait : float
        First backoff interval in seconds.
    max_wait : float
        Upper bound on a single backoff interval.
    jitter : float
        Maximum random seconds added to each interval.
    sleep : Callable[[float], None]
        Sleep function used between attempts.
    """

    max_attempts: int = 5
    initial_wait: float = 1.0
    max_wait: float = 60.0
    jitter: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate bounds."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_wait < 0 or self.max_wait < 0 or self.jitter < 0:
            raise ValueError("Wait intervals must be non-negative")

    def retrying(self) -> Retrying:
        """Fresh tenacity controller for one logical call."""
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.initial_wait, max=self.max_wait, jitter=self.jitter
            ),
            retry=retry_if_exception(is_retryable),
            sleep=self.sleep,
            reraise=True,
        )

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke ``fn`` under this policy."""
        return self.retrying()(fn, *args, **kwargs)


NO_RETRY = RetryPolicy(max_attempts=1, initial_wait=0.0, max_wait=0.0, jitter=0.0)
