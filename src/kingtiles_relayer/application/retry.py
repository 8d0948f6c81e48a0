"""Retry policy shared by settlement, status reads and the event listener."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    base_delay: float
    max_delay: float
    jitter_ratio: float = 0.0  # fraction of the backoff added on top

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")
        if not 0.0 <= self.jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be within [0, 1]")

    def allows_retry_after(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def delay_for(self, attempt: int, *, rng: Callable[[], float] = random.random) -> float:
        return backoff_seconds(attempt, self, rng=rng)


def backoff_seconds(
    attempt: int,
    policy: RetryPolicy,
    *,
    rng: Callable[[], float] = random.random,
) -> float:
    """Exponential backoff with additive jitter (attempt is one-based)."""
    exponent = max(0, attempt - 1)
    capped = min(policy.max_delay, policy.base_delay * (2**exponent))
    return capped + capped * policy.jitter_ratio * rng()  # non-crypto jitter


__all__ = ["RetryPolicy", "backoff_seconds"]
