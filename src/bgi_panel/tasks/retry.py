"""Bounded retry counter for failed task reports."""

from __future__ import annotations

from dataclasses import dataclass

MAX_RETRIES = 3


@dataclass(frozen=True, slots=True)
class RetryDecision:
    """Outcome of registering one failed attempt."""

    retry_count: int
    max_retries: int
    exhausted: bool


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Counts failed attempts up to ``max_retries``.

    Each failure increments the counter. The attempt that brings the counter to the
    ceiling is terminal; earlier ones send the task straight back to the queue with no
    backoff delay.
    """

    max_retries: int = MAX_RETRIES

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")

    def register_failure(self, retry_count: int) -> RetryDecision:
        if retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {retry_count}")
        next_count = min(retry_count + 1, self.max_retries)
        return RetryDecision(
            retry_count=next_count,
            max_retries=self.max_retries,
            exhausted=next_count >= self.max_retries,
        )
