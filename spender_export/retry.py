"""Retry decisions for failed batch requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of consulting the :class:`RetryPolicy`."""

    retry: bool
    delay_ms: int = 0
    attempt: int = 0


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with a fixed retry budget per batch.

    With the defaults a failing batch is retried after 2s, 4s and 8s; the
    fourth consecutive failure gives up.
    """

    max_retries: int = 3
    base_delay_ms: int = 2000

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")

    def delay_for(self, retry_count: int) -> int:
        """Backoff before retry number ``retry_count + 1``."""
        return self.base_delay_ms * (2 ** retry_count)

    def decide(self, retry_count: int, error: Optional[BaseException] = None) -> RetryDecision:
        """Decide what to do after a failure.

        ``retry_count`` is the number of retries already spent on the batch.
        Transport and application errors are treated alike, so ``error`` only
        matters to callers that want it echoed back in logs.
        """
        if retry_count < self.max_retries:
            return RetryDecision(
                retry=True,
                delay_ms=self.delay_for(retry_count),
                attempt=retry_count + 1,
            )
        return RetryDecision(retry=False, attempt=retry_count + 1)


__all__ = ["RetryDecision", "RetryPolicy"]
