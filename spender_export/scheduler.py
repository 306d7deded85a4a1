"""Sequential, rate limited batch issuance with per-batch retries."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from structlog.stdlib import BoundLogger

from .cancellation import CancellationToken
from .clients import JobService
from .errors import JobServiceError, RetriesExhaustedError, TransportError
from .logging import get_logger
from .retry import RetryPolicy

Sleep = Callable[[float], Awaitable[None]]


class BatchRunStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchRunResult:
    status: BatchRunStatus
    next_batch: int
    error: Optional[RetriesExhaustedError] = None


class BatchObserver(Protocol):
    """Receives scheduling events. The scheduler itself keeps no job state."""

    def batch_started(self, batch: int, retry_count: int) -> None: ...

    def batch_succeeded(self, next_batch: int) -> None: ...

    def retry_scheduled(self, batch: int, retry_count: int, delay_ms: int, error: str) -> None: ...


class BatchScheduler:
    """Issues one batch request at a time.

    Batch ``i + 1`` is only requested after batch ``i`` succeeded. A failed
    batch is retried in place according to the :class:`RetryPolicy`; when the
    policy gives up the run ends with a :class:`RetriesExhaustedError`.
    """

    def __init__(
        self,
        service: JobService,
        token: str,
        total_batches: int,
        policy: RetryPolicy,
        cancellation: CancellationToken,
        observer: BatchObserver,
        *,
        rate_limit_ms: int = 0,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.service = service
        self.token = token
        self.total_batches = total_batches
        self.policy = policy
        self.cancellation = cancellation
        self.observer = observer
        self.rate_limit_ms = rate_limit_ms
        self._sleep = sleep
        self.logger = logger or get_logger("batch_scheduler")

    async def _wait(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)

    @staticmethod
    def describe_failure(batch: int, error: JobServiceError) -> str:
        if isinstance(error, TransportError) and error.timed_out:
            return f"Batch {batch + 1} timed out."
        return error.message or "Server error processing batch"

    async def run(self, start: int = 0) -> BatchRunResult:
        batch = start
        retry_count = 0

        while True:
            if self.cancellation.cancelled:
                self.logger.info("batch_loop_cancelled", batch=batch)
                return BatchRunResult(BatchRunStatus.CANCELLED, batch)

            if batch >= self.total_batches:
                return BatchRunResult(BatchRunStatus.COMPLETED, batch)

            self.observer.batch_started(batch, retry_count)
            try:
                await self.service.fetch_batch(self.token, batch)
            except JobServiceError as exc:
                if self.cancellation.cancelled:
                    self.logger.info("late_batch_failure_discarded", batch=batch)
                    return BatchRunResult(BatchRunStatus.CANCELLED, batch)

                message = self.describe_failure(batch, exc)
                decision = self.policy.decide(retry_count, exc)
                if not decision.retry:
                    self.logger.error(
                        "batch_retries_exhausted",
                        batch=batch,
                        attempts=decision.attempt,
                        error=message,
                    )
                    return BatchRunResult(
                        BatchRunStatus.FAILED,
                        batch,
                        RetriesExhaustedError(
                            batch, decision.attempt, message, self.policy.max_retries
                        ),
                    )

                self.logger.warning(
                    "batch_retry_scheduled",
                    batch=batch,
                    retry=decision.attempt,
                    delay_ms=decision.delay_ms,
                    error=message,
                )
                self.observer.retry_scheduled(batch, retry_count, decision.delay_ms, message)
                await self._wait(decision.delay_ms)
                retry_count += 1
                continue

            if self.cancellation.cancelled:
                self.logger.info("late_batch_success_discarded", batch=batch)
                return BatchRunResult(BatchRunStatus.CANCELLED, batch)

            self.logger.debug("batch_succeeded", batch=batch, retries=retry_count)
            batch += 1
            retry_count = 0
            self.observer.batch_succeeded(batch)

            if batch < self.total_batches:
                await self._wait(self.rate_limit_ms)


__all__ = [
    "BatchObserver",
    "BatchRunResult",
    "BatchRunStatus",
    "BatchScheduler",
    "Sleep",
]
