"""Unit tests for BatchScheduler."""

import pytest

from spender_export.cancellation import CancellationToken
from spender_export.errors import TransportError
from spender_export.retry import RetryPolicy
from spender_export.scheduler import BatchRunStatus, BatchScheduler


class RecordingObserver:
    def __init__(self):
        self.events = []

    def batch_started(self, batch, retry_count):
        self.events.append(("started", batch, retry_count))

    def batch_succeeded(self, next_batch):
        self.events.append(("succeeded", next_batch))

    def retry_scheduled(self, batch, retry_count, delay_ms, error):
        self.events.append(("retry", batch, retry_count, delay_ms, error))


def build(service, sleep, total, cancellation=None, max_retries=3, rate_limit_ms=1000):
    observer = RecordingObserver()
    scheduler = BatchScheduler(
        service,
        "token",
        total,
        RetryPolicy(max_retries=max_retries, base_delay_ms=2000),
        cancellation or CancellationToken(),
        observer,
        rate_limit_ms=rate_limit_ms,
        sleep=sleep,
    )
    return scheduler, observer


class TestBatchScheduler:
    """Tests for sequential batch issuance."""

    @pytest.mark.asyncio
    async def test_batches_are_fetched_in_order(self, make_service, sleep):
        service = make_service(total_batches=4)
        scheduler, observer = build(service, sleep, 4)

        result = await scheduler.run()

        assert result.status == BatchRunStatus.COMPLETED
        assert result.next_batch == 4
        assert service.batch_calls == [0, 1, 2, 3]
        assert sleep.delays == [1.0, 1.0, 1.0]
        assert [event for event in observer.events if event[0] == "succeeded"] == [
            ("succeeded", 1),
            ("succeeded", 2),
            ("succeeded", 3),
            ("succeeded", 4),
        ]

    @pytest.mark.asyncio
    async def test_failed_batch_is_retried_in_place(self, make_service, sleep):
        service = make_service(total_batches=2, failures={0: 2})
        scheduler, observer = build(service, sleep, 2, rate_limit_ms=0)

        result = await scheduler.run()

        assert result.status == BatchRunStatus.COMPLETED
        assert service.batch_calls == [0, 0, 0, 1]
        assert sleep.delays == [2.0, 4.0]
        started = [event for event in observer.events if event[0] == "started"]
        assert started == [("started", 0, 0), ("started", 0, 1), ("started", 0, 2), ("started", 1, 0)]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, make_service, sleep):
        service = make_service(total_batches=3, failures={1: 10})
        scheduler, _ = build(service, sleep, 3, rate_limit_ms=0)

        result = await scheduler.run()

        assert result.status == BatchRunStatus.FAILED
        assert result.next_batch == 1
        assert result.error.attempts == 4
        assert result.error.message == (
            "Server error processing batch (failed after 3 retries)"
        )
        assert service.batch_calls == [0, 1, 1, 1, 1]
        assert sleep.delays == [2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_timeouts_are_described_per_batch(self, make_service, sleep):
        service = make_service(
            total_batches=1,
            failures={0: 1},
            batch_error=TransportError("Request to /export/batch timed out.", timed_out=True),
        )
        scheduler, observer = build(service, sleep, 1, max_retries=1)

        await scheduler.run()

        retry = [event for event in observer.events if event[0] == "retry"][0]
        assert retry == ("retry", 0, 0, 2000, "Batch 1 timed out.")

    @pytest.mark.asyncio
    async def test_cancel_before_start_issues_nothing(self, make_service, sleep):
        service = make_service(total_batches=3)
        cancellation = CancellationToken()
        cancellation.cancel()
        scheduler, _ = build(service, sleep, 3, cancellation=cancellation)

        result = await scheduler.run()

        assert result.status == BatchRunStatus.CANCELLED
        assert service.batch_calls == []

    @pytest.mark.asyncio
    async def test_late_success_after_cancel_is_discarded(self, make_service, sleep):
        service = make_service(total_batches=5)
        cancellation = CancellationToken()
        service.hooks[1] = cancellation.cancel
        scheduler, observer = build(service, sleep, 5, cancellation=cancellation)

        result = await scheduler.run()

        assert result.status == BatchRunStatus.CANCELLED
        assert result.next_batch == 1
        assert service.batch_calls == [0, 1]
        assert ("succeeded", 2) not in observer.events

    @pytest.mark.asyncio
    async def test_late_failure_after_cancel_is_not_retried(self, make_service, sleep):
        service = make_service(total_batches=5, failures={0: 1})
        cancellation = CancellationToken()
        service.hooks[0] = cancellation.cancel
        scheduler, _ = build(service, sleep, 5, cancellation=cancellation)

        result = await scheduler.run()

        assert result.status == BatchRunStatus.CANCELLED
        assert service.batch_calls == [0]
        assert sleep.delays == []
