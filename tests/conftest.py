"""Pytest configuration and fixtures."""

import asyncio
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from spender_export.config import ExportSettings
from spender_export.errors import ApplicationError, JobServiceError
from spender_export.models import BatchResult, DownloadedFile, PrepareResult


class RecordingSleep:
    """Stands in for ``asyncio.sleep`` and remembers every delay."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class FakeJobService:
    """Scripted job service.

    ``failures`` maps a batch index to how many times it fails before it
    succeeds. ``hooks`` run while a batch request is "in flight", which lets a
    test cancel the export at a precise point.
    """

    def __init__(
        self,
        total_batches: int = 0,
        rate_limit_ms: Optional[int] = 1000,
        failures: Optional[Dict[int, int]] = None,
        prepare_error: Optional[JobServiceError] = None,
        batch_error: Optional[JobServiceError] = None,
    ) -> None:
        self.total_batches = total_batches
        self.rate_limit_ms = rate_limit_ms
        self.failures = dict(failures or {})
        self.prepare_error = prepare_error
        self.batch_error = batch_error or ApplicationError("Server error processing batch")
        self.cancel_error: Optional[JobServiceError] = None
        self.download_error: Optional[JobServiceError] = None
        self.hooks: Dict[int, Callable[[], None]] = {}
        self.calls: List[Tuple] = []

    @property
    def batch_calls(self) -> List[int]:
        return [call[1] for call in self.calls if call[0] == "batch"]

    async def prepare(self, token: str) -> PrepareResult:
        self.calls.append(("prepare", token))
        await asyncio.sleep(0)
        if self.prepare_error is not None:
            raise self.prepare_error
        return PrepareResult(
            total_batches=self.total_batches,
            total_customers=self.total_batches * 100,
            rate_limit_ms=self.rate_limit_ms,
        )

    async def fetch_batch(self, token: str, batch: int) -> BatchResult:
        self.calls.append(("batch", batch))
        hook = self.hooks.get(batch)
        if hook is not None:
            hook()
        await asyncio.sleep(0)
        if self.failures.get(batch, 0) > 0:
            self.failures[batch] -= 1
            raise self.batch_error
        return BatchResult(batch=batch)

    async def cancel(self, token: str) -> None:
        self.calls.append(("cancel", token))
        if self.cancel_error is not None:
            raise self.cancel_error

    async def download(self, token: str) -> DownloadedFile:
        self.calls.append(("download", token))
        if self.download_error is not None:
            raise self.download_error
        return DownloadedFile(
            filename="top-spenders.csv",
            content_type="text/csv",
            content=b"Name,Email,Phone Number,Total Spend\r\n",
        )


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def settings():
    return ExportSettings(
        max_retries=3,
        retry_base_delay_ms=2000,
        default_rate_limit_ms=1000,
        completion_delay_ms=0,
        cancel_reset_delay_ms=1000,
    )


@pytest.fixture
def make_service():
    return FakeJobService
