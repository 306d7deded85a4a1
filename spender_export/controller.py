"""Top level export state machine."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional, Set

from structlog.stdlib import BoundLogger

from .cancellation import CancellationToken
from .clients import JobService
from .config import ExportSettings
from .errors import (
    InvalidTransitionError,
    JobServiceError,
    PreparationError,
    TransportError,
)
from .logging import get_logger
from .models import (
    DownloadedFile,
    ExportEvent,
    ExportJob,
    ExportState,
    ProgressSnapshot,
    next_state,
)
from .progress import ProgressListener, ProgressReporter
from .retry import RetryPolicy
from .scheduler import BatchRunStatus, BatchScheduler, Sleep

PREPARE_TIMEOUT_MESSAGE = (
    "The server took too long to prepare the data. Try again or contact your "
    "host to increase the maximum execution time."
)


class _JobObserver:
    """Applies scheduler events to the job that owns them."""

    def __init__(self, controller: "ExportController", job: ExportJob) -> None:
        self.controller = controller
        self.job = job

    def batch_started(self, batch: int, retry_count: int) -> None:
        self.job.current_batch = batch
        self.job.retry_count = retry_count
        self.job.attempts += 1
        self.controller._report(self.job)

    def batch_succeeded(self, next_batch: int) -> None:
        self.controller._apply(self.job, ExportEvent.BATCH_SUCCEEDED)
        self.job.current_batch = next_batch
        self.job.retry_count = 0
        self.job.error_message = None
        self.controller._report(self.job)

    def retry_scheduled(self, batch: int, retry_count: int, delay_ms: int, error: str) -> None:
        self.job.error_message = error
        self.controller._report(
            self.job, self.controller.reporter.retry_snapshot(self.job, delay_ms)
        )


class ExportController:
    """Drives one export job from ``start()`` to a terminal state.

    ``start()`` runs Phase 1 (prepare) and then the batch loop, returning once
    the job is Complete, Failed or Cancelled. Job service failures never
    escape; they end up as the job's ``error_message``. ``cancel()`` may be
    called from another task while ``start()`` is awaiting the network.
    """

    def __init__(
        self,
        service: JobService,
        token: str,
        settings: Optional[ExportSettings] = None,
        *,
        on_progress: Optional[ProgressListener] = None,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.service = service
        self.token = token
        self.settings = settings or ExportSettings()
        self.policy = RetryPolicy(
            max_retries=self.settings.max_retries,
            base_delay_ms=self.settings.retry_base_delay_ms,
        )
        self.reporter = ProgressReporter(self.settings.max_retries, listener=on_progress)
        self.logger = logger or get_logger("export_controller")
        self._sleep = sleep
        self._job = ExportJob()
        self._cancellation = CancellationToken()
        self._background: Set[asyncio.Task] = set()

    @property
    def job(self) -> ExportJob:
        return self._job

    @property
    def state(self) -> ExportState:
        return self._job.state

    @property
    def progress(self) -> ProgressSnapshot:
        return self.reporter.snapshot(self._job)

    def _apply(self, job: ExportJob, event: ExportEvent) -> ExportState:
        previous = job.state
        job.state = next_state(job.state, event)
        if job.state != previous:
            self.logger.debug(
                "export_state_changed",
                previous=previous.value,
                state=job.state.value,
                trigger=event.value,
            )
        return job.state

    def _report(self, job: ExportJob, snapshot: Optional[ProgressSnapshot] = None) -> None:
        # Progress from an abandoned job must not overwrite the live one.
        if job is not self._job:
            return
        try:
            self.reporter.emit(snapshot or self.reporter.snapshot(job))
        except Exception as exc:
            self.logger.error("progress_listener_failed", state=job.state.value, error=str(exc))

    async def _wait(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)

    async def start(self) -> ExportJob:
        """Run a fresh export to completion, failure or cancellation."""
        if self._job.is_active:
            raise InvalidTransitionError("An export is already running")

        job = self._job = ExportJob()
        cancellation = self._cancellation = CancellationToken()
        self._apply(job, ExportEvent.START)
        self._report(job)
        self.logger.info("export_started")

        try:
            await self._run(job, cancellation)
        except Exception as exc:
            self.logger.exception("export_crashed", state=job.state.value, error=str(exc))
            if job.state == ExportState.COMPLETING:
                # Every batch is stored; only the completion pause failed.
                self._finalise(job)
            elif not cancellation.cancelled and job.is_active:
                event = (
                    ExportEvent.PREPARE_FAILED
                    if job.state == ExportState.PREPARING
                    else ExportEvent.RETRIES_EXHAUSTED
                )
                self._fail(job, event, str(exc))
        return job

    async def _run(self, job: ExportJob, cancellation: CancellationToken) -> None:
        if cancellation.cancelled:
            return

        try:
            prepared = await self.service.prepare(self.token)
        except JobServiceError as exc:
            if cancellation.cancelled:
                self.logger.info("late_prepare_failure_discarded")
                return
            error = PreparationError(
                PREPARE_TIMEOUT_MESSAGE
                if isinstance(exc, TransportError) and exc.timed_out
                else exc.message
            )
            self.logger.error("prepare_failed", error=error.message)
            self._fail(job, ExportEvent.PREPARE_FAILED, error.message)
            return

        if cancellation.cancelled:
            self.logger.info("late_prepare_result_discarded")
            return

        job.total_batches = prepared.total_batches
        job.total_customers = prepared.total_customers
        job.rate_limit_ms = (
            prepared.rate_limit_ms
            if prepared.rate_limit_ms is not None
            else self.settings.default_rate_limit_ms
        )
        self.logger.info(
            "export_prepared",
            total_batches=job.total_batches,
            total_customers=job.total_customers,
            rate_limit_ms=job.rate_limit_ms,
        )

        if job.total_batches == 0:
            self._apply(job, ExportEvent.BATCHES_DONE)
            job.completed_at = datetime.now()
            self._report(job)
            self.logger.info("export_completed", total_batches=0)
            return

        self._apply(job, ExportEvent.PREPARED)
        self._report(job)

        scheduler = BatchScheduler(
            self.service,
            self.token,
            job.total_batches,
            self.policy,
            cancellation,
            _JobObserver(self, job),
            rate_limit_ms=job.rate_limit_ms,
            sleep=self._sleep,
        )
        result = await scheduler.run()

        if result.status == BatchRunStatus.CANCELLED:
            return
        if result.status == BatchRunStatus.FAILED:
            job.failed_attempts = result.error.attempts
            self._fail(job, ExportEvent.RETRIES_EXHAUSTED, result.error.message)
            return

        self._apply(job, ExportEvent.BATCHES_DONE)
        self._report(job)
        await self._wait(self.settings.completion_delay_ms)
        self._finalise(job)

    def _finalise(self, job: ExportJob) -> None:
        self._apply(job, ExportEvent.FINALISED)
        job.completed_at = datetime.now()
        self._report(job)
        self.logger.info("export_completed", total_batches=job.total_batches)

    def _fail(self, job: ExportJob, event: ExportEvent, message: str) -> None:
        job.error_message = message
        self._apply(job, event)
        self._report(job)

    def cancel(self) -> None:
        """Stop scheduling batches and release the service's cached data.

        The request already on the wire, if any, is left to finish; its
        result is ignored. The job resets to Idle after a short delay.
        """
        job = self._job
        if not job.is_active:
            raise InvalidTransitionError(f"Cannot cancel an export that is {job.state.value}")

        self._cancellation.cancel()
        job.cancelled = True
        self._apply(job, ExportEvent.CANCEL)
        self._report(job)
        self.logger.info("export_cancelled", batch=job.current_batch)

        self._spawn(self._notify_cancel())
        self._spawn(self._reset_after_cancel(job))

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _notify_cancel(self) -> None:
        try:
            await self.service.cancel(self.token)
        except JobServiceError as exc:
            self.logger.warning("cancel_notification_failed", error=exc.message)

    async def _reset_after_cancel(self, job: ExportJob) -> None:
        await self._wait(self.settings.cancel_reset_delay_ms)
        if job is self._job and job.state == ExportState.CANCELLED:
            self.reset()

    def reset(self) -> None:
        """Discard the current job and return to Idle."""
        if self._job.is_active:
            raise InvalidTransitionError("Cancel the running export before resetting it")
        self.logger.debug("export_reset", previous=self._job.state.value)
        self._job = ExportJob(state=next_state(self._job.state, ExportEvent.RESET))
        self._report(self._job)

    async def download(self) -> DownloadedFile:
        """Fetch the assembled file. Only allowed once the job is Complete.

        A failed download is re-raised and leaves the job Complete so the
        caller can simply try again.
        """
        if self._job.state != ExportState.COMPLETE:
            raise InvalidTransitionError("The export is not complete yet")
        try:
            exported = await self.service.download(self.token)
        except JobServiceError as exc:
            self.logger.warning("download_failed", error=exc.message)
            raise
        self.logger.info("export_downloaded", filename=exported.filename, size=len(exported.content))
        return exported

    async def drain(self) -> None:
        """Wait for the cancel notification and delayed reset to finish."""
        while self._background:
            pending = list(self._background)
            self._background.difference_update(pending)
            await asyncio.gather(*pending, return_exceptions=True)


__all__ = ["ExportController", "PREPARE_TIMEOUT_MESSAGE"]
