"""Progress projection for export jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .models import ExportJob, ExportState, ProgressSnapshot

ProgressListener = Callable[[ProgressSnapshot], None]


@dataclass(frozen=True)
class ProgressMessages:
    """Status line templates shown while an export runs."""

    preparing: str = "Preparing user data…"
    processing: str = "Processing batch {current} of {total}..."
    retry_suffix: str = " (retry {retry}/{max_retries})"
    retrying: str = "Retrying batch {current} in {seconds}s…"
    complete: str = "Export complete! Preparing download..."
    cancelled: str = "Export cancelled."
    error: str = "An error occurred: {message}"


def percent_complete(current_batch: int, total_batches: int) -> int:
    """Round half up, clamped to 0..100. An empty export is already done."""
    if total_batches <= 0:
        return 100
    current = min(max(current_batch, 0), total_batches)
    return (current * 200 + total_batches) // (2 * total_batches)


class ProgressReporter:
    """Maps export job state onto a :class:`ProgressSnapshot`.

    Every ``*_snapshot`` method is a pure function of its arguments. ``emit``
    forwards a snapshot to the optional listener (a UI, the CLI, a test).
    """

    def __init__(
        self,
        max_retries: int,
        messages: Optional[ProgressMessages] = None,
        listener: Optional[ProgressListener] = None,
    ) -> None:
        self.max_retries = max_retries
        self.messages = messages or ProgressMessages()
        self.listener = listener

    def snapshot(self, job: ExportJob) -> ProgressSnapshot:
        if job.state == ExportState.IDLE:
            return ProgressSnapshot(percent=0, message="")
        if job.state == ExportState.PREPARING:
            return ProgressSnapshot(percent=0, message=self.messages.preparing)
        if job.state in (ExportState.COMPLETING, ExportState.COMPLETE):
            return ProgressSnapshot(percent=100, message=self.messages.complete)
        if job.state == ExportState.CANCELLED:
            return ProgressSnapshot(percent=0, message=self.messages.cancelled)
        if job.state == ExportState.FAILED:
            return ProgressSnapshot(
                percent=percent_complete(job.current_batch, job.total_batches),
                message=self.messages.error.format(message=job.error_message or "Unknown error"),
            )

        percent = percent_complete(job.current_batch, job.total_batches)
        if job.current_batch >= job.total_batches:
            return ProgressSnapshot(percent=percent, message=self.messages.complete)
        message = self.messages.processing.format(
            current=job.current_batch + 1, total=job.total_batches
        )
        if job.retry_count > 0:
            message += self.messages.retry_suffix.format(
                retry=job.retry_count, max_retries=self.max_retries
            )
        return ProgressSnapshot(percent=percent, message=message)

    def retry_snapshot(self, job: ExportJob, delay_ms: int) -> ProgressSnapshot:
        """Status shown while waiting out a backoff delay."""
        seconds = delay_ms / 1000
        return ProgressSnapshot(
            percent=percent_complete(job.current_batch, job.total_batches),
            message=self.messages.retrying.format(
                current=job.current_batch + 1,
                seconds=int(seconds) if seconds == int(seconds) else seconds,
            ),
        )

    def emit(self, snapshot: ProgressSnapshot) -> ProgressSnapshot:
        if self.listener is not None:
            self.listener(snapshot)
        return snapshot

    def report(self, job: ExportJob) -> ProgressSnapshot:
        return self.emit(self.snapshot(job))


__all__ = ["ProgressMessages", "ProgressReporter", "ProgressListener", "percent_complete"]
