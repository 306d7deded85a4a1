"""Batch export of customers ranked by total spend."""

from __future__ import annotations

from .cancellation import CancellationToken
from .clients import JobService, JobServiceClient
from .config import ExportSettings, JobServiceSettings
from .controller import ExportController
from .errors import (
    ApplicationError,
    ExportError,
    InvalidTransitionError,
    JobServiceError,
    PreparationError,
    RetriesExhaustedError,
    TransportError,
)
from .logging import configure_logging
from .models import (
    DownloadedFile,
    ExportEvent,
    ExportJob,
    ExportState,
    PrepareResult,
    ProgressSnapshot,
    next_state,
)
from .progress import ProgressReporter, percent_complete
from .retry import RetryDecision, RetryPolicy
from .scheduler import BatchRunResult, BatchRunStatus, BatchScheduler

__version__ = "1.3.0"

__all__ = [
    "ApplicationError",
    "BatchRunResult",
    "BatchRunStatus",
    "BatchScheduler",
    "CancellationToken",
    "DownloadedFile",
    "ExportController",
    "ExportError",
    "ExportEvent",
    "ExportJob",
    "ExportSettings",
    "ExportState",
    "InvalidTransitionError",
    "JobService",
    "JobServiceClient",
    "JobServiceError",
    "JobServiceSettings",
    "PrepareResult",
    "PreparationError",
    "ProgressReporter",
    "ProgressSnapshot",
    "RetriesExhaustedError",
    "RetryDecision",
    "RetryPolicy",
    "TransportError",
    "configure_logging",
    "next_state",
    "percent_complete",
]
