"""Exception hierarchy for the export orchestrator."""

from __future__ import annotations


class ExportError(Exception):
    """Base class for every export related failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class JobServiceError(ExportError):
    """A request against the job service did not succeed."""


class TransportError(JobServiceError):
    """Timeout, connectivity failure or a response without a usable envelope."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class ApplicationError(JobServiceError):
    """The job service answered with a structured failure."""


class PreparationError(ExportError):
    """Phase 1 failed. Never retried automatically."""


class RetriesExhaustedError(ExportError):
    """A batch kept failing after every allowed retry."""

    def __init__(self, batch: int, attempts: int, last_error: str, max_retries: int) -> None:
        super().__init__(f"{last_error} (failed after {max_retries} retries)")
        self.batch = batch
        self.attempts = attempts
        self.last_error = last_error


class InvalidTransitionError(ExportError):
    """An action was requested that the current export state does not allow."""


__all__ = [
    "ExportError",
    "JobServiceError",
    "TransportError",
    "ApplicationError",
    "PreparationError",
    "RetriesExhaustedError",
    "InvalidTransitionError",
]
