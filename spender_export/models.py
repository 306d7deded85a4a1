"""Domain models for the export orchestrator."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .errors import InvalidTransitionError


class ExportState(str, Enum):
    """Lifecycle state of an export job."""

    IDLE = "idle"
    PREPARING = "preparing"
    RUNNING_BATCHES = "running_batches"
    COMPLETING = "completing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ExportEvent(str, Enum):
    """Inputs accepted by the export state machine."""

    START = "start"
    PREPARED = "prepared"
    PREPARE_FAILED = "prepare_failed"
    BATCH_SUCCEEDED = "batch_succeeded"
    BATCHES_DONE = "batches_done"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CANCEL = "cancel"
    FINALISED = "finalised"
    RESET = "reset"


ACTIVE_STATES = frozenset({ExportState.PREPARING, ExportState.RUNNING_BATCHES})
TERMINAL_STATES = frozenset(
    {ExportState.COMPLETE, ExportState.CANCELLED, ExportState.FAILED}
)

_TRANSITIONS: Dict[tuple[ExportState, ExportEvent], ExportState] = {
    (ExportState.IDLE, ExportEvent.START): ExportState.PREPARING,
    (ExportState.PREPARING, ExportEvent.PREPARED): ExportState.RUNNING_BATCHES,
    (ExportState.PREPARING, ExportEvent.BATCHES_DONE): ExportState.COMPLETE,
    (ExportState.PREPARING, ExportEvent.PREPARE_FAILED): ExportState.FAILED,
    (ExportState.PREPARING, ExportEvent.CANCEL): ExportState.CANCELLED,
    (ExportState.RUNNING_BATCHES, ExportEvent.BATCH_SUCCEEDED): ExportState.RUNNING_BATCHES,
    (ExportState.RUNNING_BATCHES, ExportEvent.BATCHES_DONE): ExportState.COMPLETING,
    (ExportState.RUNNING_BATCHES, ExportEvent.RETRIES_EXHAUSTED): ExportState.FAILED,
    (ExportState.RUNNING_BATCHES, ExportEvent.CANCEL): ExportState.CANCELLED,
    (ExportState.COMPLETING, ExportEvent.FINALISED): ExportState.COMPLETE,
}


def next_state(state: ExportState, event: ExportEvent) -> ExportState:
    """Return the state reached from ``state`` on ``event``.

    ``RESET`` is accepted from every state. Any other pair missing from the
    transition table raises :class:`InvalidTransitionError`.
    """
    if event is ExportEvent.RESET:
        return ExportState.IDLE
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot apply {event.value!r} while export is {state.value!r}"
        ) from None


class ExportJob(BaseModel):
    """In-memory record of one export run."""

    state: ExportState = ExportState.IDLE
    total_batches: int = 0
    current_batch: int = 0
    retry_count: int = 0
    cancelled: bool = False
    rate_limit_ms: int = 0
    total_customers: Optional[int] = None
    error_message: Optional[str] = None
    attempts: int = 0
    failed_attempts: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES


class ProgressSnapshot(BaseModel):
    """What the user sees: a percentage and a status line."""

    percent: int = Field(ge=0, le=100)
    message: str


class ServiceResponse(BaseModel):
    """Envelope every JSON job service answer is wrapped in."""

    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)


class SessionGrant(BaseModel):
    """Authorization token and pacing handed out by the job service."""

    token: str
    rate_limit_ms: int
    batch_size: int


class PrepareResult(BaseModel):
    """Phase 1 answer."""

    total_batches: int = Field(ge=0)
    total_customers: Optional[int] = None
    rate_limit_ms: Optional[int] = Field(default=None, ge=0)


class BatchResult(BaseModel):
    """Acknowledgement for a stored batch."""

    batch: Optional[int] = None
    processed: Optional[int] = None
    total: Optional[int] = None


class DownloadedFile(BaseModel):
    """The assembled export file."""

    filename: str
    content_type: str
    content: bytes


__all__ = [
    "ACTIVE_STATES",
    "TERMINAL_STATES",
    "ExportState",
    "ExportEvent",
    "next_state",
    "ExportJob",
    "ProgressSnapshot",
    "ServiceResponse",
    "SessionGrant",
    "PrepareResult",
    "BatchResult",
    "DownloadedFile",
]
