"""In-memory export sessions for the reference job service."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .models import CustomerRow, ExportSession

Clock = Callable[[], float]


@dataclass
class _Entry:
    session: Optional[ExportSession] = None
    batches: Dict[int, List[CustomerRow]] = field(default_factory=dict)
    expires_at: float = 0.0


class ExportJobStore:
    """Holds prepared sessions and collected batches, keyed by token.

    Tokens and entries expire ``ttl_seconds`` after they were last used.
    Expired ones are swept whenever a new token is issued. Batches are stored
    by index so delivering the same batch twice does not duplicate rows.
    """

    def __init__(self, ttl_seconds: int = 3600, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._tokens: Dict[str, float] = {}
        self._entries: Dict[str, _Entry] = {}

    def issue_token(self) -> str:
        self.sweep()
        token = secrets.token_urlsafe(24)
        self._tokens[token] = self._clock() + self.ttl_seconds
        return token

    def is_valid(self, token: Optional[str]) -> bool:
        if token is None:
            return False
        expires_at = self._tokens.get(token)
        now = self._clock()
        if expires_at is None or expires_at <= now:
            return False
        self._tokens[token] = now + self.ttl_seconds
        return True

    def sweep(self) -> int:
        """Forget expired tokens and entries. Returns how many tokens went."""
        now = self._clock()
        expired = [token for token, expires_at in self._tokens.items() if expires_at <= now]
        for token in expired:
            del self._tokens[token]
        for token in [token for token, entry in self._entries.items() if entry.expires_at <= now]:
            del self._entries[token]
        return len(expired)

    @property
    def token_count(self) -> int:
        return len(self._tokens)

    def _live(self, token: str) -> Optional[_Entry]:
        entry = self._entries.get(token)
        if entry is not None and entry.expires_at <= self._clock():
            del self._entries[token]
            return None
        return entry

    def _touch(self, entry: _Entry) -> None:
        entry.expires_at = self._clock() + self.ttl_seconds

    def start(self, token: str, session: ExportSession) -> None:
        entry = _Entry(session=session)
        self._touch(entry)
        self._entries[token] = entry

    def get_session(self, token: str) -> Optional[ExportSession]:
        entry = self._live(token)
        return entry.session if entry else None

    def store_batch(self, token: str, batch: int, rows: List[CustomerRow]) -> int:
        """Store ``rows`` for ``batch`` and return the number of rows collected."""
        entry = self._live(token)
        if entry is None or entry.session is None:
            raise KeyError(token)
        entry.batches[batch] = rows
        entry.session.current_batch = max(entry.session.current_batch, batch + 1)
        self._touch(entry)
        return sum(len(batch_rows) for batch_rows in entry.batches.values())

    def rows(self, token: str) -> List[CustomerRow]:
        entry = self._live(token)
        if entry is None:
            return []
        return [row for index in sorted(entry.batches) for row in entry.batches[index]]

    def clear(self, token: str) -> None:
        self._entries.pop(token, None)


__all__ = ["ExportJobStore"]
