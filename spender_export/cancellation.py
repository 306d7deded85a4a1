"""Cooperative cancellation flag."""

from __future__ import annotations


class CancellationToken:
    """A one-way flag checked between scheduling steps.

    Setting it never interrupts a request that is already on the wire; the
    owner checks it before issuing the next request and again before acting
    on a response.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Set the flag. Returns ``False`` if it was already set."""
        if self._cancelled:
            return False
        self._cancelled = True
        return True

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"


__all__ = ["CancellationToken"]
