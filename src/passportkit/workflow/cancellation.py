"""Cooperative cancellation for wizard side effects."""

from __future__ import annotations


class CancellationToken:
    """Advisory cancel flag captured by an async continuation.

    Cancelling does not interrupt an in-flight call; the continuation checks
    ``cancelled`` when it resumes and drops its result.
    """

    __slots__ = ("_cancelled", "reason")

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str | None = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, reason={self.reason!r})"
