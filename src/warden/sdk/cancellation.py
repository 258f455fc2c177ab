"""Cooperative cancellation shared by the runner and the analyzer."""

import asyncio


class AnalysisCancelledError(Exception):
    """An analyzer call was abandoned because the token was raised."""


class CancellationToken:
    """
    A process-wide cancellation signal.

    Raising it stops the runner from scheduling further hunks and files;
    analyzers receive the same token so they can abort their own I/O.
    In-flight calls are never killed.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Raise the signal. Idempotent; the first reason is kept."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until the signal is raised."""
        await self._event.wait()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken({state})"
