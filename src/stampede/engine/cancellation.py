"""Cancellation token shared by the workers, the pool and the aggregator."""

from __future__ import annotations

import asyncio

from stampede._internal.logging import get_logger

logger = get_logger("engine.cancellation")


class CancellationToken:
    """One-shot broadcast signal telling every worker to stop.

    ``cancel()`` may be called any number of times, from the aggregator once
    all results are in or from a signal handler for an early abort; only the
    first call has an effect.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Return True once ``cancel()`` has been called."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Return the reason given to the first ``cancel()`` call."""
        return self._reason

    def cancel(self, reason: str = "done") -> bool:
        """Signal cancellation.

        Args:
            reason: Short description kept for logging and reporting.

        Returns:
            True if this call cancelled the token, False if it already was.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        logger.debug("Cancellation requested: %s", reason)
        return True

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
