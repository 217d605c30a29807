# src/services/cancellation.py

"""Cooperative cancellation shared between the synchroniser and fetchers."""

import asyncio


class CancellationToken:
    """One-shot flag a fetch can poll or await.

    Cancelling only promises that the fetch's result will be ignored;
    the underlying I/O may still run to completion.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
