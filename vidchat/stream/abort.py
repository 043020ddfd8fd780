"""Abort token for in-flight streamed replies."""

from __future__ import annotations

import asyncio


class AbortSignal:
    """One-shot cancellation flag that a read loop can await.

    ``abort()`` may be called from any coroutine on the same event loop
    (a stop button handler, a signal handler, a timeout). Aborting twice
    is harmless.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str = ""

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str = "aborted by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
