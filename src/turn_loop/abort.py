"""Turn-scoped cancellation signal."""

from __future__ import annotations

import asyncio


class AbortSignal:
    """An observable, awaitable flag indicating an operation was aborted."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    async def wait(self) -> None:
        """Suspend until the signal fires."""
        await self._event.wait()

    def _abort(self, reason: str) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()


class AbortController:
    """Controls an AbortSignal to cancel in-flight work."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: str = "aborted") -> None:
        self.signal._abort(reason)
