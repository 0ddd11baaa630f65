"""
Counting completion barrier for the tree walk.

Every unit of work is registered with add() BEFORE it is dispatched and
released with done() when it finishes. wait() returns once the count
drops back to zero, i.e. when every registered unit, including the ones
registered by other units while they ran, has completed.
"""

from __future__ import annotations

import asyncio


class CompletionBarrier:
    """
    Counter + event, safe within one event loop.

    Registering before dispatch matters: if a unit spawned its children
    after calling done(), the count could touch zero while descendants
    were still about to be queued.
    """

    def __init__(self) -> None:
        self._pending = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> int:
        return self._pending

    def add(self, count: int = 1) -> None:
        if count < 0:
            raise ValueError("count must be >= 0")
        if count == 0:
            return
        self._pending += count
        self._idle.clear()

    def done(self) -> None:
        if self._pending <= 0:
            raise RuntimeError("CompletionBarrier.done() called more times than add()")
        self._pending -= 1
        if self._pending == 0:
            self._idle.set()

    async def wait(self) -> None:
        await self._idle.wait()
