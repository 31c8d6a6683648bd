"""Clocks used to simulate backend latency."""

from __future__ import annotations

import asyncio
from typing import List, Protocol, Tuple


class Clock(Protocol):
    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioClock:
    """Real time, backed by the running event loop."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class VirtualClock:
    """A clock that only moves when :meth:`advance` is called.

    Sleepers park on a future that is resolved once virtual time reaches
    their deadline. Must be used from inside a running event loop.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: List[Tuple[float, asyncio.Future]] = []

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + seconds, future))
        await future

    def advance(self, seconds: float) -> int:
        """Move time forward and wake every sleeper that is now due."""

        self.now += seconds
        due = [entry for entry in self._sleepers if entry[0] <= self.now]
        self._sleepers = [entry for entry in self._sleepers if entry[0] > self.now]
        for _, future in due:
            if not future.done():
                future.set_result(None)
        return len(due)

    @property
    def pending(self) -> int:
        return len(self._sleepers)
