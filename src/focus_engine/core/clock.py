"""Time sources for the timer and the usage tracker."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Wall-clock reading plus an awaitable delay."""

    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Real time, backed by the running event loop."""

    def now(self) -> datetime:
        return datetime.now()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """Virtual clock that only moves when told to.

    Sleepers are woken when ``advance()`` moves the clock past their deadline.
    Time moves one second at a time and the event loop is given a chance to
    run between steps, so a 1 s tick loop and an N s sample loop interleave
    the same way they would against real time.

    Usage:
        clock = ManualClock(datetime(2024, 1, 1, 9, 0))
        timer = PomodoroTimer(config, tracker, clock=clock)
        await timer.start(SessionType.WORK)
        await clock.advance(60)  # sixty ticks
    """

    SETTLE_ROUNDS = 20

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, 9, 0, 0)
        self._sleepers: list[tuple[datetime, asyncio.Future[None]]] = []

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return

        deadline = self._now + timedelta(seconds=seconds)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        entry = (deadline, future)
        self._sleepers.append(entry)
        try:
            await future
        finally:
            if entry in self._sleepers:
                self._sleepers.remove(entry)

    @property
    def pending_sleepers(self) -> int:
        """Number of tasks currently waiting on this clock."""
        return sum(1 for _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float = 1) -> None:
        """Move time forward, waking due sleepers after every whole second."""
        # Tasks created just before this call register their sleepers first
        await self.settle()
        remaining = float(seconds)
        while remaining > 0:
            step = min(1.0, remaining)
            remaining -= step
            self._now += timedelta(seconds=step)
            self._wake_due()
            await self.settle()

    def set(self, moment: datetime) -> None:
        """Jump to an absolute time without waking anyone."""
        self._now = moment

    async def settle(self) -> None:
        """Let woken tasks run until they block again."""
        for _ in range(self.SETTLE_ROUNDS):
            await asyncio.sleep(0)

    def _wake_due(self) -> None:
        for deadline, future in list(self._sleepers):
            if deadline <= self._now and not future.done():
                future.set_result(None)
