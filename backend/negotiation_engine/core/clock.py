"""
Clock abstraction for the round loop.

WHAT: Injectable source of time and pacing delays
WHY: Tests run the full loop with zero wall-clock delay
HOW: SystemClock uses real time; SimulatedClock advances virtual time
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall-clock time and real asyncio sleeps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class SimulatedClock:
    """
    Virtual clock for tests and offline simulation.

    sleep() advances virtual time immediately and yields to the event
    loop once, so concurrent sessions still interleave.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.total_slept = 0.0

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0.0, *, minutes: float = 0.0):
        self._now += timedelta(seconds=seconds, minutes=minutes)

    async def sleep(self, seconds: float) -> None:
        self.total_slept += seconds
        self.advance(seconds)
        await asyncio.sleep(0)
