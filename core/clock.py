"""Injectable time source.

Everything that reads the wall clock or sleeps goes through a Clock so tests
can substitute FakeClock and run rate-limit waits instantly.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Time source used by the governor, dedup cache and scheduler."""

    def now(self) -> datetime:
        """Current time, timezone-aware (UTC)."""
        ...

    def today(self) -> date:
        """Current local calendar day, used for budget rollover."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Real clock backed by datetime and asyncio.sleep."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def today(self) -> date:
        return datetime.now().astimezone().date()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


class FakeClock:
    """Manually driven clock. sleep() advances time instead of waiting."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 1, 6, 9, 0, tzinfo=UTC)
        self.slept: list[float] = []

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    async def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        if seconds > 0:
            self._now += timedelta(seconds=seconds)
        # Yield so other tasks get scheduled like a real sleep would
        await asyncio.sleep(0)

    def advance(self, **kwargs: float) -> None:
        """Move the clock forward, e.g. advance(hours=25)."""
        self._now += timedelta(**kwargs)

    def set(self, moment: datetime) -> None:
        self._now = moment
