"""Per-source daily budget and minimum-interval enforcement."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from pydantic import BaseModel

from core.clock import Clock
from core.config import SourceConfig
from core.errors import BudgetExceeded, ConfigValidationError
from schemas import SourceBudgetState
from storage.budget import BudgetStateStore

logger = structlog.get_logger()


class SourceLimits(BaseModel):
    """Budget settings for one source."""

    daily_budget: int
    min_interval_seconds: float


class BudgetGovernor:
    """Gates every adapter call.

    Each source gets its own lock, so callers for one source queue behind
    each other's interval wait while other sources proceed untouched.
    """

    def __init__(
        self,
        sources: list[SourceConfig],
        store: BudgetStateStore,
        clock: Clock,
        safety_margin: int = 2,
    ) -> None:
        self._limits = {
            s.source_id: SourceLimits(
                daily_budget=s.daily_budget,
                min_interval_seconds=s.min_interval_seconds,
            )
            for s in sources
        }
        self._store = store
        self._clock = clock
        self._safety_margin = safety_margin
        self._reserve_locks: dict[str, asyncio.Lock] = {}
        self._inflight_locks: dict[str, asyncio.Lock] = {}

    def _limits_for(self, source: str) -> SourceLimits:
        limits = self._limits.get(source)
        if limits is None:
            raise ConfigValidationError(f"No budget configured for source {source!r}")
        return limits

    def _rolled(self, state: SourceBudgetState) -> SourceBudgetState:
        today = self._clock.today()
        if state.last_reset_day != today:
            if state.last_reset_day is not None:
                logger.info(
                    "Budget day rollover",
                    source=state.source,
                    previous_day=str(state.last_reset_day),
                    requests=state.requests_today,
                )
            state.requests_today = 0
            state.last_reset_day = today
        return state

    async def reserve_slot(self, source: str) -> SourceBudgetState:
        """Reserve one request for ``source``.

        Rolls the day counter, rejects when the budget is spent, waits out
        the minimum interval, then records the request.

        Raises:
            BudgetExceeded: today's count already reached the daily budget.
        """
        limits = self._limits_for(source)
        lock = self._reserve_locks.setdefault(source, asyncio.Lock())
        async with lock:
            state = self._rolled(self._store.load(source))
            if state.requests_today >= limits.daily_budget:
                self._store.save(state)
                raise BudgetExceeded(source, state.requests_today, limits.daily_budget)

            if state.last_request_at is not None:
                elapsed = (self._clock.now() - state.last_request_at).total_seconds()
                wait = limits.min_interval_seconds - elapsed
                if wait > 0:
                    logger.debug("Waiting for source interval", source=source, wait_seconds=round(wait, 2))
                    await self._clock.sleep(wait)

            state.requests_today += 1
            state.last_request_at = self._clock.now()
            self._store.save(state)
            return state

    @asynccontextmanager
    async def slot(self, source: str) -> AsyncIterator[SourceBudgetState]:
        """Reserve a slot and keep the source's single in-flight request open."""
        inflight = self._inflight_locks.setdefault(source, asyncio.Lock())
        async with inflight:
            state = await self.reserve_slot(source)
            yield state

    def remaining(self, source: str) -> int:
        limits = self._limits_for(source)
        state = self._rolled(self._store.load(source))
        return max(0, limits.daily_budget - state.requests_today)

    def nearly_exhausted(self, source: str) -> bool:
        """True when no more than the safety margin of requests is left."""
        return self.remaining(source) <= self._safety_margin

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Used/remaining per source, for run summaries."""
        out: dict[str, dict[str, int]] = {}
        for source, limits in self._limits.items():
            state = self._rolled(self._store.load(source))
            out[source] = {
                "used": state.requests_today,
                "budget": limits.daily_budget,
                "remaining": max(0, limits.daily_budget - state.requests_today),
            }
        return out
