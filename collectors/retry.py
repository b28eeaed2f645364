"""Single retry policy shared by every adapter call site."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from core.config import Settings
from core.errors import RateLimited

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Bounded retry for rate-limit responses.

    With the defaults a 429 is followed by one fixed cooldown and one retry;
    a second 429 is re-raised to the caller as RateLimited.
    """

    max_attempts: int = 2
    cooldown_seconds: float = 60.0
    max_wait_seconds: float = 300.0
    retryable: tuple[type[BaseException], ...] = field(default=(RateLimited,))

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_attempts=settings.rate_limit_max_attempts,
            cooldown_seconds=settings.rate_limit_cooldown_seconds,
        )

    def wait_seconds(self, exc: BaseException | None) -> float:
        """Cooldown before the next attempt, honouring a longer Retry-After."""
        retry_after = getattr(exc, "retry_after", None) or 0.0
        return min(max(self.cooldown_seconds, float(retry_after)), self.max_wait_seconds)

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return self.wait_seconds(exc)

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying after rate limit",
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        sleep: Callable[[float], Awaitable[None]],
    ) -> T:
        """Run ``fn`` under the policy, sleeping through the injected clock."""
        retrying = AsyncRetrying(
            sleep=sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(self.retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await fn()
        return result
