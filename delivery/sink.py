"""Delivery sink contract.

Composing and sending the email is another service's job; the pipeline
only hands over a recipient and a ranked list.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from schemas import MatchResult

logger = structlog.get_logger()


class DeliverySink(ABC):
    """Abstract base for anything that can deliver a ranked job list."""

    @abstractmethod
    async def deliver(self, email: str, matches: list[MatchResult]) -> bool:
        """Hand over matches for one recipient. False means not delivered."""


class LoggingDeliverySink(DeliverySink):
    """Logs each delivery and keeps it in memory for inspection."""

    def __init__(self) -> None:
        self.delivered: dict[str, list[MatchResult]] = {}

    async def deliver(self, email: str, matches: list[MatchResult]) -> bool:
        self.delivered[email] = list(matches)
        logger.info(
            "Matches delivered",
            email=email,
            count=len(matches),
            jobs=[m.job.dedupe_key for m in matches],
        )
        return True
