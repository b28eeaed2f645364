"""Scorer capability shared by the primary and fallback algorithms."""

from __future__ import annotations

from abc import ABC, abstractmethod

from schemas import CanonicalJob, MatchAlgorithm, MatchResult, UserProfile


class Scorer(ABC):
    """Scores a candidate pool for one user."""

    algorithm: MatchAlgorithm

    @abstractmethod
    async def score(self, user: UserProfile, candidates: list[CanonicalJob]) -> list[MatchResult]:
        """
        Score candidates for a user.

        Returns:
            Scored results in no particular order; may cover only a subset

        Raises:
            PrimaryScorerError: the scorer could not produce a usable answer
        """
        pass


def rank(results: list[MatchResult]) -> list[MatchResult]:
    """Score descending, ties broken by most recent posting."""
    return sorted(results, key=lambda r: (-r.score, -r.job.posted_at.timestamp()))
