"""Two-tier matching: primary scorer with a deterministic fallback."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel, Field

from core.clock import Clock
from core.config import Settings
from core.errors import PrimaryScorerError
from filtering.gates import passes_user_gates
from matching.cache import PrimaryResultCache
from matching.fallback import RuleBasedScorer
from matching.scorer import Scorer, rank
from schemas import (
    CanonicalJob,
    MatchAlgorithm,
    MatchOutcome,
    MatchResult,
    MatchSessionRecord,
    UserProfile,
)
from storage.jobs import JobFilter, JobStore

logger = structlog.get_logger()


class MatchReport(BaseModel):
    """Everything one match attempt produced."""

    user_email: str
    outcome: MatchOutcome
    results: list[MatchResult] = Field(default_factory=list)
    session: MatchSessionRecord


class MatchingEngine:
    """collect candidates -> primary -> [fallback] -> rank -> truncate.

    Primary failures never surface to the caller: errors, timeouts and empty
    answers all downgrade to the rule-based scorer. The only empty outcome
    is a user with no eligible candidates.
    """

    def __init__(
        self,
        store: JobStore,
        settings: Settings,
        clock: Clock,
        primary: Scorer | None = None,
        fallback: RuleBasedScorer | None = None,
        cache: PrimaryResultCache | None = None,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock
        self.primary = primary
        self.fallback = fallback or RuleBasedScorer()
        if cache is None:
            cache = PrimaryResultCache(
                clock,
                ttl_minutes=settings.primary_cache_ttl_minutes,
                max_entries=settings.primary_cache_max_entries,
            )
        self.cache = cache

    def collect_candidates(self, user: UserProfile, now: datetime) -> list[CanonicalJob]:
        """Active jobs passing the match-time gates that the user has not been sent."""
        horizon = self.settings.stale_after_days
        pool = self.store.load_active_jobs(
            JobFilter(posted_after=now - timedelta(days=horizon))
        )
        return [
            job
            for job in pool
            if job.dedupe_key not in user.delivered_job_keys
            and passes_user_gates(job, user, now, horizon).passed
        ]

    async def _score_primary(
        self,
        user: UserProfile,
        candidates: list[CanonicalJob],
        pool_size: int,
    ) -> tuple[list[MatchResult], str | None]:
        """Primary results, or an empty list and the reason it failed."""
        if self.primary is None:
            return [], None

        # Pre-rank by the fallback so the capped pool holds the likeliest fits
        pool = [r.job for r in rank(self.fallback.score_all(user, candidates))[:pool_size]]
        cached = self.cache.get(user.email, pool)
        if cached is not None:
            logger.debug("Primary results served from cache", user=user.email, pool=len(pool))
            return cached, None

        timeout = self.settings.primary_scorer_timeout_seconds
        try:
            results = await asyncio.wait_for(self.primary.score(user, pool), timeout=timeout)
        except asyncio.TimeoutError:
            return [], f"primary scorer timed out after {timeout}s"
        except PrimaryScorerError as e:
            return [], str(e)
        except Exception as e:
            logger.exception("Primary scorer raised", user=user.email)
            return [], f"primary scorer failed: {e!r}"
        if not results:
            return [], "primary scorer returned no matches"
        self.cache.put(user.email, pool, results)
        return results, None

    async def match(
        self,
        user: UserProfile,
        count: int | None = None,
        now: datetime | None = None,
    ) -> MatchReport:
        """Rank and truncate matches for one user."""
        start = time.monotonic()
        now = now or self.clock.now()
        policy = self.settings.tier_policy(user.tier.value)
        count = count if count is not None else policy.count

        candidates = self.collect_candidates(user, now)
        if not candidates:
            session = MatchSessionRecord(
                user_email=user.email,
                match_algorithm=MatchAlgorithm.FALLBACK,
                candidates=0,
                duration_ms=(time.monotonic() - start) * 1000,
            )
            self._emit(session)
            return MatchReport(
                user_email=user.email,
                outcome=MatchOutcome.NO_CANDIDATES,
                session=session,
            )

        results, error = await self._score_primary(user, candidates, policy.primary_pool_size)
        algorithm = MatchAlgorithm.PRIMARY
        if not results:
            if error:
                logger.warning("Primary scorer failed, using fallback", user=user.email, error=error)
            results = self.fallback.score_all(user, candidates)
            algorithm = MatchAlgorithm.FALLBACK

        ranked = rank(results)[:count]
        session = MatchSessionRecord(
            user_email=user.email,
            match_algorithm=algorithm,
            matches_generated=len(ranked),
            candidates=len(candidates),
            success=True,
            fallback_used=algorithm == MatchAlgorithm.FALLBACK and self.primary is not None,
            error_message=error,
            duration_ms=(time.monotonic() - start) * 1000,
        )
        self._emit(session)
        return MatchReport(
            user_email=user.email,
            outcome=MatchOutcome.MATCHED,
            results=ranked,
            session=session,
        )

    @staticmethod
    def _emit(session: MatchSessionRecord) -> None:
        logger.info("match_session", **session.model_dump(mode="json"))
