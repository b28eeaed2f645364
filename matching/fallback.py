"""Deterministic rule-based scorer used when the primary scorer fails."""

from __future__ import annotations

from filtering.gates import DEFAULT_USER_LANGUAGES, REMOTE_TARGET
from matching.scorer import Scorer
from normalization.classifier import expand_career_paths
from normalization.locations import location_matches
from schemas import (
    CanonicalJob,
    MatchAlgorithm,
    MatchResult,
    UserProfile,
    quality_for_score,
)

CATEGORY_POINTS = 40
LOCATION_POINTS = 25
SENIORITY_POINTS = 15
WORK_MODE_POINTS = 10
LANGUAGE_POINTS = 10


class RuleBasedScorer(Scorer):
    """Additive score over profile overlap, clamped to [0, 100].

    An unset preference counts as satisfied, so a sparse profile still ranks
    by recency rather than scoring everything zero.
    """

    algorithm = MatchAlgorithm.FALLBACK

    def score_job(self, job: CanonicalJob, user: UserProfile) -> tuple[float, list[str]]:
        score = 0
        reasons: list[str] = []

        wanted = expand_career_paths(user.career_paths)
        if not wanted or job.categories & wanted:
            score += CATEGORY_POINTS
            reasons.append("career path")

        targets = user.target_locations
        if (
            not targets
            or (job.is_remote and REMOTE_TARGET in targets)
            or any(location_matches(t, job.city, job.country) for t in targets)
        ):
            score += LOCATION_POINTS
            reasons.append("location")

        if user.seniority is None or user.seniority.value in job.experience_flags:
            score += SENIORITY_POINTS
            reasons.append("seniority")

        if user.work_mode is None or user.work_mode == job.work_mode:
            score += WORK_MODE_POINTS
            reasons.append("work mode")

        spoken = user.languages or DEFAULT_USER_LANGUAGES
        if not job.languages or job.languages & spoken:
            score += LANGUAGE_POINTS
            reasons.append("language")

        return float(max(0, min(100, score))), reasons

    def score_all(self, user: UserProfile, candidates: list[CanonicalJob]) -> list[MatchResult]:
        results = []
        for job in candidates:
            score, reasons = self.score_job(job, user)
            reason = "Matches " + ", ".join(reasons) if reasons else "No profile overlap"
            results.append(
                MatchResult(
                    job=job,
                    score=score,
                    reason=reason,
                    quality=quality_for_score(score),
                    algorithm=self.algorithm,
                )
            )
        return results

    async def score(self, user: UserProfile, candidates: list[CanonicalJob]) -> list[MatchResult]:
        return self.score_all(user, candidates)
