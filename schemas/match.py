"""Match result and match-session audit schemas."""

from enum import Enum

from pydantic import Field

from .base import BaseSchema
from .job import CanonicalJob


class MatchAlgorithm(str, Enum):
    """Which scorer produced a result."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class QualityBucket(str, Enum):
    """Human-facing match quality label."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def quality_for_score(score: float) -> QualityBucket:
    if score >= 80:
        return QualityBucket.EXCELLENT
    if score >= 60:
        return QualityBucket.GOOD
    if score >= 40:
        return QualityBucket.FAIR
    return QualityBucket.POOR


class MatchResult(BaseSchema):
    """One ranked job for one user in the current delivery cycle."""

    job: CanonicalJob
    score: float = Field(..., ge=0, le=100)
    reason: str = ""
    quality: QualityBucket
    algorithm: MatchAlgorithm


class MatchOutcome(str, Enum):
    """Terminal state of a match request."""

    MATCHED = "matched"
    NO_CANDIDATES = "no_candidates"


class MatchSessionRecord(BaseSchema):
    """Audit record emitted once per user per match attempt."""

    user_email: str
    match_algorithm: MatchAlgorithm
    matches_generated: int = 0
    candidates: int = 0
    success: bool = True
    fallback_used: bool = False
    error_message: str | None = None
    duration_ms: float = 0.0
