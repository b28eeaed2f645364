"""
Pydantic schemas for the job pipeline.

Contract-first design: these schemas define the data contracts
between all pipeline stages.
"""

from .budget import SourceBudgetState
from .job import CanonicalJob, ExperienceLevel, JobStatus, RawPosting, WorkMode
from .match import (
    MatchAlgorithm,
    MatchOutcome,
    MatchResult,
    MatchSessionRecord,
    QualityBucket,
    quality_for_score,
)
from .profile import DeliveryPhase, SubscriptionTier, UserProfile

__all__ = [
    # Jobs
    "CanonicalJob",
    "ExperienceLevel",
    "JobStatus",
    "RawPosting",
    "WorkMode",
    # Users
    "DeliveryPhase",
    "SubscriptionTier",
    "UserProfile",
    # Matching
    "MatchAlgorithm",
    "MatchOutcome",
    "MatchResult",
    "MatchSessionRecord",
    "QualityBucket",
    "quality_for_score",
    # Budget
    "SourceBudgetState",
]
