"""User preference profile schemas."""

from enum import Enum

from pydantic import Field, field_validator

from .base import AwareDatetime, BaseSchema, TagSet
from .job import ExperienceLevel, WorkMode


class SubscriptionTier(str, Enum):
    """Subscription level controlling delivery cadence and size."""

    FREE = "free"
    PREMIUM = "premium"


class DeliveryPhase(str, Enum):
    """Onboarding phase of a user's delivery schedule."""

    WELCOME = "welcome"
    FOLLOWUP = "followup"
    REGULAR = "regular"


class UserProfile(BaseSchema):
    """Read-only matching input for one user."""

    email: str = Field(..., min_length=3)
    target_locations: TagSet = Field(
        default_factory=set, description="Cities or countries, 'remote' allowed"
    )
    languages: TagSet = Field(default_factory=set, description="ISO-639-1 codes")
    career_paths: TagSet = Field(default_factory=set, description="Category tags")
    seniority: ExperienceLevel | None = None
    work_mode: WorkMode | None = None
    tier: SubscriptionTier = SubscriptionTier.FREE

    # Delivery bookkeeping
    signed_up_at: AwareDatetime
    last_delivery_at: AwareDatetime | None = None
    delivery_count: int = Field(default=0, ge=0)
    phase: DeliveryPhase = DeliveryPhase.WELCOME
    onboarding_complete: bool = False
    delivered_job_keys: TagSet = Field(
        default_factory=set, description="Dedupe keys of every job already sent"
    )

    @field_validator("target_locations", "languages", "career_paths", mode="after")
    @classmethod
    def _lowercase_tags(cls, v: set[str]) -> set[str]:
        return {t.strip().lower() for t in v if t and t.strip()}

    @property
    def is_premium(self) -> bool:
        return self.tier == SubscriptionTier.PREMIUM
