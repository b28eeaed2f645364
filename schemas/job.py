"""Job posting schemas: source-native RawPosting and the CanonicalJob."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, model_validator

from .base import AwareDatetime, BaseSchema, TagSet


class WorkMode(str, Enum):
    """Where the work happens."""

    ONSITE = "on-site"
    HYBRID = "hybrid"
    REMOTE = "remote"


class JobStatus(str, Enum):
    """Lifecycle status of a canonical job."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    FILTERED = "filtered"


class ExperienceLevel(str, Enum):
    """Seniority / experience flags derived from posting text."""

    INTERNSHIP = "internship"
    GRADUATE = "graduate"
    EARLY_CAREER = "early-career"
    EXPERIENCED = "experienced"


class RawPosting(BaseSchema):
    """Source-native posting, ephemeral for the duration of one fetch."""

    source: str = Field(..., description="Source identifier (e.g., 'adzuna')")
    source_id: str | None = Field(None, description="Native ID within the source")
    title: str = Field(default="", description="Job title as published")
    company: str = Field(default="", description="Company name as published")
    location: str | None = Field(None, description="Free-text location")
    description: str = Field(default="", description="Plain text or HTML body")
    url: str = Field(default="", description="Posting URL")
    posted_at: Any = Field(None, description="Date in whatever shape the source uses")
    language: str | None = Field(None, description="Language hint from the source")
    remote: bool | None = Field(None, description="Source-declared remote flag")
    raw_data: dict[str, Any] = Field(default_factory=dict)


class CanonicalJob(BaseSchema):
    """Source-agnostic, deduplicated job record."""

    # Identity
    dedupe_key: str = Field(..., min_length=1)
    source: str
    source_native_id: str | None = None

    # Descriptive
    title: str
    company: str
    description: str = ""
    location_raw: str = ""
    city: str = "Unknown"
    country: str = "Unknown"
    url: str = ""

    # Classification
    categories: TagSet = Field(default_factory=set)
    experience_flags: TagSet = Field(default_factory=set)
    work_mode: WorkMode = WorkMode.ONSITE
    languages: TagSet = Field(default_factory=set)
    posting_language: str | None = None

    # Temporal
    posted_at: AwareDatetime
    first_seen_at: AwareDatetime
    last_seen_at: AwareDatetime

    # Lifecycle
    is_active: bool = True
    status: JobStatus = JobStatus.ACTIVE
    filtered_reason: str | None = None

    @model_validator(mode="after")
    def _filtered_is_inactive(self) -> "CanonicalJob":
        if self.status == JobStatus.FILTERED:
            if self.is_active or not self.filtered_reason:
                raise ValueError("filtered jobs must be inactive with a reason")
        return self

    @property
    def is_remote(self) -> bool:
        return self.work_mode == WorkMode.REMOTE

    def mark_filtered(self, reason: str) -> None:
        """Soft-delete as filtered; kept in the store for observability."""
        self.filtered_reason = reason
        self.is_active = False
        self.status = JobStatus.FILTERED

    def seen_again(self, seen_at: datetime) -> None:
        self.last_seen_at = max(self.last_seen_at, seen_at)
