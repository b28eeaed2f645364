"""Configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigValidationError


class SourceConfig(BaseModel):
    """Configuration for a single job source.

    ``daily_budget`` and ``min_interval_seconds`` have no defaults: a source
    without them is a startup error.
    """

    source_id: str
    source_type: str  # adapter name: "adzuna" | "jsearch" | "greenhouse" | "lever"
    enabled: bool = True
    daily_budget: int = Field(..., ge=0)
    min_interval_seconds: float = Field(..., ge=0)
    queries: list[str] = Field(default_factory=lambda: [""])
    locations: list[str] = Field(default_factory=lambda: [""])
    max_pages: int = Field(default=3, ge=1)
    timeout_seconds: int = 30
    params: dict[str, Any] = Field(default_factory=dict)


class SourcesConfig(BaseModel):
    """Collection of source configurations."""

    sources: list[SourceConfig] = Field(default_factory=list)

    def get(self, source_id: str) -> SourceConfig | None:
        return next((s for s in self.sources if s.source_id == source_id), None)


class TierPolicy(BaseModel):
    """Delivery cadence for one subscription tier."""

    interval_hours: float
    count: int
    welcome_count: int
    primary_pool_size: int


class Settings(BaseSettings):
    """Application settings from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    data_dir: str = "./data"
    jobs_store_path: str = "./data/jobs.json"
    users_store_path: str = "./data/users.json"
    budget_state_path: str = "./data/budget_state.json"
    config_snapshots_dir: str = "./data/config_snapshots"
    sources_path: str = "configs/sources.yaml"

    # Source credentials
    adzuna_app_id: str = ""
    adzuna_app_key: str = ""
    jsearch_api_key: str = ""

    # Fetching
    max_concurrency: int = Field(default=4, ge=1)
    rate_limit_cooldown_seconds: float = 60.0
    rate_limit_max_attempts: int = Field(default=2, ge=1)
    budget_safety_margin: int = Field(default=2, ge=0)
    dedup_ttl_days: int = Field(default=7, ge=1)
    user_agent: str = "JobMatch/1.0 (ingestion pipeline)"

    # Hard gates
    stale_after_days: int = Field(default=90, ge=1)

    # Matching
    llm_model: str = "gpt-4o-mini"
    primary_scorer_enabled: bool = True
    primary_scorer_timeout_seconds: float = 30.0
    primary_cache_ttl_minutes: float = Field(default=30.0, ge=0)
    primary_cache_max_entries: int = Field(default=10_000, ge=1)

    # Distribution
    free_interval_hours: float = 168.0
    premium_interval_hours: float = 48.0
    free_match_count: int = 6
    premium_match_count: int = 15
    free_welcome_count: int = 5
    premium_welcome_count: int = 15
    free_primary_pool: int = 20
    premium_primary_pool: int = 30
    followup_count: int = 5
    followup_window_start_hours: float = 48.0
    followup_window_end_hours: float = 72.0

    # Runtime
    dry_run: bool = False
    verbose: int = 0
    log_level: str = "INFO"

    @field_validator("verbose", mode="before")
    @classmethod
    def _coerce_verbose(cls, v: Any) -> int:
        if isinstance(v, bool):
            return 2 if v else 0
        if isinstance(v, str):
            low = v.strip().lower()
            try:
                return int(low)
            except ValueError:
                pass
            return 2 if low in ("true", "yes") else 0
        return int(v)

    def tier_policy(self, tier: str) -> TierPolicy:
        """Cadence for a tier; anything that is not premium is treated as free."""
        if tier == "premium":
            return TierPolicy(
                interval_hours=self.premium_interval_hours,
                count=self.premium_match_count,
                welcome_count=self.premium_welcome_count,
                primary_pool_size=self.premium_primary_pool,
            )
        return TierPolicy(
            interval_hours=self.free_interval_hours,
            count=self.free_match_count,
            welcome_count=self.free_welcome_count,
            primary_pool_size=self.free_primary_pool,
        )


def load_sources_config(path: Path) -> SourcesConfig:
    """Load sources configuration from YAML file.

    Raises:
        ConfigValidationError: if a source is missing its budget or interval,
            or the file is not valid YAML.
    """
    if not path.exists():
        return SourcesConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in {path}: {e}") from e

    try:
        sources = SourcesConfig(**data)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Invalid {path.name}",
            errors=e.errors(include_url=False, include_context=False),
        ) from e

    seen: set[str] = set()
    for source in sources.sources:
        if source.source_id in seen:
            raise ConfigValidationError(f"Duplicate source_id: {source.source_id}")
        seen.add(source.source_id)

    return sources


def load_config(
    sources_path: Path | None = None,
    settings: Settings | None = None,
) -> tuple[Settings, SourcesConfig]:
    """Load all configuration.

    Returns:
        Tuple of (Settings, SourcesConfig)
    """
    try:
        settings = settings or Settings()
    except ValidationError as e:
        raise ConfigValidationError(
            "Invalid environment settings",
            errors=e.errors(include_url=False, include_context=False),
        ) from e
    sources_path = sources_path or Path(settings.sources_path)
    sources = load_sources_config(sources_path)

    return settings, sources


def snapshot_config(settings: Settings, sources: SourcesConfig) -> dict[str, Any]:
    """Create a serializable snapshot of the current configuration."""
    data = settings.model_dump(mode="json")
    for secret in ("adzuna_app_key", "jsearch_api_key"):
        if data.get(secret):
            data[secret] = "***"
    return {
        "settings": data,
        "sources": sources.model_dump(mode="json"),
    }
