"""
Pytest configuration for the job pipeline tests.

Adds the project root to sys.path and provides factories for settings,
postings, jobs and users. Every test gets its own data directory and a
FakeClock so nothing touches real files or real time.
"""

import sys
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.clock import FakeClock  # noqa: E402
from core.config import Settings, SourceConfig, SourcesConfig  # noqa: E402
from core.context import RunContext  # noqa: E402
from schemas import (  # noqa: E402
    CanonicalJob,
    RawPosting,
    SubscriptionTier,
    UserProfile,
    WorkMode,
)


@pytest.fixture
def clock() -> FakeClock:
    """Clock pinned to Monday 2025-01-06 09:00 UTC."""
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and .env, writing under tmp_path."""
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path),
        jobs_store_path=str(tmp_path / "jobs.json"),
        users_store_path=str(tmp_path / "users.json"),
        budget_state_path=str(tmp_path / "budget.json"),
        config_snapshots_dir=str(tmp_path / "snapshots"),
        sources_path=str(tmp_path / "sources.yaml"),
        adzuna_app_id="test-id",
        adzuna_app_key="test-key",
        jsearch_api_key="test-jsearch",
        primary_scorer_enabled=False,
        verbose=0,
    )


@pytest.fixture
def make_source() -> Callable[..., SourceConfig]:
    def _make(source_id: str = "adzuna-gb", **overrides) -> SourceConfig:
        data = {
            "source_id": source_id,
            "source_type": "adzuna",
            "daily_budget": 10,
            "min_interval_seconds": 1,
            "queries": ["graduate"],
            "locations": ["London"],
            "max_pages": 3,
        }
        data.update(overrides)
        return SourceConfig(**data)

    return _make


@pytest.fixture
def ctx(settings: Settings) -> RunContext:
    """Run context without a config snapshot on disk."""
    return RunContext.boot(settings, SourcesConfig(), write_snapshot=False)


@pytest.fixture
def make_raw() -> Callable[..., RawPosting]:
    def _make(**overrides) -> RawPosting:
        data = {
            "source": "adzuna-gb",
            "source_id": "1",
            "title": "Graduate Analyst",
            "company": "Acme",
            "location": "London, UK",
            "description": "Join our analytics team as a graduate and work with the data.",
            "url": "https://jobs.example.com/1?utm_source=feed",
            "posted_at": "2025-01-02T10:00:00Z",
        }
        data.update(overrides)
        return RawPosting(**data)

    return _make


@pytest.fixture
def make_job(clock: FakeClock) -> Callable[..., CanonicalJob]:
    counter = {"n": 0}

    def _make(**overrides) -> CanonicalJob:
        counter["n"] += 1
        n = counter["n"]
        now = clock.now()
        data = {
            "dedupe_key": f"graduate analyst {n}-acme-london",
            "source": "adzuna-gb",
            "title": f"Graduate Analyst {n}",
            "company": "Acme",
            "city": "London",
            "country": "United Kingdom",
            "location_raw": "London, UK",
            "categories": {"data-analytics"},
            "experience_flags": {"graduate", "early-career"},
            "work_mode": WorkMode.ONSITE,
            "languages": set(),
            "posted_at": now - timedelta(days=n),
            "first_seen_at": now,
            "last_seen_at": now,
        }
        data.update(overrides)
        return CanonicalJob(**data)

    return _make


@pytest.fixture
def make_user(clock: FakeClock) -> Callable[..., UserProfile]:
    def _make(**overrides) -> UserProfile:
        data = {
            "email": "user@example.com",
            "target_locations": {"london"},
            "languages": {"en"},
            "career_paths": {"data"},
            "tier": SubscriptionTier.FREE,
            "signed_up_at": clock.now() - timedelta(days=30),
        }
        data.update(overrides)
        return UserProfile(**data)

    return _make
