"""Canonical job storage keyed by dedupe_key."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from core import verbose
from schemas import CanonicalJob


class UpsertSummary(BaseModel):
    """Outcome of one upsert batch."""

    inserted: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)


class JobFilter(BaseModel):
    """Narrowing applied when loading the active pool."""

    posted_after: datetime | None = None
    categories: set[str] | None = None
    limit: int | None = None


class JobStore(ABC):
    """Abstract base for canonical job persistence."""

    @abstractmethod
    def upsert_jobs(self, jobs: list[CanonicalJob]) -> UpsertSummary:
        """Insert new keys, refresh sightings of known keys. Idempotent."""

    @abstractmethod
    def touch_jobs(self, dedupe_keys: list[str], seen_at: datetime) -> int:
        """Bump last_seen_at for known keys. Returns how many were found."""

    @abstractmethod
    def load_active_jobs(self, job_filter: JobFilter | None = None) -> list[CanonicalJob]:
        """Load the active matching pool."""

    @abstractmethod
    def get(self, dedupe_key: str) -> CanonicalJob | None:
        """Fetch one job by key, active or not."""

    @abstractmethod
    def all_jobs(self) -> list[CanonicalJob]:
        """Every stored row, including filtered and inactive ones."""


class InMemoryJobStore(JobStore):
    """Dict-backed store. One row per dedupe_key."""

    def __init__(self) -> None:
        self._jobs: dict[str, CanonicalJob] = {}
        self._lock = threading.Lock()

    def _merge(self, existing: CanonicalJob, incoming: CanonicalJob) -> CanonicalJob:
        """The row to keep for a key seen again.

        An active row is never downgraded by a weaker copy from another
        source; it only gets its last_seen_at refreshed. A filtered row is
        replaced when a later copy passes the gates.
        """
        if not existing.is_active and incoming.is_active:
            promoted = incoming.model_copy(deep=True)
            promoted.first_seen_at = existing.first_seen_at
            promoted.seen_again(existing.last_seen_at)
            return promoted
        existing.seen_again(incoming.last_seen_at)
        return existing

    def upsert_jobs(self, jobs: list[CanonicalJob]) -> UpsertSummary:
        summary = UpsertSummary()
        with self._lock:
            for job in jobs:
                try:
                    existing = self._jobs.get(job.dedupe_key)
                    if existing is None:
                        self._jobs[job.dedupe_key] = job.model_copy(deep=True)
                        summary.inserted += 1
                    else:
                        self._jobs[job.dedupe_key] = self._merge(existing, job)
                        summary.updated += 1
                except Exception as e:
                    summary.errors.append(f"{job.dedupe_key}: {e}")
            self._persist()
        return summary

    def touch_jobs(self, dedupe_keys: list[str], seen_at: datetime) -> int:
        found = 0
        with self._lock:
            for key in dedupe_keys:
                job = self._jobs.get(key)
                if job is not None:
                    job.seen_again(seen_at)
                    found += 1
            if found:
                self._persist()
        return found

    def load_active_jobs(self, job_filter: JobFilter | None = None) -> list[CanonicalJob]:
        job_filter = job_filter or JobFilter()
        with self._lock:
            pool = [j for j in self._jobs.values() if j.is_active]
        if job_filter.posted_after is not None:
            pool = [j for j in pool if j.posted_at >= job_filter.posted_after]
        if job_filter.categories:
            wanted = job_filter.categories
            pool = [j for j in pool if j.categories & wanted]
        pool.sort(key=lambda j: j.posted_at, reverse=True)
        if job_filter.limit is not None:
            pool = pool[: job_filter.limit]
        return [j.model_copy(deep=True) for j in pool]

    def get(self, dedupe_key: str) -> CanonicalJob | None:
        with self._lock:
            job = self._jobs.get(dedupe_key)
            return job.model_copy(deep=True) if job else None

    def all_jobs(self) -> list[CanonicalJob]:
        with self._lock:
            return [j.model_copy(deep=True) for j in self._jobs.values()]

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""


class FileJobStore(InMemoryJobStore):
    """JSON-file store. The whole table is rewritten after each mutation.

    Structure:
        path  (list of CanonicalJob dicts)
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            with open(self.path, encoding="utf-8") as f:
                for item in json.load(f):
                    job = CanonicalJob.model_validate(item)
                    self._jobs[job.dedupe_key] = job

    def _persist(self) -> None:
        data = [j.model_dump(mode="json") for j in self._jobs.values()]
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        tmp.replace(self.path)
        verbose.detail(f"Saved {len(data)} jobs → {self.path}")
