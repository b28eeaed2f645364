"""Short-lived cache of primary scorer answers."""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from core.clock import Clock
from schemas import CanonicalJob, MatchResult


@dataclass
class _Entry:
    results: list[MatchResult]
    stored_at: datetime


class PrimaryResultCache:
    """(user, candidate pool) -> primary results, expiring after ``ttl_minutes``.

    The key is the email plus the sorted dedupe keys of the pool, so a user
    whose pool has not changed since the last call gets the same answer
    without another model call. Least recently used entries are evicted
    beyond ``max_entries``.
    """

    def __init__(self, clock: Clock, ttl_minutes: float = 30.0, max_entries: int = 10_000):
        self._clock = clock
        self._ttl = timedelta(minutes=ttl_minutes)
        self._max_entries = max_entries
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def key_for(email: str, jobs: Iterable[CanonicalJob]) -> str:
        return f"{email}:{','.join(sorted(job.dedupe_key for job in jobs))}"

    def get(self, email: str, pool: list[CanonicalJob]) -> list[MatchResult] | None:
        """Cached results rebound to the jobs in ``pool``, if still fresh."""
        key = self.key_for(email, pool)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock.now() - entry.stored_at >= self._ttl:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            results = list(entry.results)

        # Serve the current copy of each job, not the one scored earlier
        by_key = {job.dedupe_key: job for job in pool}
        return [r.model_copy(update={"job": by_key[r.job.dedupe_key]}) for r in results]

    def put(self, email: str, pool: list[CanonicalJob], results: list[MatchResult]) -> None:
        key = self.key_for(email, pool)
        with self._lock:
            self._entries[key] = _Entry(list(results), self._clock.now())
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
