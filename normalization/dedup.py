"""Short-lived cache of recently processed postings."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from core.clock import Clock

logger = structlog.get_logger()


@dataclass
class _Entry:
    dedupe_key: str
    seen_at: datetime


class DedupCache:
    """(source, fingerprint) -> dedupe_key, expiring after ``ttl_days``.

    Lets a re-fetched posting skip normalization: the caller only touches
    last_seen_at of the remembered job. All access goes through one lock so
    concurrent workers can share an instance.
    """

    def __init__(self, clock: Clock, ttl_days: int = 7):
        self._clock = clock
        self._ttl = timedelta(days=ttl_days)
        self._entries: dict[tuple[str, str], _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _live(self, key: tuple[str, str], now: datetime) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if now - entry.seen_at >= self._ttl:
            del self._entries[key]
            return None
        return entry

    def seen(self, source: str, fingerprint: str) -> bool:
        return self.lookup(source, fingerprint) is not None

    def lookup(self, source: str, fingerprint: str) -> str | None:
        """The dedupe key remembered for this posting, if still fresh."""
        with self._lock:
            entry = self._live((source, fingerprint), self._clock.now())
            return entry.dedupe_key if entry else None

    def mark_seen(self, source: str, fingerprint: str, dedupe_key: str) -> None:
        with self._lock:
            self._entries[(source, fingerprint)] = _Entry(dedupe_key, self._clock.now())

    def check_and_mark(self, source: str, fingerprint: str, dedupe_key: str) -> bool:
        """Atomically test membership and insert. Returns True if already seen."""
        with self._lock:
            now = self._clock.now()
            key = (source, fingerprint)
            if self._live(key, now) is not None:
                return True
            self._entries[key] = _Entry(dedupe_key, now)
            return False

    def sweep(self) -> int:
        """Drop expired entries. Returns the number removed."""
        with self._lock:
            now = self._clock.now()
            expired = [k for k, e in self._entries.items() if now - e.seen_at >= self._ttl]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Dedup cache swept", removed=len(expired))
        return len(expired)
