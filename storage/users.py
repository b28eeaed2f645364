"""User profile storage with per-user delivery bookkeeping."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from pathlib import Path

from schemas import DeliveryPhase, UserProfile


class UserStore(ABC):
    """Abstract base for user profile persistence."""

    @abstractmethod
    def load_users(self) -> list[UserProfile]:
        """All profiles eligible for a delivery cycle."""

    @abstractmethod
    def get(self, email: str) -> UserProfile | None:
        """One profile by email."""

    @abstractmethod
    def save_user(self, profile: UserProfile) -> None:
        """Create or replace a profile."""

    @abstractmethod
    def record_delivery(
        self,
        email: str,
        delivered_at: datetime,
        phase: DeliveryPhase,
        onboarding_complete: bool,
        dedupe_keys: list[str] | None = None,
    ) -> UserProfile:
        """Record a completed delivery on the user's record.

        Bumps the counters and phase, and remembers ``dedupe_keys`` so later
        cycles skip those jobs. Atomic with respect to that user's record.
        """


class InMemoryUserStore(UserStore):
    """Dict-backed store with one lock per user record."""

    def __init__(self, users: list[UserProfile] | None = None) -> None:
        self._users: dict[str, UserProfile] = {}
        self._guard = threading.Lock()
        self._user_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        for user in users or []:
            self._users[user.email] = user.model_copy(deep=True)

    def load_users(self) -> list[UserProfile]:
        with self._guard:
            return [u.model_copy(deep=True) for u in self._users.values()]

    def get(self, email: str) -> UserProfile | None:
        with self._guard:
            user = self._users.get(email)
            return user.model_copy(deep=True) if user else None

    def save_user(self, profile: UserProfile) -> None:
        with self._guard:
            self._users[profile.email] = profile.model_copy(deep=True)
            self._persist()

    def record_delivery(
        self,
        email: str,
        delivered_at: datetime,
        phase: DeliveryPhase,
        onboarding_complete: bool,
        dedupe_keys: list[str] | None = None,
    ) -> UserProfile:
        with self._guard:
            user_lock = self._user_locks[email]
        with user_lock:
            with self._guard:
                current = self._users.get(email)
            if current is None:
                raise KeyError(f"Unknown user: {email}")
            updated = current.model_copy(
                update={
                    "last_delivery_at": delivered_at,
                    "delivery_count": current.delivery_count + 1,
                    "phase": phase,
                    "onboarding_complete": current.onboarding_complete or onboarding_complete,
                    "delivered_job_keys": current.delivered_job_keys | set(dedupe_keys or ()),
                }
            )
            with self._guard:
                self._users[email] = updated
                self._persist()
            return updated.model_copy(deep=True)

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the guard held."""


class FileUserStore(InMemoryUserStore):
    """JSON-file user store.

    Structure:
        path  (list of UserProfile dicts)
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        users: list[UserProfile] = []
        if self.path.exists():
            with open(self.path, encoding="utf-8") as f:
                users = [UserProfile.model_validate(item) for item in json.load(f)]
        super().__init__(users)

    def _persist(self) -> None:
        data = [u.model_dump(mode="json") for u in self._users.values()]
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        tmp.replace(self.path)
