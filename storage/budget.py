"""Persistence for per-source budget counters.

Daily budgets span process restarts, so the counters live outside the
governor. The governor is the single writer for each source.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from schemas import SourceBudgetState


class BudgetStateStore(ABC):
    """Abstract base for SourceBudgetState storage."""

    @abstractmethod
    def load(self, source: str) -> SourceBudgetState:
        """Return the stored state, or a fresh zeroed one."""

    @abstractmethod
    def save(self, state: SourceBudgetState) -> None:
        """Persist the state for state.source."""


class InMemoryBudgetStore(BudgetStateStore):
    def __init__(self) -> None:
        self._states: dict[str, SourceBudgetState] = {}
        self._lock = threading.Lock()

    def load(self, source: str) -> SourceBudgetState:
        with self._lock:
            state = self._states.get(source)
            if state is None:
                return SourceBudgetState(source=source)
            return state.model_copy()

    def save(self, state: SourceBudgetState) -> None:
        with self._lock:
            self._states[state.source] = state.model_copy()
            self._persist()

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""


class FileBudgetStore(InMemoryBudgetStore):
    """JSON-file budget store.

    Structure:
        path  ({source: SourceBudgetState dict})
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            with open(self.path, encoding="utf-8") as f:
                for source, item in json.load(f).items():
                    self._states[source] = SourceBudgetState.model_validate(item)

    def _persist(self) -> None:
        data = {s: st.model_dump(mode="json") for s, st in self._states.items()}
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
