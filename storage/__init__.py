"""Storage contracts: jobs, users, and source budget counters."""

from storage.budget import BudgetStateStore, FileBudgetStore, InMemoryBudgetStore
from storage.jobs import FileJobStore, InMemoryJobStore, JobFilter, JobStore, UpsertSummary
from storage.users import FileUserStore, InMemoryUserStore, UserStore

__all__ = [
    "BudgetStateStore",
    "FileBudgetStore",
    "FileJobStore",
    "FileUserStore",
    "InMemoryBudgetStore",
    "InMemoryJobStore",
    "InMemoryUserStore",
    "JobFilter",
    "JobStore",
    "UpsertSummary",
    "UserStore",
]
