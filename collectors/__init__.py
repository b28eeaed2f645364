"""
Job source collection.

Adapters fetch one page at a time from a specific source (job-board API or
company ATS board); the collector drives them through the budget governor
and the shared retry policy.
"""

from collectors.base import SourceAdapter
from collectors.collector import CollectionResult, SourceStats, collect
from collectors.governor import BudgetGovernor
from collectors.http_client import HttpClient
from collectors.planner import FetchTask, plan_fetch_tasks
from collectors.retry import RetryPolicy

__all__ = [
    "BudgetGovernor",
    "CollectionResult",
    "FetchTask",
    "HttpClient",
    "RetryPolicy",
    "SourceAdapter",
    "SourceStats",
    "collect",
    "plan_fetch_tasks",
]
