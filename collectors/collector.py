"""Collection stage: fetch pages from every source under budget."""

from __future__ import annotations

import asyncio

import structlog
from pydantic import BaseModel, Field

from collectors.base import SourceAdapter
from collectors.governor import BudgetGovernor
from collectors.planner import FetchTask
from collectors.retry import RetryPolicy
from core import verbose
from core.clock import Clock
from core.context import RunContext, Stage
from core.errors import BudgetExceeded, RateLimited, SourceError
from schemas import RawPosting

logger = structlog.get_logger()


class SourceStats(BaseModel):
    """Per-source collection counters."""

    source_id: str
    tasks: int = 0
    pages_fetched: int = 0
    postings: int = 0
    halted_reason: str | None = None
    errors: list[str] = Field(default_factory=list)


class CollectionResult(BaseModel):
    """Aggregated output of the collect stage."""

    postings: list[RawPosting] = Field(default_factory=list)
    stats: dict[str, SourceStats] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @property
    def halted_sources(self) -> list[str]:
        return [s.source_id for s in self.stats.values() if s.halted_reason]


class _Batch:
    """Mutable state shared by the workers of one collection run."""

    def __init__(self, tasks: list[FetchTask]):
        self.stats: dict[str, SourceStats] = {}
        for task in tasks:
            stats = self.stats.setdefault(task.source_id, SourceStats(source_id=task.source_id))
            stats.tasks += 1

    def halted(self, source_id: str) -> bool:
        return self.stats[source_id].halted_reason is not None

    def halt(self, source_id: str, reason: str) -> None:
        stats = self.stats[source_id]
        if stats.halted_reason is None:
            stats.halted_reason = reason
            logger.warning("Source halted for batch", source=source_id, reason=reason)


async def _fetch_page(
    adapter: SourceAdapter,
    task: FetchTask,
    page: int,
    governor: BudgetGovernor,
    retry_policy: RetryPolicy,
    clock: Clock,
) -> list[RawPosting]:
    """One page through the governor, retried per the policy.

    Every attempt, retries included, reserves its own budget slot.
    """

    async def attempt() -> list[RawPosting]:
        async with governor.slot(task.source_id):
            return await adapter.fetch_page(task.query, task.location, page)

    return await retry_policy.call(attempt, sleep=clock.sleep)


async def _collect_task(
    task: FetchTask,
    adapter: SourceAdapter,
    governor: BudgetGovernor,
    retry_policy: RetryPolicy,
    clock: Clock,
    batch: _Batch,
    semaphore: asyncio.Semaphore,
) -> list[RawPosting]:
    """Fetch the pages of one task in ascending order."""
    stats = batch.stats[task.source_id]
    collected: list[RawPosting] = []

    async with semaphore:
        for page in range(1, task.max_pages + 1):
            if batch.halted(task.source_id):
                break
            if page > 1 and governor.nearly_exhausted(task.source_id):
                verbose.detail(f"{task.source_id}: budget nearly exhausted, stopping paging")
                break

            try:
                postings = await _fetch_page(adapter, task, page, governor, retry_policy, clock)
            except BudgetExceeded as e:
                batch.halt(task.source_id, "budget_exceeded")
                stats.errors.append(str(e))
                break
            except RateLimited as e:
                batch.halt(task.source_id, "rate_limited")
                stats.errors.append(str(e))
                break
            except SourceError as e:
                logger.warning(
                    "Page fetch failed",
                    source=task.source_id,
                    query=task.query,
                    location=task.location,
                    page=page,
                    error=str(e),
                )
                stats.errors.append(f"page {page}: {e}")
                break

            stats.pages_fetched += 1
            stats.postings += len(postings)
            collected.extend(postings)
            verbose.detail(
                f"{task.source_id} | {task.query or '*'} @ {task.location or '*'} "
                f"| page {page} | {len(postings)} postings"
            )

            if not adapter.paginated or len(postings) < adapter.page_size:
                break

    return collected


async def collect(
    tasks: list[FetchTask],
    ctx: RunContext,
    adapters: dict[str, SourceAdapter],
    governor: BudgetGovernor,
    retry_policy: RetryPolicy,
    clock: Clock,
) -> CollectionResult:
    """Run all fetch tasks on a bounded worker pool.

    Budget exhaustion or a repeated 429 halts only that source for the rest
    of the batch. Outputs are aggregated in task order after every worker has
    finished.

    This stage only fetches - it does not normalize.
    """
    ctx.start_stage(Stage.COLLECT, items_in=len(tasks))
    verbose.stage("Collect", "fetch source pages under budget")

    runnable = [t for t in tasks if t.source_id in adapters]
    batch = _Batch(runnable)
    errors = [f"{t.source_id}: no adapter" for t in tasks if t.source_id not in adapters]
    semaphore = asyncio.Semaphore(ctx.settings.max_concurrency)

    outcomes = await asyncio.gather(
        *(
            _collect_task(
                task,
                adapters[task.source_id],
                governor,
                retry_policy,
                clock,
                batch,
                semaphore,
            )
            for task in runnable
        ),
        return_exceptions=True,
    )

    result = CollectionResult(stats=batch.stats)
    for task, outcome in zip(runnable, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(
                "Fetch task crashed",
                source=task.source_id,
                query=task.query,
                location=task.location,
                error=repr(outcome),
            )
            errors.append(f"{task.source_id}: {outcome!r}")
            continue
        result.postings.extend(outcome)

    for stats in batch.stats.values():
        errors.extend(f"{stats.source_id}: {e}" for e in stats.errors)
        verbose.source_summary(
            stats.source_id, stats.pages_fetched, stats.postings, stats.halted_reason
        )
    result.errors = errors

    ctx.metrics.num_pages_fetched += sum(s.pages_fetched for s in batch.stats.values())
    ctx.metrics.num_raw_postings += len(result.postings)
    ctx.metrics.num_sources_halted += len(result.halted_sources)

    stage_log = ctx.complete_stage(
        Stage.COLLECT,
        items_out=len(result.postings),
        errors=errors,
        status="completed" if result.postings or not runnable else "failed",
    )
    verbose.stage_end(
        "collect",
        items_out=len(result.postings),
        errors=len(errors),
        duration=stage_log.duration_seconds if stage_log and stage_log.duration_seconds else 0.0,
    )
    return result
