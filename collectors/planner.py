"""Source planning: translate config into fetch tasks."""

from __future__ import annotations

from itertools import zip_longest

from pydantic import BaseModel, Field

from core import verbose
from core.config import SourceConfig
from core.context import RunContext, Stage


class FetchTask(BaseModel):
    """One (source, query, location) search, fetched page by page."""

    source_id: str
    source_type: str
    query: str = ""
    location: str = ""
    max_pages: int = Field(default=1, ge=1)

    @classmethod
    def expand(cls, config: SourceConfig) -> list[FetchTask]:
        """All query x location combinations for a source."""
        return [
            cls(
                source_id=config.source_id,
                source_type=config.source_type,
                query=query,
                location=location,
                max_pages=config.max_pages,
            )
            for query in config.queries
            for location in config.locations
        ]


def plan_fetch_tasks(ctx: RunContext) -> list[FetchTask]:
    """Plan fetch tasks from configured sources.

    Tasks are interleaved round-robin across sources so a slow source's
    interval waits don't occupy the whole worker pool.

    This stage only plans - it does not fetch or parse anything.
    """
    ctx.start_stage(Stage.PLAN, items_in=len(ctx.sources.sources))
    verbose.stage("Plan Sources", "convert config into fetch tasks")

    per_source: list[list[FetchTask]] = []
    errors: list[str] = []

    for source in ctx.sources.sources:
        if not source.enabled:
            verbose.step(f"- {source.source_id} (disabled, skipped)")
            continue
        try:
            source_tasks = FetchTask.expand(source)
        except ValueError as e:
            errors.append(f"Failed to plan source {source.source_id}: {e}")
            continue
        per_source.append(source_tasks)
        verbose.step(
            f"+ {source.source_id:<20s} | {source.source_type:<10s} | {len(source_tasks)} tasks"
        )

    tasks = [t for row in zip_longest(*per_source) for t in row if t is not None]
    verbose.step(f"{len(tasks)} fetch tasks planned")

    ctx.metrics.num_fetch_tasks = len(tasks)
    stage_log = ctx.complete_stage(Stage.PLAN, items_out=len(tasks), errors=errors)
    verbose.stage_end(
        "plan_sources",
        items_out=len(tasks),
        errors=len(errors),
        duration=stage_log.duration_seconds if stage_log and stage_log.duration_seconds else 0.0,
    )

    return tasks
