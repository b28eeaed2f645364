"""Pipeline runners: ingestion batch and delivery cycle."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import structlog

from collectors.adapters import build_adapters
from collectors.collector import collect
from collectors.governor import BudgetGovernor
from collectors.http_client import HttpClient
from collectors.planner import plan_fetch_tasks
from collectors.retry import RetryPolicy
from core import verbose
from core.clock import Clock, SystemClock
from core.config import Settings, SourcesConfig, load_config
from core.context import RunContext, RunKind, RunStatus, Stage
from core.log import configure_logging
from delivery.scheduler import DeliveryCycleSummary, run_delivery_cycle
from delivery.sink import DeliverySink, LoggingDeliverySink
from filtering.gates import apply_ingestion_gates
from matching.cache import PrimaryResultCache
from matching.engine import MatchingEngine
from matching.llm import LLMScorer
from matching.scorer import Scorer
from normalization.dedup import DedupCache
from normalization.normalizer import normalize_postings
from storage.budget import BudgetStateStore, FileBudgetStore
from storage.jobs import FileJobStore, JobStore
from storage.users import FileUserStore, UserStore

logger = structlog.get_logger()


@dataclass
class Services:
    """Long-lived collaborators shared across runs in one process."""

    settings: Settings
    clock: Clock
    jobs: JobStore
    users: UserStore
    budget: BudgetStateStore
    dedup: DedupCache
    sink: DeliverySink = field(default_factory=LoggingDeliverySink)
    match_cache: PrimaryResultCache | None = None

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock | None = None) -> Services:
        """File-backed stores at the configured paths."""
        clock = clock or SystemClock()
        return cls(
            settings=settings,
            clock=clock,
            jobs=FileJobStore(settings.jobs_store_path),
            users=FileUserStore(settings.users_store_path),
            budget=FileBudgetStore(settings.budget_state_path),
            dedup=DedupCache(clock, ttl_days=settings.dedup_ttl_days),
            match_cache=PrimaryResultCache(
                clock,
                ttl_minutes=settings.primary_cache_ttl_minutes,
                max_entries=settings.primary_cache_max_entries,
            ),
        )


_RUN_TITLES = {RunKind.INGEST: "Ingestion Run", RunKind.DELIVER: "Delivery Run"}


def _boot(
    settings: Settings | None,
    sources: SourcesConfig | None,
    sources_path: Path | None,
    run_id: str | None,
    kind: RunKind,
) -> RunContext:
    if settings is None or sources is None:
        loaded_settings, loaded_sources = load_config(sources_path, settings)
        settings = settings or loaded_settings
        sources = sources or loaded_sources

    configure_logging(settings.log_level)
    verbose.configure(settings.verbose)

    ctx = RunContext.boot(settings, sources, run_id, kind=kind)

    verbose.header(f"{_RUN_TITLES[kind]} {ctx.run_id}")
    verbose.stage("Boot", "initialize run context and save config")
    verbose.step(f"Config loaded (verbose={settings.verbose}, dry_run={settings.dry_run})")
    enabled = sum(1 for s in sources.sources if s.enabled)
    verbose.step(f"Sources: {len(sources.sources)} configured, {enabled} enabled")
    if ctx.config_snapshot_path:
        verbose.step(f"Config snapshot saved → {ctx.config_snapshot_path}")
    return ctx


async def run_ingestion_async(
    settings: Settings | None = None,
    sources: SourcesConfig | None = None,
    sources_path: Path | None = None,
    run_id: str | None = None,
    services: Services | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunContext:
    """Run one ingestion batch: Plan -> Collect -> Normalize -> Filter -> Store.

    Args:
        settings: Optional pre-loaded settings
        sources: Optional pre-loaded sources config
        sources_path: Path to sources YAML (if sources not provided)
        run_id: Optional explicit run ID
        services: Stores, clock and dedup cache; file-backed if omitted
        transport: Optional httpx transport (tests use MockTransport)

    Returns:
        RunContext with metrics and stage logs
    """
    run_start = time.monotonic()
    ctx = _boot(settings, sources, sources_path, run_id, RunKind.INGEST)
    settings, sources = ctx.settings, ctx.sources
    services = services or Services.from_settings(settings)
    clock = services.clock

    try:
        services.dedup.sweep()
        tasks = plan_fetch_tasks(ctx)
        if not tasks:
            ctx.complete_run(RunStatus.COMPLETED)
            return ctx

        enabled = [s for s in sources.sources if s.enabled]
        governor = BudgetGovernor(enabled, services.budget, clock, settings.budget_safety_margin)
        timeout = max(s.timeout_seconds for s in enabled)

        async with HttpClient(timeout=timeout, user_agent=settings.user_agent, transport=transport) as client:
            adapters = build_adapters(enabled, client, settings)
            collected = await collect(
                tasks, ctx, adapters, governor, RetryPolicy.from_settings(settings), clock
            )

        now = clock.now()
        normalized = normalize_postings(collected.postings, ctx, services.dedup, now)
        jobs = apply_ingestion_gates(normalized.jobs, ctx, now)

        ctx.start_stage(Stage.STORE, items_in=len(jobs))
        verbose.stage("Store", "upsert canonical jobs")
        if settings.dry_run:
            verbose.step(f"dry run: {len(jobs)} jobs not written")
            ctx.complete_stage(Stage.STORE, items_out=0)
        else:
            touched = services.jobs.touch_jobs(sorted(normalized.touched_keys), now)
            summary = services.jobs.upsert_jobs(jobs)
            for seen in normalized.seen:
                services.dedup.mark_seen(seen.source, seen.fingerprint, seen.dedupe_key)
            ctx.metrics.num_inserted += summary.inserted
            ctx.metrics.num_updated += summary.updated
            verbose.step(
                f"{summary.inserted} inserted, {summary.updated} updated, {touched} touched"
            )
            stage_log = ctx.complete_stage(
                Stage.STORE, items_out=summary.inserted + summary.updated, errors=summary.errors
            )
            verbose.stage_end(
                "store",
                items_out=summary.inserted + summary.updated,
                errors=len(summary.errors),
                duration=stage_log.duration_seconds if stage_log and stage_log.duration_seconds else 0.0,
            )

        logger.info(
            "ingestion_summary",
            run_id=ctx.run_id,
            sources={k: v.model_dump(exclude={"errors"}) for k, v in collected.stats.items()},
            budget=governor.snapshot(),
            raw_postings=len(collected.postings),
            cache_hits=normalized.cache_hits,
            normalized=len(normalized.jobs),
            normalization_failed=len(normalized.failures),
            batch_duplicates=normalized.duplicates,
            filtered=ctx.metrics.num_filtered,
            inserted=ctx.metrics.num_inserted,
            updated=ctx.metrics.num_updated,
        )
        ctx.complete_run(RunStatus.COMPLETED)

    except Exception as e:
        ctx.fail_run(e)
        raise

    total = time.monotonic() - run_start
    verbose.header(
        f"Done: {ctx.metrics.num_raw_postings} postings, "
        f"{ctx.metrics.num_inserted} new jobs, "
        f"{ctx.metrics.num_filtered} filtered ({total:.2f}s)"
    )
    return ctx


def run_ingestion(
    settings: Settings | None = None,
    sources: SourcesConfig | None = None,
    sources_path: Path | None = None,
    run_id: str | None = None,
    services: Services | None = None,
) -> RunContext:
    """Synchronous wrapper for run_ingestion_async."""
    return asyncio.run(run_ingestion_async(settings, sources, sources_path, run_id, services))


async def run_delivery_async(
    settings: Settings | None = None,
    run_id: str | None = None,
    services: Services | None = None,
    primary: Scorer | None = None,
) -> tuple[RunContext, DeliveryCycleSummary]:
    """Run one delivery cycle over every user.

    The primary scorer defaults to an LLMScorer on the configured model
    unless it is disabled in settings.
    """
    run_start = time.monotonic()
    settings = settings or (services.settings if services else None)
    ctx = _boot(settings, SourcesConfig() if settings else None, None, run_id, RunKind.DELIVER)
    services = services or Services.from_settings(ctx.settings)

    if primary is None and ctx.settings.primary_scorer_enabled:
        primary = LLMScorer(ctx.settings.llm_model)
    verbose.step(f"Primary scorer: {type(primary).__name__ if primary else 'disabled'}")

    engine = MatchingEngine(
        services.jobs, ctx.settings, services.clock, primary=primary, cache=services.match_cache
    )
    try:
        summary = await run_delivery_cycle(
            ctx, services.users, engine, services.sink, services.clock
        )
        ctx.complete_run(RunStatus.COMPLETED)
    except Exception as e:
        ctx.fail_run(e)
        raise

    total = time.monotonic() - run_start
    verbose.header(
        f"Done: {ctx.metrics.num_users_delivered}/{ctx.metrics.num_users_evaluated} users delivered, "
        f"{ctx.metrics.num_matches_delivered} jobs ({total:.2f}s)"
    )
    return ctx, summary


def run_delivery(
    settings: Settings | None = None,
    run_id: str | None = None,
    services: Services | None = None,
    primary: Scorer | None = None,
) -> tuple[RunContext, DeliveryCycleSummary]:
    """Synchronous wrapper for run_delivery_async."""
    return asyncio.run(run_delivery_async(settings, run_id, services, primary))
