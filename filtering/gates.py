"""Hard eligibility gates.

Gates run in a fixed order and stop at the first failure. The ingestion
gates decide whether a job enters the matching pool at all; the locale gate
is evaluated per user at match time and only narrows that user's pool.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel

from core import verbose
from core.context import RunContext, Stage
from core.errors import HardGateRejected
from normalization.locations import UNKNOWN, location_matches
from schemas import CanonicalJob, JobStatus, UserProfile

logger = structlog.get_logger()

REQUIRED_FIELDS = "required_fields"
STALE = "stale"
LOCALE = "locale"

REMOTE_TARGET = "remote"
DEFAULT_USER_LANGUAGES = frozenset({"en"})


class GateResult(BaseModel):
    """Outcome of one gate (or the first failing gate of a sequence)."""

    passed: bool
    gate: str
    detail: str = ""

    @classmethod
    def ok(cls, gate: str) -> GateResult:
        return cls(passed=True, gate=gate)

    @classmethod
    def fail(cls, gate: str, detail: str) -> GateResult:
        return cls(passed=False, gate=gate, detail=detail)


def required_fields_gate(job: CanonicalJob) -> GateResult:
    """Title, company, at least one category and a resolvable location."""
    if not job.title.strip():
        return GateResult.fail(REQUIRED_FIELDS, "missing title")
    if not job.company.strip():
        return GateResult.fail(REQUIRED_FIELDS, "missing company")
    if not job.categories:
        return GateResult.fail(REQUIRED_FIELDS, "no category")
    if job.city == UNKNOWN and job.country == UNKNOWN and not job.is_remote:
        return GateResult.fail(REQUIRED_FIELDS, f"unresolvable location {job.location_raw!r}")
    return GateResult.ok(REQUIRED_FIELDS)


def staleness_gate(job: CanonicalJob, now: datetime, horizon_days: int) -> GateResult:
    """Postings older than the horizon are out."""
    cutoff = now - timedelta(days=horizon_days)
    if job.posted_at < cutoff:
        age = (now - job.posted_at).days
        return GateResult.fail(STALE, f"posted {age} days ago (horizon {horizon_days})")
    return GateResult.ok(STALE)


def locale_gate(job: CanonicalJob, user: UserProfile) -> GateResult:
    """Job place must be one the user targets; job languages one they speak.

    A user without target locations accepts any place. A user without
    declared languages is taken to speak English.
    """
    targets = user.target_locations
    if targets:
        remote_ok = job.is_remote and (
            REMOTE_TARGET in targets or user.work_mode == job.work_mode
        )
        place_ok = remote_ok or any(location_matches(t, job.city, job.country) for t in targets)
        if not place_ok:
            return GateResult.fail(LOCALE, f"{job.city}, {job.country} not in targets")

    if job.languages:
        spoken = user.languages or DEFAULT_USER_LANGUAGES
        if not job.languages & spoken:
            return GateResult.fail(LOCALE, f"requires {sorted(job.languages)}")
    return GateResult.ok(LOCALE)


def check_ingestion_gates(job: CanonicalJob, now: datetime, horizon_days: int) -> GateResult:
    """First failing ingestion gate, or a passing result."""
    for result in (
        required_fields_gate(job),
        staleness_gate(job, now, horizon_days),
    ):
        if not result.passed:
            return result
    return GateResult.ok("ingestion")


def enforce_ingestion_gates(job: CanonicalJob, now: datetime, horizon_days: int) -> None:
    """Raise HardGateRejected when the job fails an ingestion gate."""
    result = check_ingestion_gates(job, now, horizon_days)
    if not result.passed:
        raise HardGateRejected(result.gate, result.detail)


def passes_user_gates(
    job: CanonicalJob,
    user: UserProfile,
    now: datetime,
    horizon_days: int,
) -> GateResult:
    """Match-time gates: staleness re-check, then locale."""
    if not job.is_active or job.status != JobStatus.ACTIVE:
        return GateResult.fail("inactive", job.filtered_reason or job.status.value)
    stale = staleness_gate(job, now, horizon_days)
    if not stale.passed:
        return stale
    return locale_gate(job, user)


def apply_ingestion_gates(
    jobs: list[CanonicalJob],
    ctx: RunContext,
    now: datetime,
) -> list[CanonicalJob]:
    """Run ingestion gates over a batch.

    Failing jobs are marked filtered (inactive, with the gate as reason) and
    still returned so the store keeps them for observability.
    """
    ctx.start_stage(Stage.FILTER, items_in=len(jobs))
    verbose.stage("Filter", "apply hard eligibility gates")

    horizon = ctx.settings.stale_after_days
    filtered = 0
    for job in jobs:
        try:
            enforce_ingestion_gates(job, now, horizon)
        except HardGateRejected as e:
            job.mark_filtered(e.gate)
            filtered += 1
            logger.debug("Job filtered", dedupe_key=job.dedupe_key, gate=e.gate, detail=e.detail)
            verbose.detail(f"filtered {job.dedupe_key}: {e}")

    ctx.metrics.num_filtered += filtered
    verbose.step(f"{len(jobs) - filtered} eligible, {filtered} filtered")
    stage_log = ctx.complete_stage(Stage.FILTER, items_out=len(jobs) - filtered)
    verbose.stage_end(
        "filter",
        items_out=len(jobs) - filtered,
        errors=0,
        duration=stage_log.duration_seconds if stage_log and stage_log.duration_seconds else 0.0,
    )
    return jobs
