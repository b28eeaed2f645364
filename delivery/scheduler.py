"""Tier-based distribution: who gets how many jobs, and when."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel, Field

from core import verbose
from core.clock import Clock
from core.config import Settings
from core.context import RunContext, Stage
from delivery.sink import DeliverySink
from matching.engine import MatchingEngine
from schemas import DeliveryPhase, MatchOutcome, UserProfile
from storage.users import UserStore

logger = structlog.get_logger()


class DeliveryPlan(BaseModel):
    """A due delivery: which phase it serves and how many jobs to send."""

    phase: DeliveryPhase
    count: int
    next_phase: DeliveryPhase
    completes_onboarding: bool = False


class DistributionScheduler:
    """Phase state machine: welcome -> followup -> regular.

    * welcome: the first delivery, sized by the tier's welcome count.
    * followup: one delivery inside the followup window after signup,
      completing onboarding. Missing the window falls through to regular.
    * regular: one delivery per tier interval since the last one.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def decide(self, user: UserProfile, now: datetime) -> DeliveryPlan | None:
        """The delivery due for ``user`` at ``now``, or None to skip."""
        policy = self.settings.tier_policy(user.tier.value)
        since_signup = now - user.signed_up_at
        window_start = timedelta(hours=self.settings.followup_window_start_hours)
        window_end = timedelta(hours=self.settings.followup_window_end_hours)

        if user.last_delivery_at is None:
            next_phase = DeliveryPhase.FOLLOWUP if since_signup < window_end else DeliveryPhase.REGULAR
            return DeliveryPlan(
                phase=DeliveryPhase.WELCOME,
                count=policy.welcome_count,
                next_phase=next_phase,
                completes_onboarding=next_phase == DeliveryPhase.REGULAR,
            )

        onboarding = user.phase != DeliveryPhase.REGULAR and not user.onboarding_complete
        if onboarding and since_signup < window_end:
            if since_signup < window_start:
                return None
            return DeliveryPlan(
                phase=DeliveryPhase.FOLLOWUP,
                count=self.settings.followup_count,
                next_phase=DeliveryPhase.REGULAR,
                completes_onboarding=True,
            )

        if now - user.last_delivery_at < timedelta(hours=policy.interval_hours):
            return None
        return DeliveryPlan(
            phase=DeliveryPhase.REGULAR,
            count=policy.count,
            next_phase=DeliveryPhase.REGULAR,
            completes_onboarding=onboarding,
        )


class UserOutcome(BaseModel):
    """What happened to one user in a delivery cycle."""

    email: str
    status: str  # "skipped" | "no_candidates" | "delivered" | "not_delivered" | "dry_run" | "failed"
    phase: DeliveryPhase | None = None
    delivered: int = 0
    algorithm: str | None = None
    error: str | None = None


class DeliveryCycleSummary(BaseModel):
    outcomes: list[UserOutcome] = Field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)


async def _deliver_user(
    user: UserProfile,
    now: datetime,
    scheduler: DistributionScheduler,
    engine: MatchingEngine,
    sink: DeliverySink,
    users: UserStore,
    dry_run: bool,
) -> UserOutcome:
    plan = scheduler.decide(user, now)
    if plan is None:
        return UserOutcome(email=user.email, status="skipped")

    report = await engine.match(user, count=plan.count, now=now)
    algorithm = report.session.match_algorithm.value
    if report.outcome == MatchOutcome.NO_CANDIDATES or not report.results:
        return UserOutcome(email=user.email, status="no_candidates", phase=plan.phase, algorithm=algorithm)

    if dry_run:
        return UserOutcome(
            email=user.email,
            status="dry_run",
            phase=plan.phase,
            delivered=len(report.results),
            algorithm=algorithm,
        )

    if not await sink.deliver(user.email, report.results):
        return UserOutcome(email=user.email, status="not_delivered", phase=plan.phase, algorithm=algorithm)

    users.record_delivery(
        user.email,
        delivered_at=now,
        phase=plan.next_phase,
        onboarding_complete=plan.completes_onboarding,
        dedupe_keys=[r.job.dedupe_key for r in report.results],
    )
    return UserOutcome(
        email=user.email,
        status="delivered",
        phase=plan.phase,
        delivered=len(report.results),
        algorithm=algorithm,
    )


async def run_delivery_cycle(
    ctx: RunContext,
    users: UserStore,
    engine: MatchingEngine,
    sink: DeliverySink,
    clock: Clock,
    scheduler: DistributionScheduler | None = None,
) -> DeliveryCycleSummary:
    """Evaluate every user once; one user's failure never stops the cycle."""
    scheduler = scheduler or DistributionScheduler(ctx.settings)
    profiles = users.load_users()
    now = clock.now()

    ctx.start_stage(Stage.DELIVER, items_in=len(profiles))
    verbose.stage("Deliver", "schedule, match and hand over per user")

    semaphore = asyncio.Semaphore(ctx.settings.max_concurrency)

    async def guarded(user: UserProfile) -> UserOutcome:
        async with semaphore:
            return await _deliver_user(
                user, now, scheduler, engine, sink, users, ctx.settings.dry_run
            )

    results = await asyncio.gather(*(guarded(u) for u in profiles), return_exceptions=True)

    summary = DeliveryCycleSummary()
    errors: list[str] = []
    for user, result in zip(profiles, results):
        if isinstance(result, BaseException):
            logger.error("Delivery failed for user", email=user.email, error=repr(result))
            errors.append(f"{user.email}: {result!r}")
            result = UserOutcome(email=user.email, status="failed", error=repr(result))
        summary.outcomes.append(result)
        if result.status != "skipped":
            verbose.user_summary(
                result.email,
                result.algorithm or "-",
                result.delivered,
                result.phase.value if result.phase else result.status,
            )

    ctx.metrics.num_users_evaluated += len(profiles)
    ctx.metrics.num_users_delivered += summary.count("delivered")
    ctx.metrics.num_users_skipped += summary.count("skipped")
    ctx.metrics.num_fallback_used += sum(1 for o in summary.outcomes if o.algorithm == "fallback")
    ctx.metrics.num_matches_delivered += sum(o.delivered for o in summary.outcomes if o.status == "delivered")

    stage_log = ctx.complete_stage(Stage.DELIVER, items_out=summary.count("delivered"), errors=errors)
    verbose.stage_end(
        "deliver",
        items_out=summary.count("delivered"),
        errors=len(errors),
        duration=stage_log.duration_seconds if stage_log and stage_log.duration_seconds else 0.0,
    )
    return summary
