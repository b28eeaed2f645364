"""
Tests for tier-based distribution and the delivery cycle.
"""

import asyncio
from datetime import timedelta

import pytest

from delivery.scheduler import DistributionScheduler, run_delivery_cycle
from delivery.sink import DeliverySink, LoggingDeliverySink
from matching.engine import MatchingEngine
from schemas import DeliveryPhase, SubscriptionTier
from storage import InMemoryJobStore, InMemoryUserStore


class FailingSink(DeliverySink):
    """Raises for one recipient, refuses another, delivers the rest."""

    def __init__(self, broken: str = "", refused: str = ""):
        self.broken = broken
        self.refused = refused
        self.delivered: dict[str, int] = {}

    async def deliver(self, email, matches):
        if email == self.broken:
            raise RuntimeError("mail service down")
        if email == self.refused:
            return False
        self.delivered[email] = len(matches)
        return True


@pytest.fixture
def scheduler(settings):
    return DistributionScheduler(settings)


@pytest.fixture
def jobs(make_job):
    store = InMemoryJobStore()
    store.upsert_jobs([make_job() for _ in range(20)])
    return store


class TestDistributionScheduler:
    """Phase state machine"""

    @pytest.mark.parametrize(
        ("tier", "expected"), [(SubscriptionTier.FREE, 5), (SubscriptionTier.PREMIUM, 15)]
    )
    def test_first_delivery_is_welcome(self, scheduler, make_user, clock, tier, expected):
        user = make_user(tier=tier, signed_up_at=clock.now() - timedelta(hours=1))

        plan = scheduler.decide(user, clock.now())

        assert plan.phase == DeliveryPhase.WELCOME
        assert plan.count == expected
        assert plan.next_phase == DeliveryPhase.FOLLOWUP
        assert not plan.completes_onboarding

    def test_late_first_delivery_skips_followup(self, scheduler, make_user, clock):
        user = make_user(signed_up_at=clock.now() - timedelta(hours=80))

        plan = scheduler.decide(user, clock.now())

        assert plan.phase == DeliveryPhase.WELCOME
        assert plan.next_phase == DeliveryPhase.REGULAR
        assert plan.completes_onboarding

    def test_followup_waits_for_window(self, scheduler, make_user, clock):
        user = make_user(
            signed_up_at=clock.now() - timedelta(hours=24),
            last_delivery_at=clock.now() - timedelta(hours=23),
            phase=DeliveryPhase.FOLLOWUP,
            delivery_count=1,
        )

        assert scheduler.decide(user, clock.now()) is None

    def test_followup_inside_window(self, scheduler, make_user, clock):
        user = make_user(
            signed_up_at=clock.now() - timedelta(hours=50),
            last_delivery_at=clock.now() - timedelta(hours=49),
            phase=DeliveryPhase.FOLLOWUP,
            delivery_count=1,
        )

        plan = scheduler.decide(user, clock.now())

        assert plan.phase == DeliveryPhase.FOLLOWUP
        assert plan.count == 5
        assert plan.next_phase == DeliveryPhase.REGULAR
        assert plan.completes_onboarding

    def test_missed_followup_falls_through_to_regular(self, scheduler, make_user, clock):
        user = make_user(
            signed_up_at=clock.now() - timedelta(hours=80),
            last_delivery_at=clock.now() - timedelta(hours=79),
            phase=DeliveryPhase.FOLLOWUP,
            delivery_count=1,
        )
        assert scheduler.decide(user, clock.now()) is None

        clock.advance(hours=100)
        plan = scheduler.decide(user, clock.now())

        assert plan.phase == DeliveryPhase.REGULAR
        assert plan.count == 6
        assert plan.completes_onboarding

    def test_free_user_waits_a_week(self, scheduler, make_user, clock):
        user = make_user(
            last_delivery_at=clock.now() - timedelta(hours=100),
            phase=DeliveryPhase.REGULAR,
            onboarding_complete=True,
        )

        assert scheduler.decide(user, clock.now()) is None

    def test_premium_user_due_after_two_days(self, scheduler, make_user, clock):
        user = make_user(
            tier=SubscriptionTier.PREMIUM,
            last_delivery_at=clock.now() - timedelta(hours=49),
            phase=DeliveryPhase.REGULAR,
            onboarding_complete=True,
        )

        plan = scheduler.decide(user, clock.now())

        assert plan.phase == DeliveryPhase.REGULAR
        assert plan.count == 15
        assert not plan.completes_onboarding


class TestDeliveryCycle:
    """Per-user isolation and bookkeeping"""

    def test_tiers_get_their_cadence_and_size(self, ctx, settings, clock, jobs, make_user):
        free = make_user(
            email="free@example.com",
            last_delivery_at=clock.now() - timedelta(hours=100),
            phase=DeliveryPhase.REGULAR,
            onboarding_complete=True,
        )
        premium = make_user(
            email="premium@example.com",
            tier=SubscriptionTier.PREMIUM,
            last_delivery_at=clock.now() - timedelta(hours=100),
            phase=DeliveryPhase.REGULAR,
            onboarding_complete=True,
        )
        users = InMemoryUserStore([free, premium])
        sink = LoggingDeliverySink()

        summary = asyncio.run(
            run_delivery_cycle(ctx, users, MatchingEngine(jobs, settings, clock), sink, clock)
        )

        assert summary.count("skipped") == 1
        assert summary.count("delivered") == 1
        assert list(sink.delivered) == ["premium@example.com"]
        assert len(sink.delivered["premium@example.com"]) == 15
        assert users.get("premium@example.com").last_delivery_at == clock.now()
        assert users.get("premium@example.com").delivery_count == 1
        assert users.get("free@example.com").last_delivery_at == free.last_delivery_at
        assert ctx.metrics.num_matches_delivered == 15

    def test_welcome_delivery_advances_phase(self, ctx, settings, clock, jobs, make_user):
        users = InMemoryUserStore([make_user(signed_up_at=clock.now() - timedelta(hours=2))])

        asyncio.run(
            run_delivery_cycle(
                ctx, users, MatchingEngine(jobs, settings, clock), LoggingDeliverySink(), clock
            )
        )

        user = users.get("user@example.com")
        assert user.phase == DeliveryPhase.FOLLOWUP
        assert user.delivery_count == 1
        assert not user.onboarding_complete

    def test_user_without_candidates_is_not_updated(self, ctx, settings, clock, jobs, make_user):
        users = InMemoryUserStore([make_user(target_locations={"tokyo"})])

        summary = asyncio.run(
            run_delivery_cycle(
                ctx, users, MatchingEngine(jobs, settings, clock), LoggingDeliverySink(), clock
            )
        )

        assert summary.count("no_candidates") == 1
        assert users.get("user@example.com").last_delivery_at is None

    def test_one_failure_does_not_stop_the_cycle(self, ctx, settings, clock, jobs, make_user):
        users = InMemoryUserStore(
            [
                make_user(email="broken@example.com"),
                make_user(email="refused@example.com"),
                make_user(email="ok@example.com"),
            ]
        )
        sink = FailingSink(broken="broken@example.com", refused="refused@example.com")

        summary = asyncio.run(
            run_delivery_cycle(ctx, users, MatchingEngine(jobs, settings, clock), sink, clock)
        )

        statuses = {o.email: o.status for o in summary.outcomes}
        assert statuses == {
            "broken@example.com": "failed",
            "refused@example.com": "not_delivered",
            "ok@example.com": "delivered",
        }
        assert users.get("refused@example.com").last_delivery_at is None
        assert users.get("ok@example.com").delivery_count == 1
        assert ctx.stage_logs[-1].errors

    def test_dry_run_leaves_users_untouched(self, ctx, settings, clock, jobs, make_user):
        ctx.settings.dry_run = True
        users = InMemoryUserStore([make_user()])
        sink = LoggingDeliverySink()

        summary = asyncio.run(
            run_delivery_cycle(ctx, users, MatchingEngine(jobs, settings, clock), sink, clock)
        )

        assert summary.count("dry_run") == 1
        assert sink.delivered == {}
        assert users.get("user@example.com").delivery_count == 0

    def test_later_cycles_skip_jobs_already_sent(self, ctx, settings, clock, jobs, make_user):
        users = InMemoryUserStore([make_user(signed_up_at=clock.now() - timedelta(hours=2))])
        engine = MatchingEngine(jobs, settings, clock)
        sink = LoggingDeliverySink()

        asyncio.run(run_delivery_cycle(ctx, users, engine, sink, clock))
        welcome = {m.job.dedupe_key for m in sink.delivered["user@example.com"]}
        clock.advance(hours=48)
        asyncio.run(run_delivery_cycle(ctx, users, engine, sink, clock))
        followup = {m.job.dedupe_key for m in sink.delivered["user@example.com"]}

        assert len(welcome) == 5
        assert len(followup) == 5
        assert not welcome & followup
        assert users.get("user@example.com").delivered_job_keys == welcome | followup
