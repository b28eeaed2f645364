"""
Tests for job and user storage.
"""

from datetime import timedelta

import pytest

from schemas import DeliveryPhase
from storage import FileJobStore, FileUserStore, InMemoryJobStore, InMemoryUserStore, JobFilter


class TestJobStore:
    """Upsert, touch and the active pool"""

    def test_upsert_is_idempotent(self, make_job):
        store = InMemoryJobStore()
        job = make_job()

        first = store.upsert_jobs([job])
        second = store.upsert_jobs([job])

        assert (first.inserted, first.updated) == (1, 0)
        assert (second.inserted, second.updated) == (0, 1)
        assert len(store.all_jobs()) == 1

    def test_resighting_keeps_first_seen(self, make_job, clock):
        store = InMemoryJobStore()
        job = make_job()
        store.upsert_jobs([job])

        later = job.model_copy(update={"first_seen_at": clock.now() + timedelta(days=2),
                                       "last_seen_at": clock.now() + timedelta(days=2)})
        store.upsert_jobs([later])

        stored = store.get(job.dedupe_key)
        assert stored.first_seen_at == clock.now()
        assert stored.last_seen_at == clock.now() + timedelta(days=2)

    def test_filtered_copy_does_not_deactivate_active_row(self, make_job, clock):
        store = InMemoryJobStore()
        job = make_job()
        store.upsert_jobs([job])

        weaker = job.model_copy(
            update={"source": "greenhouse-acme", "last_seen_at": clock.now() + timedelta(hours=1)}
        )
        weaker.mark_filtered("required_fields")
        summary = store.upsert_jobs([weaker])

        stored = store.get(job.dedupe_key)
        assert summary.updated == 1
        assert stored.is_active
        assert stored.filtered_reason is None
        assert stored.source == "adzuna-gb"
        assert stored.last_seen_at == clock.now() + timedelta(hours=1)
        assert [j.dedupe_key for j in store.load_active_jobs()] == [job.dedupe_key]

    def test_passing_copy_replaces_filtered_row(self, make_job, clock):
        store = InMemoryJobStore()
        job = make_job()
        filtered = job.model_copy(deep=True)
        filtered.mark_filtered("required_fields")
        store.upsert_jobs([filtered])

        better = job.model_copy(
            update={
                "source": "greenhouse-acme",
                "first_seen_at": clock.now() + timedelta(days=1),
                "last_seen_at": clock.now() + timedelta(days=1),
            }
        )
        store.upsert_jobs([better])

        stored = store.get(job.dedupe_key)
        assert stored.is_active
        assert stored.source == "greenhouse-acme"
        assert stored.first_seen_at == clock.now()
        assert stored.last_seen_at == clock.now() + timedelta(days=1)

    def test_touch_bumps_known_keys_only(self, make_job, clock):
        store = InMemoryJobStore()
        job = make_job()
        store.upsert_jobs([job])

        found = store.touch_jobs([job.dedupe_key, "missing-key"], clock.now() + timedelta(hours=3))

        assert found == 1
        assert store.get(job.dedupe_key).last_seen_at == clock.now() + timedelta(hours=3)

    def test_active_pool_excludes_filtered(self, make_job):
        store = InMemoryJobStore()
        kept = make_job()
        dropped = make_job()
        dropped.mark_filtered("stale")
        store.upsert_jobs([kept, dropped])

        active = store.load_active_jobs()

        assert [j.dedupe_key for j in active] == [kept.dedupe_key]
        assert store.get(dropped.dedupe_key).filtered_reason == "stale"

    def test_filter_by_date_and_category(self, make_job, clock):
        store = InMemoryJobStore()
        recent = make_job(categories={"finance-investment"})
        old = make_job(posted_at=clock.now() - timedelta(days=60))
        store.upsert_jobs([recent, old])

        by_date = store.load_active_jobs(JobFilter(posted_after=clock.now() - timedelta(days=30)))
        by_category = store.load_active_jobs(JobFilter(categories={"data-analytics"}))

        assert [j.dedupe_key for j in by_date] == [recent.dedupe_key]
        assert [j.dedupe_key for j in by_category] == [old.dedupe_key]

    def test_file_store_round_trip(self, make_job, tmp_path):
        path = tmp_path / "jobs.json"
        job = make_job(languages={"de"})
        FileJobStore(path).upsert_jobs([job])

        reloaded = FileJobStore(path).get(job.dedupe_key)

        assert reloaded.model_dump() == job.model_dump()


class TestUserStore:
    """Delivery bookkeeping"""

    def test_record_delivery(self, make_user, clock):
        store = InMemoryUserStore([make_user()])

        updated = store.record_delivery(
            "user@example.com", clock.now(), DeliveryPhase.FOLLOWUP, onboarding_complete=False
        )

        assert updated.delivery_count == 1
        assert updated.last_delivery_at == clock.now()
        assert updated.phase == DeliveryPhase.FOLLOWUP

    def test_onboarding_never_reverts(self, make_user, clock):
        store = InMemoryUserStore([make_user(onboarding_complete=True)])

        updated = store.record_delivery(
            "user@example.com", clock.now(), DeliveryPhase.REGULAR, onboarding_complete=False
        )

        assert updated.onboarding_complete

    def test_unknown_user_raises(self, clock):
        with pytest.raises(KeyError):
            InMemoryUserStore().record_delivery(
                "nobody@example.com", clock.now(), DeliveryPhase.REGULAR, onboarding_complete=False
            )

    def test_file_store_persists_delivery(self, make_user, clock, tmp_path):
        path = tmp_path / "users.json"
        FileUserStore(path).save_user(make_user())
        FileUserStore(path).record_delivery(
            "user@example.com", clock.now(), DeliveryPhase.REGULAR, onboarding_complete=True
        )

        reloaded = FileUserStore(path).get("user@example.com")

        assert reloaded.delivery_count == 1
        assert reloaded.onboarding_complete
        assert reloaded.target_locations == {"london"}

    def test_delivered_keys_accumulate(self, make_user, clock):
        store = InMemoryUserStore([make_user()])
        store.record_delivery(
            "user@example.com",
            clock.now(),
            DeliveryPhase.FOLLOWUP,
            onboarding_complete=False,
            dedupe_keys=["graduate analyst-acme-london"],
        )

        updated = store.record_delivery(
            "user@example.com",
            clock.now() + timedelta(days=2),
            DeliveryPhase.REGULAR,
            onboarding_complete=True,
            dedupe_keys=["data intern-acme-london", "graduate analyst-acme-london"],
        )

        assert updated.delivered_job_keys == {
            "graduate analyst-acme-london",
            "data intern-acme-london",
        }

    def test_file_store_persists_delivered_keys(self, make_user, clock, tmp_path):
        path = tmp_path / "users.json"
        FileUserStore(path).save_user(make_user())
        FileUserStore(path).record_delivery(
            "user@example.com",
            clock.now(),
            DeliveryPhase.WELCOME,
            onboarding_complete=False,
            dedupe_keys=["graduate analyst-acme-london"],
        )

        reloaded = FileUserStore(path).get("user@example.com")

        assert reloaded.delivered_job_keys == {"graduate analyst-acme-london"}
