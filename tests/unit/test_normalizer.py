"""
Tests for normalization: canonical records, locations, classification and the batch stage.
"""

from datetime import UTC, datetime

import pytest

from core.errors import NormalizationError
from normalization.dedup import DedupCache
from normalization.locations import REMOTE_UNKNOWN, parse_location
from normalization.normalizer import normalize, normalize_postings
from normalization.normalizers import (
    description_text,
    fingerprint,
    make_dedupe_key,
    parse_posted_at,
)
from schemas import WorkMode


class TestNormalize:
    """RawPosting -> CanonicalJob"""

    def test_graduate_analyst_in_london(self, make_raw, clock):
        job = normalize(make_raw(description=""), now=clock.now())

        assert job.city == "London"
        assert job.country == "United Kingdom"
        assert job.dedupe_key == "graduate analyst-acme-london"
        assert "graduate" in job.experience_flags
        assert "early-career" in job.experience_flags
        assert job.categories
        assert job.is_active

    def test_url_tracking_params_removed(self, make_raw, clock):
        job = normalize(make_raw(), now=clock.now())

        assert job.url == "https://jobs.example.com/1"

    def test_first_and_last_seen_are_now(self, make_raw, clock):
        job = normalize(make_raw(), now=clock.now())

        assert job.first_seen_at == clock.now()
        assert job.last_seen_at == clock.now()
        assert job.posted_at == datetime(2025, 1, 2, 10, 0, tzinfo=UTC)

    @pytest.mark.parametrize("field", ["title", "company"])
    def test_missing_title_or_company_fails(self, make_raw, clock, field):
        with pytest.raises(NormalizationError):
            normalize(make_raw(**{field: "   "}), now=clock.now())

    def test_missing_location_is_tolerated(self, make_raw, clock):
        job = normalize(make_raw(location=None), now=clock.now())

        assert job.location_raw == REMOTE_UNKNOWN
        assert job.city == "Unknown"
        assert job.dedupe_key.endswith("-unknown")

    def test_html_description_reduced_to_text(self, make_raw, clock):
        job = normalize(
            make_raw(description="<p>Work with <b>analytics</b> data</p><script>x()</script>"),
            now=clock.now(),
        )

        assert "<" not in job.description
        assert "analytics" in job.description
        assert "x()" not in job.description

    def test_remote_location_sets_work_mode(self, make_raw, clock):
        job = normalize(make_raw(location="Remote - Europe"), now=clock.now())

        assert job.work_mode == WorkMode.REMOTE

    def test_source_remote_flag_sets_work_mode(self, make_raw, clock):
        job = normalize(make_raw(remote=True), now=clock.now())

        assert job.work_mode == WorkMode.REMOTE

    def test_senior_title_is_experienced(self, make_raw, clock):
        job = normalize(make_raw(title="Senior Data Analyst"), now=clock.now())

        assert job.experience_flags == {"experienced"}

    def test_multi_year_requirement_is_experienced(self, make_raw, clock):
        job = normalize(
            make_raw(description="Junior-friendly team but requires 5+ years in analytics."),
            now=clock.now(),
        )

        assert job.experience_flags == {"experienced"}

    def test_german_posting_requires_german(self, make_raw, clock):
        job = normalize(
            make_raw(
                title="Praktikant Datenanalyse",
                company="Beispiel GmbH",
                location="München, Deutschland",
                description=(
                    "Wir suchen einen Praktikanten für unser Team. Sie arbeiten mit der "
                    "Datenanalyse und die Aufgaben sind spannend. Sehr gute Deutschkenntnisse "
                    "sind erforderlich und wir freuen uns auf Sie."
                ),
            ),
            now=clock.now(),
        )

        assert job.posting_language == "de"
        assert "de" in job.languages
        assert job.city == "Munich"
        assert job.country == "Germany"
        assert "internship" in job.experience_flags
        assert "data-analytics" in job.categories

    def test_explicit_language_requirement_in_english_posting(self, make_raw, clock):
        job = normalize(
            make_raw(description="You will work with the analytics team. Fluent German is required."),
            now=clock.now(),
        )

        assert job.languages == {"de"}


class TestTextHelpers:
    """Keys, fingerprints, dates and descriptions"""

    def test_dedupe_key_strips_punctuation(self):
        key = make_dedupe_key("Data Analyst (Graduate)", "Acme, Inc.", "London")

        assert key == "data analyst graduate-acme inc-london"

    def test_dedupe_key_keeps_field_boundaries(self):
        assert make_dedupe_key("Data Analyst", "Acme", "London") != make_dedupe_key(
            "Data", "Analyst Acme", "London"
        )

    def test_dedupe_key_hyphens_do_not_split_fields(self):
        assert make_dedupe_key("Co-op Analyst", "Acme", "London") == "co op analyst-acme-london"
        assert make_dedupe_key("Co", "op-Analyst Acme", "London").count("-") == 2

    def test_fingerprint_normalizes_case_and_whitespace(self):
        assert fingerprint("Graduate  Analyst", "ACME", " London, UK ") == fingerprint(
            "graduate analyst", "acme", "london, uk"
        )

    def test_escaped_html_is_unescaped(self):
        assert description_text("&lt;p&gt;Build models&lt;/p&gt;") == "Build models"

    def test_epoch_milliseconds(self, clock):
        assert parse_posted_at(1704067200000, clock.now()) == datetime(2024, 1, 1, tzinfo=UTC)

    def test_epoch_seconds_string(self, clock):
        assert parse_posted_at("1704067200", clock.now()) == datetime(2024, 1, 1, tzinfo=UTC)

    def test_missing_or_garbage_date_is_now(self, clock):
        assert parse_posted_at(None, clock.now()) == clock.now()
        assert parse_posted_at("last tuesday", clock.now()) == clock.now()

    def test_future_date_clamped_to_now(self, clock):
        assert parse_posted_at("2030-01-01T00:00:00Z", clock.now()) == clock.now()


class TestParseLocation:
    """Location table lookups"""

    @pytest.mark.parametrize(
        ("text", "city", "country"),
        [
            ("London, UK", "London", "United Kingdom"),
            ("Zürich, Switzerland", "Zurich", "Switzerland"),
            ("Den Haag", "The Hague", "Netherlands"),
            ("Somewhere, France", "Unknown", "France"),
            ("Atlantis", "Unknown", "Unknown"),
        ],
    )
    def test_city_and_country(self, text, city, country):
        parsed = parse_location(text)

        assert (parsed.city, parsed.country) == (city, country)

    def test_remote_with_city(self):
        parsed = parse_location("Remote (Berlin office)")

        assert parsed.is_remote
        assert parsed.city == "Berlin"

    def test_empty_is_unresolved(self):
        parsed = parse_location("")

        assert parsed.raw == REMOTE_UNKNOWN
        assert not parsed.resolved


class TestNormalizeStage:
    """Batch-level dedupe and cache short-circuit"""

    def test_same_posting_from_two_sources_collapses(self, make_raw, ctx, clock):
        postings = [
            make_raw(source="adzuna-gb", source_id="a1", location="London, UK"),
            make_raw(source="jsearch", source_id="j9", location="London"),
        ]

        result = normalize_postings(postings, ctx, DedupCache(clock), clock.now())

        assert len(result.jobs) == 1
        assert result.jobs[0].source == "adzuna-gb"
        assert result.duplicates == 1
        assert len(result.seen) == 2
        assert {s.dedupe_key for s in result.seen} == {"graduate analyst-acme-london"}
        assert ctx.metrics.num_batch_duplicates == 1

    def test_cache_hit_skips_normalization(self, make_raw, ctx, clock):
        raw = make_raw()
        cache = DedupCache(clock)
        cache.mark_seen(raw.source, fingerprint(raw.title, raw.company, raw.location), "known-key")

        result = normalize_postings([raw], ctx, cache, clock.now())

        assert result.jobs == []
        assert result.touched_keys == {"known-key"}
        assert result.cache_hits == 1

    def test_failures_are_isolated(self, make_raw, ctx, clock):
        postings = [make_raw(title=""), make_raw(source_id="2", title="Junior Data Analyst")]

        result = normalize_postings(postings, ctx, DedupCache(clock), clock.now())

        assert len(result.jobs) == 1
        assert len(result.failures) == 1
        assert ctx.metrics.num_normalization_failed == 1
