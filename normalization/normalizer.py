"""Normalization stage: RawPosting -> CanonicalJob."""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, Field

from core import verbose
from core.context import RunContext, Stage
from core.errors import NormalizationError
from core.ids import normalize_url
from normalization.classifier import (
    classify_categories,
    classify_experience,
    classify_work_mode,
    detect_language,
    required_languages,
)
from normalization.dedup import DedupCache
from normalization.locations import parse_location
from normalization.normalizers import (
    clean_text,
    description_text,
    fingerprint,
    make_dedupe_key,
    parse_posted_at,
)
from schemas import CanonicalJob, RawPosting

logger = structlog.get_logger()


def normalize(raw: RawPosting, source: str | None = None, now: datetime | None = None) -> CanonicalJob:
    """Build the canonical record for one raw posting.

    Raises:
        NormalizationError: title or company is empty after cleaning.
    """
    now = now or datetime.now(UTC)
    source = source or raw.source

    title = clean_text(raw.title).replace("\n", " ")
    company = clean_text(raw.company).replace("\n", " ")
    if not title or not company:
        missing = "title" if not title else "company"
        raise NormalizationError(f"{source}: posting {raw.source_id or raw.url!r} has no {missing}")

    description = description_text(raw.description)
    location = parse_location(raw.location)
    posting_language = detect_language(f"{title}\n{description}", hint=raw.language)
    posted_at = parse_posted_at(raw.posted_at, now)

    return CanonicalJob(
        dedupe_key=make_dedupe_key(title, company, location.city),
        source=source,
        source_native_id=raw.source_id,
        title=title,
        company=company,
        description=description,
        location_raw=location.raw,
        city=location.city,
        country=location.country,
        url=normalize_url(raw.url),
        categories=classify_categories(title, description),
        experience_flags=classify_experience(title, description),
        work_mode=classify_work_mode(title, description, location, raw.remote),
        languages=required_languages(title, description, posting_language),
        posting_language=posting_language,
        posted_at=posted_at,
        first_seen_at=now,
        last_seen_at=now,
    )


class SeenPosting(BaseModel):
    """Cache entry to record once the batch is stored."""

    source: str
    fingerprint: str
    dedupe_key: str


class NormalizeResult(BaseModel):
    """Output of the normalize stage."""

    jobs: list[CanonicalJob] = Field(default_factory=list)
    touched_keys: set[str] = Field(default_factory=set)
    seen: list[SeenPosting] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)
    cache_hits: int = 0
    duplicates: int = 0


def normalize_postings(
    postings: list[RawPosting],
    ctx: RunContext,
    cache: DedupCache,
    now: datetime,
) -> NormalizeResult:
    """Normalize and deduplicate one batch of raw postings.

    Postings the cache remembers skip normalization; their dedupe keys are
    returned in ``touched_keys`` for a last_seen_at bump. Within the batch
    the first posting for a dedupe key wins.
    """
    ctx.start_stage(Stage.NORMALIZE, items_in=len(postings))
    verbose.stage("Normalize", "clean, classify and deduplicate postings")

    result = NormalizeResult()
    batch: dict[str, CanonicalJob] = {}

    for raw in postings:
        fp = fingerprint(raw.title, raw.company, raw.location)
        cached_key = cache.lookup(raw.source, fp)
        if cached_key is not None:
            result.touched_keys.add(cached_key)
            result.cache_hits += 1
            verbose.detail(f"cache hit: {cached_key}")
            continue

        try:
            job = normalize(raw, now=now)
        except NormalizationError as e:
            logger.warning("Normalization failed", source=raw.source, error=str(e))
            result.failures.append(str(e))
            continue

        result.seen.append(SeenPosting(source=raw.source, fingerprint=fp, dedupe_key=job.dedupe_key))
        if job.dedupe_key in batch:
            result.duplicates += 1
            verbose.detail(f"duplicate in batch: {job.dedupe_key} ({raw.source})")
            continue
        batch[job.dedupe_key] = job
        verbose.detail(f"{job.dedupe_key} | {job.city}, {job.country} | {sorted(job.categories)}")

    result.jobs = list(batch.values())

    ctx.metrics.num_cache_hits += result.cache_hits
    ctx.metrics.num_normalized += len(result.jobs)
    ctx.metrics.num_normalization_failed += len(result.failures)
    ctx.metrics.num_batch_duplicates += result.duplicates

    stage_log = ctx.complete_stage(Stage.NORMALIZE, items_out=len(result.jobs), errors=result.failures)
    verbose.stage_end(
        "normalize",
        items_out=len(result.jobs),
        errors=len(result.failures),
        duration=stage_log.duration_seconds if stage_log and stage_log.duration_seconds else 0.0,
    )
    return result
