"""Model-assisted primary scorer using litellm for provider abstraction."""

from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable
from typing import Any

import litellm  # type: ignore[import-untyped]
import structlog
from pydantic import BaseModel, Field, ValidationError

from core import verbose
from core.errors import PrimaryScorerError
from matching.scorer import Scorer
from schemas import (
    CanonicalJob,
    MatchAlgorithm,
    MatchResult,
    UserProfile,
    quality_for_score,
)

logger = structlog.get_logger()

# Per-job description excerpt sent to the model
_MAX_DESCRIPTION_CHARS = 600

_SYSTEM_PROMPT = """\
You are a careers advisor matching early-career candidates to job postings.
Given a candidate profile and a numbered list of jobs, score how well each job
fits the candidate from 0 to 100 and give a one-sentence reason.

Rules:
- Only score jobs from the list; refer to them by their "id".
- Weigh career path fit highest, then location, seniority, work mode and language.
- Omit jobs that clearly do not fit.
- Return ONLY valid JSON of the form:
  {"matches": [{"id": 1, "score": 85, "reason": "..."}]}
  No markdown, no explanation.
"""

_USER_PROMPT = """\
--- CANDIDATE ---
Career paths: {career_paths}
Target locations: {locations}
Languages: {languages}
Seniority: {seniority}
Work mode: {work_mode}

--- JOBS ---
{jobs}
"""


class _ScoredItem(BaseModel):
    id: int
    score: float = Field(..., ge=0, le=100)
    reason: str = ""


class _ScoredResponse(BaseModel):
    matches: list[_ScoredItem] = Field(default_factory=list)


Completion = Callable[..., Awaitable[Any]]


def _format_jobs(candidates: list[CanonicalJob]) -> str:
    blocks = []
    for i, job in enumerate(candidates, start=1):
        excerpt = job.description[:_MAX_DESCRIPTION_CHARS].replace("\n", " ")
        blocks.append(
            json.dumps(
                {
                    "id": i,
                    "title": job.title,
                    "company": job.company,
                    "location": f"{job.city}, {job.country}",
                    "work_mode": job.work_mode.value,
                    "categories": sorted(job.categories),
                    "experience": sorted(job.experience_flags),
                    "languages": sorted(job.languages),
                    "description": excerpt,
                },
                ensure_ascii=False,
            )
        )
    return "\n".join(blocks)


def _build_messages(user: UserProfile, candidates: list[CanonicalJob]) -> list[dict[str, str]]:
    """Build chat messages for the LLM call."""
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {
            "role": "user",
            "content": _USER_PROMPT.format(
                career_paths=", ".join(sorted(user.career_paths)) or "open",
                locations=", ".join(sorted(user.target_locations)) or "anywhere",
                languages=", ".join(sorted(user.languages)) or "en",
                seniority=user.seniority.value if user.seniority else "any",
                work_mode=user.work_mode.value if user.work_mode else "any",
                jobs=_format_jobs(candidates),
            ),
        },
    ]


class LLMScorer(Scorer):
    """Primary scorer backed by a chat-completion model.

    ``completion`` defaults to ``litellm.acompletion``; tests pass a stub
    with the same signature.
    """

    algorithm = MatchAlgorithm.PRIMARY

    def __init__(
        self,
        model: str,
        temperature: float = 0.1,
        completion: Completion | None = None,
    ):
        self.model = model
        self.temperature = temperature
        self._completion = completion or litellm.acompletion

    async def score(self, user: UserProfile, candidates: list[CanonicalJob]) -> list[MatchResult]:
        if not candidates:
            return []

        start = time.monotonic()
        verbose.step(f"LLM call → {self.model} for {user.email} ({len(candidates)} jobs)")
        try:
            response = await self._completion(
                model=self.model,
                messages=_build_messages(user, candidates),
                response_format={"type": "json_object"},
                temperature=self.temperature,
            )
        except Exception as e:
            raise PrimaryScorerError(f"LLM call failed: {e}") from e

        try:
            raw_text: str = response.choices[0].message.content or ""  # type: ignore[union-attr]
        except (AttributeError, IndexError, TypeError) as e:
            raise PrimaryScorerError(f"Unusable LLM response: {e!r}") from e
        elapsed_ms = (time.monotonic() - start) * 1000
        verbose.detail(f"LLM response: {len(raw_text)} chars in {elapsed_ms:.0f}ms")

        try:
            parsed = _ScoredResponse.model_validate(json.loads(raw_text))
        except (json.JSONDecodeError, ValidationError) as e:
            raise PrimaryScorerError(f"Unusable LLM response: {e}") from e

        results: list[MatchResult] = []
        used: set[int] = set()
        for item in parsed.matches:
            if item.id in used or not 1 <= item.id <= len(candidates):
                logger.debug("Ignoring LLM match", job_id=item.id, user=user.email)
                continue
            used.add(item.id)
            results.append(
                MatchResult(
                    job=candidates[item.id - 1],
                    score=item.score,
                    reason=item.reason,
                    quality=quality_for_score(item.score),
                    algorithm=self.algorithm,
                )
            )
        return results
