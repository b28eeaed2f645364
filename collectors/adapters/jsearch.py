"""JSearch (RapidAPI) job-board adapter."""

from __future__ import annotations

from typing import Any

from collectors.base import SourceAdapter
from core.errors import SourceError
from schemas import RawPosting

API_HOST = "jsearch.p.rapidapi.com"
API_URL = f"https://{API_HOST}/search"


class JSearchAdapter(SourceAdapter):
    """Paged search over JSearch.

    JSearch has a small monthly quota, so its daily budget in
    configs/sources.yaml is the tightest of all sources.

    Config params:
        date_posted: "all" | "today" | "3days" | "week" | "month" (default "week")
        employment_types: comma-separated filter, e.g. "INTERN,FULLTIME"
    """

    source_type = "jsearch"
    page_size = 10

    async def fetch_page(self, query: str, location: str, page: int) -> list[RawPosting]:
        api_key = self.credentials.get("jsearch_api_key")
        if not api_key:
            raise SourceError(self.source_id, "missing JSearch API key")

        search = " in ".join(part for part in (query, location) if part)
        params: dict[str, Any] = {
            "query": search or "jobs",
            "page": page,
            "num_pages": 1,
            "date_posted": self.config.params.get("date_posted", "week"),
        }
        if "employment_types" in self.config.params:
            params["employment_types"] = self.config.params["employment_types"]

        data = await self.client.get_json(
            self.source_id,
            API_URL,
            params=params,
            headers={"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": API_HOST},
        )
        if not isinstance(data, dict):
            raise SourceError(self.source_id, "unexpected response shape")
        return [self._to_raw(item) for item in data.get("data") or []]

    def _to_raw(self, item: dict[str, Any]) -> RawPosting:
        location = ", ".join(
            part for part in (item.get("job_city"), item.get("job_country")) if part
        )
        return RawPosting(
            source=self.source_id,
            source_id=item.get("job_id"),
            title=item.get("job_title") or "",
            company=item.get("employer_name") or "",
            location=location or None,
            description=item.get("job_description") or "",
            url=item.get("job_apply_link") or "",
            posted_at=item.get("job_posted_at_datetime_utc")
            or item.get("job_posted_at_timestamp"),
            remote=item.get("job_is_remote"),
            raw_data=item,
        )
