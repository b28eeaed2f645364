"""Adzuna job-board API adapter."""

from __future__ import annotations

from typing import Any

from collectors.base import SourceAdapter
from core.errors import SourceError
from schemas import RawPosting

API_BASE = "https://api.adzuna.com/v1/api/jobs"


class AdzunaAdapter(SourceAdapter):
    """Paged search over one Adzuna country index.

    Config params:
        country: two-letter index code (default "gb")
        max_days_old: only postings newer than this many days
    """

    source_type = "adzuna"
    page_size = 50

    async def fetch_page(self, query: str, location: str, page: int) -> list[RawPosting]:
        app_id = self.credentials.get("adzuna_app_id")
        app_key = self.credentials.get("adzuna_app_key")
        if not app_id or not app_key:
            raise SourceError(self.source_id, "missing Adzuna credentials")

        country = self.config.params.get("country", "gb")
        params: dict[str, Any] = {
            "app_id": app_id,
            "app_key": app_key,
            "results_per_page": self.page_size,
            "content-type": "application/json",
        }
        if query:
            params["what"] = query
        if location:
            params["where"] = location
        if "max_days_old" in self.config.params:
            params["max_days_old"] = self.config.params["max_days_old"]

        data = await self.client.get_json(
            self.source_id, f"{API_BASE}/{country}/search/{page}", params=params
        )
        if not isinstance(data, dict):
            raise SourceError(self.source_id, "unexpected response shape")
        return [self._to_raw(item) for item in data.get("results") or []]

    def _to_raw(self, item: dict[str, Any]) -> RawPosting:
        company = item.get("company") or {}
        location = item.get("location") or {}
        return RawPosting(
            source=self.source_id,
            source_id=str(item["id"]) if item.get("id") is not None else None,
            title=item.get("title") or "",
            company=company.get("display_name") or "",
            location=location.get("display_name"),
            description=item.get("description") or "",
            url=item.get("redirect_url") or "",
            posted_at=item.get("created"),
            raw_data=item,
        )
