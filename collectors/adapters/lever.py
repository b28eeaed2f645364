"""Lever public postings adapter."""

from __future__ import annotations

from typing import Any

from collectors.base import SourceAdapter
from core.errors import SourceError
from schemas import RawPosting

API_BASE = "https://api.lever.co/v0/postings"


class LeverAdapter(SourceAdapter):
    """One company's Lever postings, paged with skip/limit.

    Lever has no keyword search; the query is ignored, so configure a single
    empty query for Lever sources.

    Config params:
        company_slug: Lever account slug (required)
        company_name: display name, defaults to the slug
    """

    source_type = "lever"
    page_size = 50

    async def fetch_page(self, query: str, location: str, page: int) -> list[RawPosting]:
        slug = self.config.params.get("company_slug")
        if not slug:
            raise SourceError(self.source_id, "company_slug not configured")

        params: dict[str, Any] = {
            "mode": "json",
            "skip": (page - 1) * self.page_size,
            "limit": self.page_size,
        }
        if location:
            params["location"] = location

        data = await self.client.get_json(self.source_id, f"{API_BASE}/{slug}", params=params)
        if not isinstance(data, list):
            raise SourceError(self.source_id, "unexpected response shape")

        company = self.config.params.get("company_name") or slug
        return [self._to_raw(item, company) for item in data]

    def _to_raw(self, item: dict[str, Any], company: str) -> RawPosting:
        categories = item.get("categories") or {}
        workplace = (item.get("workplaceType") or "").lower()
        return RawPosting(
            source=self.source_id,
            source_id=item.get("id"),
            title=item.get("text") or "",
            company=company,
            location=categories.get("location"),
            description=item.get("descriptionPlain") or item.get("description") or "",
            url=item.get("hostedUrl") or "",
            posted_at=item.get("createdAt"),
            remote=True if workplace == "remote" else None,
            raw_data=item,
        )
