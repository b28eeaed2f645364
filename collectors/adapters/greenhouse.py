"""Greenhouse public job-board adapter."""

from __future__ import annotations

from typing import Any

from collectors.base import SourceAdapter
from core.errors import SourceError
from schemas import RawPosting

API_BASE = "https://boards-api.greenhouse.io/v1/boards"


class GreenhouseAdapter(SourceAdapter):
    """One company's Greenhouse board.

    The board API returns every open job in one response, so the adapter is
    not paginated. Query and location are applied as case-insensitive
    substring filters on title and location.

    Config params:
        board_token: Greenhouse board token (required)
        company_name: display name, defaults to the board token
    """

    source_type = "greenhouse"
    paginated = False

    async def fetch_page(self, query: str, location: str, page: int) -> list[RawPosting]:
        board = self.config.params.get("board_token")
        if not board:
            raise SourceError(self.source_id, "board_token not configured")
        if page > 1:
            return []

        data = await self.client.get_json(
            self.source_id, f"{API_BASE}/{board}/jobs", params={"content": "true"}
        )
        if not isinstance(data, dict):
            raise SourceError(self.source_id, "unexpected response shape")

        company = self.config.params.get("company_name") or board
        postings = []
        for item in data.get("jobs") or []:
            raw = self._to_raw(item, company)
            if query and query.lower() not in raw.title.lower():
                continue
            if location and location.lower() not in (raw.location or "").lower():
                continue
            postings.append(raw)
        return postings

    def _to_raw(self, item: dict[str, Any], company: str) -> RawPosting:
        return RawPosting(
            source=self.source_id,
            source_id=str(item["id"]) if item.get("id") is not None else None,
            title=item.get("title") or "",
            company=company,
            location=(item.get("location") or {}).get("name"),
            # Greenhouse returns entity-escaped HTML; the normalizer unescapes it
            description=item.get("content") or "",
            url=item.get("absolute_url") or "",
            posted_at=item.get("first_published") or item.get("updated_at"),
            raw_data=item,
        )
