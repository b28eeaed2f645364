"""Per-source request budget state."""

from datetime import date

from pydantic import Field

from .base import AwareDatetime, BaseSchema


class SourceBudgetState(BaseSchema):
    """Counters the budget governor reads and mutates before every call."""

    source: str
    requests_today: int = Field(default=0, ge=0)
    last_request_at: AwareDatetime | None = None
    last_reset_day: date | None = None
