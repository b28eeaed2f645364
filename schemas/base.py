"""Base schema utilities and common types."""

from datetime import UTC, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def _ensure_aware(value: datetime) -> datetime:
    """Naive datetimes from sources are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# Common field types
AwareDatetime = Annotated[datetime, AfterValidator(_ensure_aware)]
TagSet = set[str]
