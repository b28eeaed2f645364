"""Pure utility functions for text cleaning, identity keys and dates."""

from __future__ import annotations

import html
import re
from datetime import UTC, date, datetime
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

from core.ids import collapse_whitespace, key_segment

# Tags to remove entirely before extracting text
_STRIP_TAGS = {"script", "style", "noscript", "svg", "iframe"}

_TAG_RE = re.compile(r"<\s*/?\s*[a-zA-Z][^>]*>")

# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 10**11


def clean_text(text: str) -> str:
    """Collapse whitespace and remove null bytes."""
    text = text.replace("\x00", "").replace("\xa0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def looks_like_html(text: str) -> bool:
    return bool(_TAG_RE.search(text)) or "&lt;" in text


def html_to_text(text: str) -> str:
    """Reduce an HTML (or entity-escaped HTML) description to plain text."""
    if "&lt;" in text:
        text = html.unescape(text)
    soup = BeautifulSoup(text, "lxml")
    for tag_name in _STRIP_TAGS:
        for tag in soup.find_all(tag_name):
            tag.decompose()
    return clean_text(soup.get_text(separator="\n", strip=True))


def description_text(text: str | None) -> str:
    if not text:
        return ""
    return html_to_text(text) if looks_like_html(text) else clean_text(html.unescape(text))


def fingerprint(title: str, company: str, location: str | None) -> str:
    """Cheap identity of a raw posting: normalized title|company|location."""
    return "|".join(collapse_whitespace(part or "") for part in (title, company, location))


def make_dedupe_key(title: str, company: str, city: str) -> str:
    """Stable identity across re-fetches and sources: ``title-company-city``.

    Each field keeps its inner spaces, so "Data Analyst" at "Acme" and "Data"
    at "Analyst Acme" get different keys.
    """
    return "-".join(key_segment(part) for part in (title, company, city))


def parse_posted_at(value: Any, now: datetime) -> datetime:
    """Coerce a source date into an aware UTC datetime.

    Accepts datetimes, dates, epoch seconds or milliseconds (numbers or digit
    strings), ISO-8601 and RFC 2822 strings. Missing or unparseable values
    fall back to ``now``; future dates are clamped to ``now``.
    """
    parsed = _parse_date(value)
    if parsed is None:
        return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    parsed = parsed.astimezone(UTC)
    return min(parsed, now)


def _parse_date(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    if isinstance(value, str):
        value = value.strip()
        if re.fullmatch(r"\d+(\.\d+)?", value):
            return _from_epoch(float(value))
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    return None


def _from_epoch(value: float) -> datetime | None:
    if value <= 0:
        return None
    if value > _EPOCH_MS_THRESHOLD:
        value /= 1000
    try:
        return datetime.fromtimestamp(value, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None
