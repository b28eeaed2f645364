"""Run identifiers, posting URL canonicalisation and dedupe key segments."""

from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def generate_run_id(kind: str = "run", at: datetime | None = None) -> str:
    """``<kind>-<UTC timestamp>-<hex>``, e.g. ``ingest-20250106T090000Z-3f9a1c``.

    Ids of one kind sort by start time.
    """
    at = at or datetime.now(UTC)
    return f"{kind}-{at.astimezone(UTC).strftime('%Y%m%dT%H%M%SZ')}-{uuid.uuid4().hex[:6]}"


# Click and referral tags that job boards, ATS links and mailers append
_TRACKING_PREFIXES = ("utm_", "mc_", "_hs")
_TRACKING_PARAMS = frozenset(
    {
        "fbclid",
        "gclid",
        "msclkid",
        "ref",
        "refid",
        "referrer",
        "trk",
        "trackingid",
        "gh_src",
        "lever-origin",
        "lever-source",
        "source",
        "src",
    }
)


def is_tracking_param(name: str) -> bool:
    name = name.lower()
    return name in _TRACKING_PARAMS or name.startswith(_TRACKING_PREFIXES)


def normalize_url(url: str) -> str:
    """Canonical form of a posting link.

    Scheme and host are lowercased, tracking parameters and the fragment
    dropped, the remaining query sorted and a trailing slash trimmed from
    non-root paths. Anything without a scheme and host comes back trimmed
    but otherwise as given.
    """
    url = (url or "").strip()
    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url

    query = sorted(
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if not is_tracking_param(k)
    )
    path = parts.path
    if path not in ("", "/"):
        path = path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, urlencode(query), ""))


def collapse_whitespace(text: str) -> str:
    """Lowercase, trim and collapse runs of whitespace to one space."""
    return re.sub(r"\s+", " ", text).strip().lower()


def key_segment(text: str) -> str:
    """One field of a dedupe key: lowercase words with punctuation dropped.

    Hyphens and underscores become spaces, so a segment never contains the
    hyphen that joins segments. Unicode letters survive, so "Zürich" and
    "Zurich" stay distinct; location aliases are resolved before this runs.
    """
    text = re.sub(r"[-_]+", " ", text)
    text = re.sub(r"[^\w\s]", "", text)
    return collapse_whitespace(text)
