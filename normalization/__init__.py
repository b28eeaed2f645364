"""Normalization: raw postings into deduplicated canonical jobs."""

from normalization.dedup import DedupCache
from normalization.locations import ParsedLocation, parse_location
from normalization.normalizer import NormalizeResult, normalize, normalize_postings
from normalization.normalizers import fingerprint, make_dedupe_key

__all__ = [
    "DedupCache",
    "NormalizeResult",
    "ParsedLocation",
    "fingerprint",
    "make_dedupe_key",
    "normalize",
    "normalize_postings",
    "parse_location",
]
