"""Adapter registry mapping source_type to a SourceAdapter class."""

from __future__ import annotations

from collectors.adapters.adzuna import AdzunaAdapter
from collectors.adapters.greenhouse import GreenhouseAdapter
from collectors.adapters.jsearch import JSearchAdapter
from collectors.adapters.lever import LeverAdapter
from collectors.base import SourceAdapter
from collectors.http_client import HttpClient
from core.config import Settings, SourceConfig
from core.errors import ConfigValidationError

ADAPTER_REGISTRY: dict[str, type[SourceAdapter]] = {
    "adzuna": AdzunaAdapter,
    "jsearch": JSearchAdapter,
    "greenhouse": GreenhouseAdapter,
    "lever": LeverAdapter,
}


def get_adapter(
    config: SourceConfig,
    client: HttpClient,
    credentials: dict | None = None,
) -> SourceAdapter | None:
    """Get an adapter instance for the given source config."""
    adapter_cls = ADAPTER_REGISTRY.get(config.source_type)
    if adapter_cls is None:
        return None
    return adapter_cls(config, client, credentials)


def build_adapters(
    sources: list[SourceConfig],
    client: HttpClient,
    settings: Settings,
) -> dict[str, SourceAdapter]:
    """One adapter per enabled source, keyed by source_id.

    Raises:
        ConfigValidationError: a source names an unknown source_type.
    """
    credentials = {
        "adzuna_app_id": settings.adzuna_app_id,
        "adzuna_app_key": settings.adzuna_app_key,
        "jsearch_api_key": settings.jsearch_api_key,
    }
    adapters: dict[str, SourceAdapter] = {}
    for source in sources:
        if not source.enabled:
            continue
        adapter = get_adapter(source, client, credentials)
        if adapter is None:
            raise ConfigValidationError(
                f"Unknown source_type {source.source_type!r} for {source.source_id}"
            )
        adapters[source.source_id] = adapter
    return adapters


__all__ = [
    "ADAPTER_REGISTRY",
    "AdzunaAdapter",
    "GreenhouseAdapter",
    "JSearchAdapter",
    "LeverAdapter",
    "SourceAdapter",
    "build_adapters",
    "get_adapter",
]
