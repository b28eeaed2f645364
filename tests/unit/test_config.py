"""
Tests for configuration loading and validation.
"""

import json

import pytest

from core.config import SourcesConfig, load_config, load_sources_config, snapshot_config
from core.context import RunContext
from core.errors import ConfigValidationError

VALID_SOURCES = """
sources:
  - source_id: adzuna-gb
    source_type: adzuna
    daily_budget: 200
    min_interval_seconds: 2
    queries: [graduate, intern]
    locations: [London]
    params:
      country: gb
"""


class TestSourcesConfig:
    """sources.yaml validation"""

    def test_valid_file(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text(VALID_SOURCES)

        config = load_sources_config(path)

        source = config.get("adzuna-gb")
        assert source.daily_budget == 200
        assert source.queries == ["graduate", "intern"]
        assert source.params == {"country": "gb"}

    def test_missing_budget_is_fatal(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text(VALID_SOURCES.replace("    daily_budget: 200\n", ""))

        with pytest.raises(ConfigValidationError) as exc_info:
            load_sources_config(path)

        assert any("daily_budget" in e["loc"] for e in exc_info.value.errors)

    def test_missing_interval_is_fatal(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text(VALID_SOURCES.replace("    min_interval_seconds: 2\n", ""))

        with pytest.raises(ConfigValidationError):
            load_sources_config(path)

    def test_duplicate_source_ids(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text(VALID_SOURCES + VALID_SOURCES.replace("sources:\n", ""))

        with pytest.raises(ConfigValidationError, match="Duplicate source_id"):
            load_sources_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text("sources: [unclosed")

        with pytest.raises(ConfigValidationError, match="Invalid YAML"):
            load_sources_config(path)

    def test_missing_file_means_no_sources(self, tmp_path):
        assert load_sources_config(tmp_path / "absent.yaml").sources == []

    def test_load_config_uses_settings_path(self, settings, tmp_path):
        (tmp_path / "sources.yaml").write_text(VALID_SOURCES)

        _, sources = load_config(settings=settings)

        assert [s.source_id for s in sources.sources] == ["adzuna-gb"]


class TestSettings:
    """Tier policy and snapshots"""

    def test_tier_policies(self, settings):
        free = settings.tier_policy("free")
        premium = settings.tier_policy("premium")

        assert (free.interval_hours, free.count, free.welcome_count) == (168.0, 6, 5)
        assert (premium.interval_hours, premium.count, premium.welcome_count) == (48.0, 15, 15)

    def test_snapshot_redacts_secrets(self, settings):
        snapshot = snapshot_config(settings, SourcesConfig())

        assert snapshot["settings"]["adzuna_app_key"] == "***"
        assert snapshot["settings"]["jsearch_api_key"] == "***"
        assert snapshot["settings"]["adzuna_app_id"] == "test-id"

    def test_boot_writes_snapshot(self, settings):
        ctx = RunContext.boot(settings, SourcesConfig(), run_id="run-1")

        data = json.loads(ctx.config_snapshot_path.read_text())
        assert data["run_id"] == "run-1"
        assert data["settings"]["adzuna_app_key"] == "***"
