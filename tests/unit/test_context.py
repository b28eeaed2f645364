"""
Tests for run bookkeeping and identifier helpers.
"""

from datetime import UTC, datetime

import pytest

from core.config import SourcesConfig
from core.context import RunContext, RunKind, RunStatus, Stage
from core.ids import generate_run_id, key_segment, normalize_url


class TestRunContext:
    """Stages, failure and summaries"""

    def test_boot_names_run_by_kind(self, settings):
        ctx = RunContext.boot(settings, SourcesConfig(), write_snapshot=False, kind=RunKind.DELIVER)

        assert ctx.run_id.startswith("deliver-")
        assert ctx.status == RunStatus.RUNNING

    def test_complete_stage_closes_latest_open_log(self, ctx):
        ctx.start_stage(Stage.DELIVER, items_in=2)
        ctx.complete_stage(Stage.DELIVER, items_out=2)
        ctx.start_stage(Stage.DELIVER, items_in=3)

        log = ctx.complete_stage(Stage.DELIVER, items_out=1, errors=["x@example.com: boom"])

        assert log is ctx.stage_logs[1]
        assert ctx.stage_logs[0].items_out == 2
        assert log.errors == ["x@example.com: boom"]
        assert log.duration_seconds is not None

    def test_complete_without_open_stage(self, ctx):
        assert ctx.complete_stage(Stage.STORE) is None

    def test_fail_run_pins_error_on_running_stage(self, ctx):
        ctx.start_stage(Stage.COLLECT, items_in=4)

        ctx.fail_run(RuntimeError("network down"))

        assert ctx.status == RunStatus.FAILED
        assert ctx.completed_at is not None
        assert ctx.stage_logs[-1].errors == ["network down"]

    def test_summary_reports_metrics_for_its_kind(self, settings):
        ingest = RunContext.boot(settings, SourcesConfig(), write_snapshot=False)
        deliver = RunContext.boot(settings, SourcesConfig(), write_snapshot=False, kind=RunKind.DELIVER)
        ingest.metrics.num_inserted = 4
        deliver.metrics.num_matches_delivered = 6

        ingest_metrics = ingest.summary()["metrics"]
        deliver_metrics = deliver.summary()["metrics"]

        assert ingest_metrics["num_inserted"] == 4
        assert "num_matches_delivered" not in ingest_metrics
        assert deliver_metrics["num_matches_delivered"] == 6
        assert "num_inserted" not in deliver_metrics


class TestIds:
    """Run ids, posting URLs and key segments"""

    def test_run_id_format(self):
        run_id = generate_run_id("ingest", datetime(2025, 1, 6, 9, 0, tzinfo=UTC))

        assert run_id.startswith("ingest-20250106T090000Z-")
        assert len(run_id.rsplit("-", 1)[1]) == 6

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://jobs.example.com/1?utm_source=feed", "https://jobs.example.com/1"),
            ("HTTPS://Boards.Greenhouse.io/acme/jobs/42?gh_src=abc&gh_jid=42",
             "https://boards.greenhouse.io/acme/jobs/42?gh_jid=42"),
            ("https://jobs.lever.co/acme/abc/?lever-source=LinkedIn", "https://jobs.lever.co/acme/abc"),
            ("https://example.com/job?b=2&a=1&utm_campaign=x#apply", "https://example.com/job?a=1&b=2"),
            ("https://example.com/", "https://example.com/"),
            ("  /relative/path  ", "/relative/path"),
            ("", ""),
        ],
    )
    def test_normalize_url(self, url, expected):
        assert normalize_url(url) == expected

    def test_key_segment_has_no_hyphens(self):
        assert key_segment("  Senior-ish  Data_Analyst (m/w/d) ") == "senior ish data analyst mwd"
        assert key_segment("Zürich") == "zürich"
