"""
Tests for the daily pipeline CLI.
"""

import pytest

from pipelines.daily import main


class TestDailyCli:
    def test_invalid_sources_exit_nonzero(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text("sources:\n  - source_id: broken\n    source_type: adzuna\n")

        with pytest.raises(SystemExit) as exc_info:
            main(["ingest", "--sources", str(path)])

        assert exc_info.value.code == 1

    def test_unknown_mode_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["publish"])

        assert exc_info.value.code == 2
