"""Tests for the command-line entry points."""

from unittest.mock import patch

import pytest

from evpages import cli
from evpages.config import settings


@pytest.fixture(autouse=True)
def _offline():
    """No API key and no root-logger reconfiguration during CLI tests."""
    with patch.object(settings, "llm_api_key", ""), patch("evpages.cli.setup_logging"):
        yield


class TestLoadCommand:
    def test_missing_data_dir_exits_1(self, tmp_path, capsys):
        assert cli.load_main(["--data-dir", str(tmp_path / "absent")]) == 1
        assert "Error: Dataset unavailable" in capsys.readouterr().out

    def test_reports_eligibility(self, data_dir, capsys):
        assert cli.load_main(["--data-dir", str(data_dir)]) == 0
        out = capsys.readouterr().out
        assert "Loaded 3 localities" in out
        assert "los-angeles-ca" in out
        assert "$3,500 fixed rebates" in out


class TestCostsCommand:
    def test_prints_costs(self, data_dir, capsys):
        assert cli.costs_main(["--data-dir", str(data_dir), "--limit", "2"]) == 0
        out = capsys.readouterr().out
        assert "$ 2,340 install" in out
        assert "$4,968.00/yr saved" in out
        assert "Total: 2 localities (0 using the default rate)" in out

    def test_missing_rates_exits_1(self, data_dir):
        (data_dir / "electricity-rates.json").unlink()
        assert cli.costs_main(["--data-dir", str(data_dir)]) == 1


class TestSeedCommand:
    def test_dry_run(self, data_dir, capsys):
        code = cli.seed_main(["--data-dir", str(data_dir), "--dry-run", "--no-pacing", "--no-tracking"])
        assert code == 0
        out = capsys.readouterr().out
        assert "Progress: 3 / 3 localities" in out
        assert "Succeeded:        3" in out
        assert "Fallback content: 3" in out
        assert "(3 created, 0 updated)" in out

    def test_missing_incentives_exits_1_without_writes(self, data_dir):
        (data_dir / "incentives.json").unlink()
        with patch("evpages.cli._make_store") as mock_store:
            assert cli.seed_main(["--data-dir", str(data_dir), "--dry-run", "--no-tracking"]) == 1
        mock_store.assert_not_called()


class TestContentCommand:
    def test_dry_run_uses_templates_without_key(self, data_dir, capsys):
        code = cli.content_main(["--data-dir", str(data_dir), "--dry-run", "--no-pacing", "--no-tracking"])
        assert code == 0
        out = capsys.readouterr().out
        assert "No generation API key set" in out
        assert "Fallback content: 3" in out
