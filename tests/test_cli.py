from __future__ import annotations

import pytest
from typer.testing import CliRunner

from stockval.cli.commands import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in ("FMP_API_KEY", "PROXY_URL", "DATA_PROVIDER", "RISK_FREE_RATE", "EQUITY_RISK_PREMIUM"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STOCKVAL_DB_PATH", str(tmp_path / "watchlist.db"))
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))


def test_dcf_command():
    result = runner.invoke(app, ["dcf", "--fcf", "5", "--growth", "8", "--wacc", "10"])
    assert result.exit_code == 0, result.output
    assert "75.43" in result.output


def test_dcf_command_derives_rate_from_beta():
    result = runner.invoke(app, ["dcf", "--fcf", "5", "--growth", "8", "--beta", "1.0"])
    assert result.exit_code == 0, result.output
    assert "10.0%" in result.output
    assert "75.43" in result.output


def test_dcf_command_rejects_invalid_rates():
    result = runner.invoke(app, ["dcf", "--fcf", "5", "--wacc", "2", "--terminal-growth", "3"])
    assert result.exit_code == 2


def test_reverse_dcf_command():
    result = runner.invoke(app, ["reverse-dcf", "--price", "75.43", "--fcf", "5", "--wacc", "10"])
    assert result.exit_code == 0, result.output
    assert "8.0%" in result.output


def test_sensitivity_command():
    result = runner.invoke(app, ["sensitivity", "--fcf", "1"])
    assert result.exit_code == 0, result.output
    assert "15.63" in result.output


def test_plan_command_lists_stages():
    result = runner.invoke(app, ["plan"])
    assert result.exit_code == 0, result.output
    assert "ingest_market_data" in result.output
    assert "render_report" in result.output


def test_plan_command_leaves_the_watchlist_database_alone(tmp_path):
    result = runner.invoke(app, ["plan"])
    assert result.exit_code == 0, result.output
    assert not (tmp_path / "watchlist.db").exists()


def test_unknown_provider_is_rejected():
    result = runner.invoke(app, ["--provider", "bloomberg", "plan"])
    assert result.exit_code != 0


def test_watchlist_round_trip():
    added = runner.invoke(app, ["watchlist", "add", "aapl", "--note", "core", "--target", "200"])
    assert added.exit_code == 0, added.output

    listed = runner.invoke(app, ["watchlist", "list", "--json"])
    assert listed.exit_code == 0, listed.output
    assert '"ticker": "AAPL"' in listed.output
    assert '"note": "core"' in listed.output

    removed = runner.invoke(app, ["watchlist", "remove", "AAPL"])
    assert removed.exit_code == 0, removed.output

    missing = runner.invoke(app, ["watchlist", "remove", "AAPL"])
    assert missing.exit_code == 1

    empty = runner.invoke(app, ["watchlist", "list"])
    assert "Watchlist is empty." in empty.output
