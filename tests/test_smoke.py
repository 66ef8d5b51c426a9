"""Basic smoke tests for configuration and workflow wiring."""
from __future__ import annotations

import pytest

from config import Config
from stockval.settings.loader import load_settings
from stockval.workflows.graph import ValuationWorkflow


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("FMP_API_KEY", "PROXY_URL", "DATA_PROVIDER", "RISK_FREE_RATE", "HTTP_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STOCKVAL_DB_PATH", str(tmp_path / "db" / "watchlist.db"))
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))


def test_config_defaults():
    cfg = Config.from_env()
    assert cfg.data_provider == "yahoo"
    assert cfg.risk_free_rate == 4.5
    assert cfg.equity_risk_premium == 5.5
    assert cfg.fmp_api_key is None


def test_config_env_overrides(monkeypatch):
    monkeypatch.setenv("DATA_PROVIDER", "FMP")
    monkeypatch.setenv("RISK_FREE_RATE", "4.0")
    monkeypatch.setenv("HTTP_TIMEOUT", "not-a-number")
    cfg = Config.from_env()
    assert cfg.data_provider == "fmp"
    assert cfg.risk_free_rate == 4.0
    assert cfg.http_timeout == 20.0


def test_unknown_provider_env_falls_back_to_yahoo(monkeypatch):
    monkeypatch.setenv("DATA_PROVIDER", "bloomberg")
    assert Config.from_env().data_provider == "yahoo"


def test_load_settings_creates_directories_and_validates_provider(tmp_path):
    cfg = load_settings(debug_override=True, provider_override="fmp")
    assert cfg.debug is True
    assert cfg.data_provider == "fmp"
    assert (tmp_path / "db").is_dir()
    assert (tmp_path / "out").is_dir()

    with pytest.raises(ValueError):
        load_settings(provider_override="bloomberg")


def test_workflow_stages():
    workflow = ValuationWorkflow(Config.from_env())
    stages = workflow.describe_stages()
    assert len(stages) == 6
    assert stages[0].startswith("ingest_market_data")
    assert stages[-1].startswith("render_report")
    # No FMP key configured, so only Yahoo is wired.
    assert set(workflow.context.providers) == {"yahoo"}
