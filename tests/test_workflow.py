from __future__ import annotations

import json
from datetime import date

import pandas as pd
import pytest

from config import Config
from stockval.domain.models.financials import (
    CompanyFinancials,
    FinancialStatementSnapshot,
    KeyStatistics,
    MarketSnapshot,
    SectorType,
)
from stockval.domain.services.valuation import EquityBridge, calculate_full_dcf
from stockval.infrastructure.data_providers.base import MarketDataProvider, TickerNotFoundError
from stockval.workflows.graph import ValuationWorkflow


class FakeProvider(MarketDataProvider):
    name = "yahoo"

    def __init__(self) -> None:
        self.history_calls = []

    def fetch_raw(self, ticker):
        return {}

    def fetch_company(self, ticker):
        if ticker == "NOPE":
            raise TickerNotFoundError(f"Yahoo Finance has no quote for {ticker}.")
        history = [
            FinancialStatementSnapshot(
                period=date(2023, 12, 31),
                revenue=1210.0,
                ebitda=300.0,
                net_income=500.0,
                cash=400.0,
                receivables=100.0,
                inventory=50.0,
                total_debt=200.0,
                total_liabilities=600.0,
                total_equity=2000.0,
                shares_outstanding=100.0,
                free_cash_flow=500.0,
            ),
            FinancialStatementSnapshot(period=date(2022, 12, 31), revenue=1100.0),
            FinancialStatementSnapshot(period=date(2021, 12, 31), revenue=1000.0),
        ]
        return CompanyFinancials(
            market=MarketSnapshot(
                ticker=ticker,
                price=50.0,
                market_cap=5000.0,
                beta=1.0,
                sector="Industrials",
                industry="Specialty Industrial Machinery",
                company_name="Fake Industries",
            ),
            statistics=KeyStatistics(trailing_eps=5.0, earnings_growth=10.0),
            history=history,
            sector_type=SectorType.GENERAL,
        )

    def fetch_price_history(self, ticker, timeframe="1Y"):
        self.history_calls.append(timeframe)
        closes = [40.0 + (i % 7) for i in range(60)]
        return pd.DataFrame(
            {
                "date": pd.date_range("2024-01-01", periods=60, freq="D"),
                "open": closes,
                "high": [c + 1 for c in closes],
                "low": [c - 1 for c in closes],
                "close": closes,
                "volume": [1_000] * 60,
            }
        )


class ShortHistoryProvider(FakeProvider):
    def fetch_price_history(self, ticker, timeframe="1Y"):
        return super().fetch_price_history(ticker, timeframe).tail(10).reset_index(drop=True)


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def workflow(tmp_path, provider) -> ValuationWorkflow:
    config = Config(database_path=tmp_path / "watchlist.db", output_dir=tmp_path / "out")
    return ValuationWorkflow(config, providers={"yahoo": provider})


def test_full_run_populates_every_stage(workflow, provider):
    state = workflow.run("test", timeframe="6M")

    assert state["errors"] == []
    assert state["ticker"] == "TEST"
    assert state["company_name"] == "Fake Industries"
    assert state["model_config"].sector_type == SectorType.GENERAL
    assert state["suggested_assumptions"].wacc == 10.0
    assert state["sensitivity"]
    assert state["valuation"].current_price == 50.0
    assert state["valuation"].average_fair_value > 0
    assert state["relative"].valuations
    assert state["technicals"].timeframe == "6M"
    assert provider.history_calls == ["6M"]

    metrics = state["asset_metrics"]
    # 400 + 0.75 * 100 + 0.5 * 50 - 600 = -100 -> floored
    assert metrics["nnwc"] == 0.0
    assert metrics["graham_number"] == pytest.approx(47.43, abs=0.01)
    assert metrics["full_dcf"] > 0

    report = state["markdown_report"]
    assert report.startswith("# TEST")
    assert "Intrinsic Methods" in report
    assert "Relative Valuation vs Industrials" in report
    assert "Technicals (6M, 1d)" in report


def test_assumption_overrides_reach_the_dcf(workflow):
    state = workflow.run("TEST", include_technicals=False, assumption_overrides={"wacc": 9.0, "growth": 12.0})
    dcf = state["valuation"].methods[0]
    assert dcf.assumptions["wacc"] == 9.0
    assert dcf.assumptions["growth_rate"] == 12.0
    assert dcf.assumptions["terminal_growth"] == 2.5


def test_report_shows_the_assumptions_the_dcf_ran_on(workflow):
    state = workflow.run("TEST", include_technicals=False)
    dcf = state["valuation"].methods[0]
    applied = state["applied_assumptions"]

    # earnings growth of 10% after the 0.85 haircut
    assert applied.revenue_growth == pytest.approx(8.5)
    assert (applied.terminal_growth, applied.wacc) == (2.5, 10.0)
    assert dcf.assumptions["growth_rate"] == pytest.approx(applied.revenue_growth)
    assert "- Initial growth: 8.5%" in state["markdown_report"]

    bridge = EquityBridge(free_cash_flow=500.0, shares_outstanding=100.0, cash=400.0, total_debt=200.0)
    assert state["asset_metrics"]["full_dcf"] == pytest.approx(round(calculate_full_dcf(applied, bridge), 2))


def test_report_follows_growth_override(workflow):
    state = workflow.run("TEST", include_technicals=False, assumption_overrides={"growth": 20.0})
    report = state["markdown_report"]

    assert state["valuation"].methods[0].assumptions["growth_rate"] == 20.0
    assert state["applied_assumptions"].revenue_growth == 20.0
    assert "- Initial growth: 20.0%" in report
    assert "- Discount rate: 10.0%" in report


def test_technicals_can_be_skipped(workflow, provider):
    state = workflow.run("TEST", include_technicals=False)
    assert state.get("technicals") is None
    assert provider.history_calls == []
    assert any("skipped on request" in line for line in state["logs"])


def test_unknown_ticker_records_errors(workflow):
    state = workflow.run("NOPE")
    assert state.get("financials") is None
    assert any("fetch failed" in error for error in state["errors"])
    assert any("SectorAgent skipped" in error for error in state["errors"])
    assert "Pipeline Errors" in state["markdown_report"]


def test_unavailable_provider_records_error(workflow):
    state = workflow.run("TEST", provider="fmp")
    assert state.get("financials") is None
    assert "unavailable" in state["errors"][0]


def test_persist_state_writes_json(workflow, tmp_path):
    state = workflow.run("TEST", include_technicals=False)
    target = tmp_path / "out" / "TEST_state.json"
    workflow.persist_state(state, target)

    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["ticker"] == "TEST"
    assert payload["valuation"]["verdict"] in {"STRONG_BUY", "BUY", "HOLD", "SELL", "STRONG_SELL"}
    assert payload["financials"]["market"]["ticker"] == "TEST"


def test_report_marks_rsi_unavailable_on_short_history(tmp_path):
    config = Config(database_path=tmp_path / "watchlist.db", output_dir=tmp_path / "out")
    workflow = ValuationWorkflow(config, providers={"yahoo": ShortHistoryProvider()})
    state = workflow.run("TEST", timeframe="1M")

    assert state["technicals"].rsi_signal is None
    assert "- RSI(14): n/a" in state["markdown_report"]
    assert "NEUTRAL" not in state["markdown_report"]
