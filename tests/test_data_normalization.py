"""Unit tests for provider payload -> CompanyFinancials mapping."""
from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from stockval.domain.models.financials import SectorType
from stockval.infrastructure.data_providers.base import CANDLE_COLUMNS
from stockval.infrastructure.normalization import (
    _first_record,
    normalize_candles,
    normalize_fmp,
    normalize_yahoo,
)


def make_yahoo_payload() -> dict:
    periods = [pd.Timestamp("2023-09-30"), pd.Timestamp("2022-09-30")]
    income = pd.DataFrame(
        {
            periods[0]: {"Total Revenue": 1100.0, "EBITDA": 300.0, "Net Income": 200.0, "Basic EPS": 2.0},
            periods[1]: {"Total Revenue": 1000.0, "EBITDA": 280.0, "Net Income": 180.0, "Basic EPS": 1.8},
        }
    )
    balance = pd.DataFrame(
        {
            periods[0]: {
                "Cash And Cash Equivalents": 150.0,
                "Total Debt": 400.0,
                "Common Stock Equity": 900.0,
                "Ordinary Shares Number": 100.0,
                "Inventory": float("nan"),
            },
            periods[1]: {
                "Cash And Cash Equivalents": 120.0,
                "Total Debt": 420.0,
                "Common Stock Equity": 850.0,
                "Ordinary Shares Number": 100.0,
                "Inventory": 30.0,
            },
        }
    )
    cashflow = pd.DataFrame(
        {
            periods[0]: {"Operating Cash Flow": 260.0, "Capital Expenditure": -60.0},
            periods[1]: {"Operating Cash Flow": 240.0, "Capital Expenditure": -50.0, "Free Cash Flow": 190.0},
        }
    )
    info = {
        "currentPrice": 40.0,
        "beta": 1.3,
        "sector": "Technology",
        "industry": "Software - Infrastructure",
        "longName": "Test Corp",
        "marketCap": 4000.0,
        "trailingEps": 2.0,
        "bookValue": 9.0,
        "trailingPE": 20.0,
        "dividendRate": 0.8,
        "revenueGrowth": 0.1,
        "returnOnEquity": 0.22,
        "sharesOutstanding": 100.0,
    }
    return {"info": info, "income": income, "balance": balance, "cashflow": cashflow}


def test_yahoo_statements_merge_by_period_newest_first():
    financials = normalize_yahoo("test", make_yahoo_payload())

    assert financials.ticker == "TEST"
    assert [s.period for s in financials.history] == [date(2023, 9, 30), date(2022, 9, 30)]
    latest = financials.latest
    assert latest.revenue == 1100.0
    assert latest.cash == 150.0
    assert latest.total_equity == 900.0
    assert latest.inventory == 0.0
    # Missing Free Cash Flow row falls back to OCF + capex.
    assert latest.free_cash_flow == pytest.approx(200.0)
    assert financials.history[1].free_cash_flow == pytest.approx(190.0)
    assert financials.revenue_history() == [1100.0, 1000.0]


def test_yahoo_quote_statistics_and_sector():
    financials = normalize_yahoo("TEST", make_yahoo_payload())

    assert financials.market.price == 40.0
    assert financials.market.beta == 1.3
    assert financials.market.company_name == "Test Corp"
    assert financials.sector_type == SectorType.TECH_GROWTH
    stats = financials.statistics
    assert stats.revenue_growth == pytest.approx(10.0)
    assert stats.return_on_equity == pytest.approx(22.0)
    assert stats.dividend_yield == pytest.approx(2.0)
    assert stats.forward_eps is None
    assert financials.warnings == []


def test_yahoo_missing_data_defaults_with_warnings():
    payload = {"info": {"regularMarketPrice": 12.0}, "income": pd.DataFrame(), "balance": None, "cashflow": None}
    financials = normalize_yahoo("EMPTY", payload)

    assert financials.history == []
    assert financials.market.price == 12.0
    assert financials.market.beta == 1.0
    assert financials.sector_type == SectorType.GENERAL
    assert any("Beta unavailable" in w for w in financials.warnings)
    assert any("No annual statements" in w for w in financials.warnings)


def make_fmp_payload(profile_as_list: bool = True) -> dict:
    profile = {
        "symbol": "BANK",
        "price": 50.0,
        "beta": 0.9,
        "marketCap": 5000.0,
        "sector": "Financial Services",
        "industry": "Banks - Diversified",
        "companyName": "Bank Corp",
        "lastDividend": 2.0,
    }
    return {
        "profile": [profile] if profile_as_list else profile,
        "income": [
            {"date": "2023-12-31", "revenue": 1200.0, "netIncome": 300.0, "eps": 3.0},
            {"date": "2022-12-31", "revenue": 1000.0, "netIncome": 250.0, "eps": 2.5},
        ],
        "balance": [
            {"date": "2023-12-31", "cashAndCashEquivalents": 800.0, "totalDebt": 1500.0, "totalStockholdersEquity": 4000.0},
            {"date": "2022-12-31", "cashAndCashEquivalents": 700.0, "totalDebt": 1400.0, "totalStockholdersEquity": 3800.0},
        ],
        "cashflow": [
            {"date": "2023-12-31", "freeCashFlow": 280.0, "commonDividendsPaid": -200.0},
            {"date": "2022-12-31", "freeCashFlow": 240.0},
        ],
        "key_metrics": [{"evToEBITDATTM": 9.5, "returnOnEquityTTM": 0.12, "enterpriseValueTTM": 5700.0}],
        "ratios": {"priceToEarningsRatioTTM": 16.7, "bookValuePerShareTTM": 40.0, "dividendYieldTTM": 0.04},
        "estimates": [
            {"date": "2025-12-31", "epsAvg": 3.63},
            {"date": "2024-12-31", "epsAvg": 3.3},
        ],
    }


def test_fmp_mapping():
    financials = normalize_fmp("bank", make_fmp_payload())

    assert financials.ticker == "BANK"
    assert financials.sector_type == SectorType.FINANCIAL
    assert financials.market.company_name == "Bank Corp"
    assert financials.latest.free_cash_flow == 280.0
    assert financials.latest.dividends_paid == -200.0

    stats = financials.statistics
    assert stats.trailing_eps == 3.0
    assert stats.pe_ratio == 16.7
    assert stats.ev_to_ebitda == 9.5
    assert stats.book_value_per_share == 40.0
    assert stats.dividend_per_share == 2.0
    assert stats.dividend_yield == pytest.approx(4.0)
    assert stats.return_on_equity == pytest.approx(12.0)
    assert stats.revenue_growth == pytest.approx(20.0)
    assert stats.earnings_growth == pytest.approx(20.0)
    assert stats.analyst_growth_estimate == pytest.approx(10.0)
    assert stats.shares_outstanding == pytest.approx(100.0)


def test_fmp_profile_object_or_list_normalize_identically():
    as_list = normalize_fmp("BANK", make_fmp_payload(profile_as_list=True))
    as_object = normalize_fmp("BANK", make_fmp_payload(profile_as_list=False))
    assert as_list.market == as_object.market


def test_first_record_handles_shapes():
    assert _first_record([{"a": 1}, {"a": 2}]) == {"a": 1}
    assert _first_record({"a": 1}) == {"a": 1}
    assert _first_record([]) == {}
    assert _first_record(None) == {}


def test_candles_from_yfinance_multiindex_frame():
    index = pd.DatetimeIndex(["2024-01-03", "2024-01-02"], name="Date", tz="America/New_York")
    columns = pd.MultiIndex.from_tuples(
        [("Open", "MSFT"), ("High", "MSFT"), ("Low", "MSFT"), ("Close", "MSFT"), ("Volume", "MSFT")],
        names=["Price", "Ticker"],
    )
    frame = pd.DataFrame(
        [[11.0, 12.0, 10.0, 11.5, 100], [10.0, 11.0, 9.5, 10.5, 200]],
        index=index,
        columns=columns,
    )
    candles = normalize_candles(frame)

    assert list(candles.columns) == CANDLE_COLUMNS
    assert candles["close"].tolist() == [10.5, 11.5]
    assert candles["date"].dt.tz is None


def test_candles_from_fmp_records():
    frame = pd.DataFrame(
        [
            {"symbol": "X", "date": "2024-01-03", "open": 2, "high": 3, "low": 1, "close": 2.5, "volume": 10},
            {"symbol": "X", "date": "2024-01-02", "open": 1, "high": 2, "low": 1, "close": None, "volume": 10},
        ]
    )
    candles = normalize_candles(frame)
    assert len(candles) == 1
    assert candles.iloc[0]["close"] == 2.5


def test_candles_empty_frame():
    assert normalize_candles(pd.DataFrame()).empty
    assert normalize_candles(None).empty
    assert list(normalize_candles(None).columns) == CANDLE_COLUMNS
