from __future__ import annotations

import httpx
import pytest

from stockval.domain.models.financials import SectorType
from stockval.infrastructure.data_providers.base import CANDLE_COLUMNS, DataProviderError, TickerNotFoundError
from stockval.infrastructure.data_providers.fmp_client import FMPClient

BASE_URL = "https://fmp.test/stable"

RESPONSES = {
    "profile": [
        {
            "symbol": "AAPL",
            "price": 190.0,
            "beta": 1.2,
            "marketCap": 2_950_000.0,
            "sector": "Technology",
            "industry": "Consumer Electronics",
            "companyName": "Apple Inc.",
        }
    ],
    "income-statement": [{"date": "2023-09-30", "revenue": 383_000.0, "netIncome": 97_000.0, "eps": 6.16}],
    "balance-sheet-statement": [{"date": "2023-09-30", "cashAndCashEquivalents": 30_000.0, "totalDebt": 111_000.0}],
    "cash-flow-statement": [{"date": "2023-09-30", "freeCashFlow": 99_500.0}],
    "key-metrics-ttm": [{"evToEBITDATTM": 24.0}],
    "ratios-ttm": [{"priceToEarningsRatioTTM": 30.8}],
    "analyst-estimates": [],
    "full": [
        {"date": "2024-01-03", "open": 184.2, "high": 185.9, "low": 183.4, "close": 184.3, "volume": 58_000_000},
        {"date": "2024-01-02", "open": 187.2, "high": 188.4, "low": 183.9, "close": 185.6, "volume": 82_000_000},
    ],
}


def make_client(overrides=None, seen=None) -> FMPClient:
    responses = {**RESPONSES, **(overrides or {})}

    def handler(request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        if seen is not None:
            seen.append(request)
        body = responses[endpoint]
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, json=body)

    return FMPClient("secret", base_url=BASE_URL, transport=httpx.MockTransport(handler))


def test_missing_api_key_raises_value_error():
    with pytest.raises(ValueError):
        FMPClient(None)
    with pytest.raises(ValueError):
        FMPClient("")


def test_fetch_company_gathers_every_endpoint():
    seen = []
    financials = make_client(seen=seen).fetch_company("aapl")

    assert financials.ticker == "AAPL"
    assert financials.market.price == 190.0
    assert financials.sector_type == SectorType.TECH_GROWTH
    assert financials.latest.free_cash_flow == 99_500.0
    assert financials.statistics.pe_ratio == 30.8

    assert len(seen) == 7
    assert all(request.url.params["apikey"] == "secret" for request in seen)
    assert all(request.url.params["symbol"] == "AAPL" for request in seen)


def test_single_failed_request_fails_the_fetch():
    client = make_client({"ratios-ttm": httpx.Response(500, json={"error": "boom"})})
    with pytest.raises(DataProviderError, match="ratios-ttm"):
        client.fetch_company("AAPL")


def test_error_message_payload_raises():
    client = make_client({"income-statement": {"Error Message": "Invalid API KEY."}})
    with pytest.raises(DataProviderError, match="Invalid API KEY"):
        client.fetch_company("AAPL")


def test_unknown_symbol_raises_ticker_not_found():
    client = make_client({"profile": []})
    with pytest.raises(TickerNotFoundError):
        client.fetch_company("NOPE")


def test_price_history_returns_sorted_candles():
    candles = make_client().fetch_price_history("AAPL", "1Y")
    assert list(candles.columns) == CANDLE_COLUMNS
    assert candles["close"].tolist() == [185.6, 184.3]


def test_price_history_resamples_long_windows():
    candles = make_client().fetch_price_history("AAPL", "5Y")
    # Both sessions fall in the same Friday-ending week.
    assert len(candles) == 1
    row = candles.iloc[0]
    assert row["open"] == 187.2
    assert row["close"] == 184.3
    assert row["high"] == 188.4
    assert row["volume"] == 140_000_000


def test_empty_price_history_raises():
    with pytest.raises(TickerNotFoundError):
        make_client({"full": []}).fetch_price_history("AAPL")
