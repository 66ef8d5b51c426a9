"""Financial Modeling Prep client built on httpx.

The company payload is assembled from several endpoints requested concurrently;
any failed request fails the whole fetch.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
import pandas as pd

from stockval.domain.models.financials import CompanyFinancials
from stockval.domain.services.technicals import TIMEFRAMES, resolve_timeframe
from stockval.infrastructure.data_providers.base import (
    CANDLE_COLUMNS,
    DataProviderError,
    MarketDataProvider,
    TickerNotFoundError,
)
from stockval.infrastructure.normalization import normalize_candles, normalize_fmp

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://financialmodelingprep.com/stable"
STATEMENT_LIMIT = 5

# payload key -> (endpoint, extra query params)
ENDPOINTS: Dict[str, tuple] = {
    "profile": ("profile", {}),
    "income": ("income-statement", {"period": "annual", "limit": STATEMENT_LIMIT}),
    "balance": ("balance-sheet-statement", {"period": "annual", "limit": STATEMENT_LIMIT}),
    "cashflow": ("cash-flow-statement", {"period": "annual", "limit": STATEMENT_LIMIT}),
    "key_metrics": ("key-metrics-ttm", {}),
    "ratios": ("ratios-ttm", {}),
    "estimates": ("analyst-estimates", {"period": "annual", "limit": STATEMENT_LIMIT}),
}

_RESAMPLE_RULES = {"1wk": "W-FRI", "1mo": "ME"}


class FMPClient(MarketDataProvider):
    """Minimal FMP client hiding transport plumbing from workflow nodes."""

    name = "fmp"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        proxy_url: Optional[str] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("FMP_API_KEY is required to contact Financial Modeling Prep.")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client_kwargs: Dict[str, Any] = {
            "base_url": self._base_url,
            "timeout": httpx.Timeout(timeout, connect=10.0),
        }
        if proxy_url:
            self._client_kwargs["proxy"] = proxy_url
        if transport is not None:
            self._client_kwargs["transport"] = transport

    # ------------------
    # Public API helpers
    # ------------------
    def fetch_raw(self, ticker: str) -> Dict[str, Any]:
        return asyncio.run(self.fetch_raw_async(ticker))

    async def fetch_raw_async(self, ticker: str) -> Dict[str, Any]:
        symbol = ticker.strip().upper()
        async with httpx.AsyncClient(**self._client_kwargs) as client:
            results = await asyncio.gather(
                *(self._get(client, endpoint, symbol, params) for endpoint, params in ENDPOINTS.values())
            )
        payload = dict(zip(ENDPOINTS.keys(), results))
        if not payload["profile"]:
            raise TickerNotFoundError(f"FMP has no profile for {symbol}.")
        return payload

    def fetch_company(self, ticker: str) -> CompanyFinancials:
        return normalize_fmp(ticker, self.fetch_raw(ticker))

    def fetch_price_history(self, ticker: str, timeframe: str = "1Y") -> pd.DataFrame:
        key = resolve_timeframe(timeframe)
        config = TIMEFRAMES[key]
        start = pd.Timestamp.today().normalize() - pd.DateOffset(months=config.months)
        rows = asyncio.run(self._fetch_eod(ticker, start.strftime("%Y-%m-%d")))

        candles = normalize_candles(pd.DataFrame(rows))
        if candles.empty:
            raise TickerNotFoundError(f"No price data found for {ticker}.")
        rule = _RESAMPLE_RULES.get(config.interval)
        if rule is None:
            return candles
        resampled = (
            candles.set_index("date")
            .resample(rule)
            .agg({"open": "first", "high": "max", "low": "min", "close": "last", "volume": "sum"})
            .dropna(subset=["open", "high", "low", "close"])
            .reset_index()
        )
        return resampled[CANDLE_COLUMNS]

    # -----------------
    # Internal helpers
    # -----------------
    async def _fetch_eod(self, ticker: str, start: str) -> Any:
        async with httpx.AsyncClient(**self._client_kwargs) as client:
            return await self._get(client, "historical-price-eod/full", ticker.strip().upper(), {"from": start})

    async def _get(self, client: httpx.AsyncClient, endpoint: str, symbol: str, params: Dict[str, Any]) -> Any:
        query = {"symbol": symbol, "apikey": self._api_key, **params}
        try:
            response = await client.get(f"/{endpoint}", params=query)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DataProviderError(
                f"FMP {endpoint} returned HTTP {exc.response.status_code} for {symbol}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DataProviderError(f"FMP {endpoint} request failed for {symbol}: {exc}") from exc

        data = response.json()
        if isinstance(data, dict) and "Error Message" in data:
            raise DataProviderError(f"FMP {endpoint}: {data['Error Message']}")
        logger.debug("FMP %s for %s -> %s", endpoint, symbol, type(data).__name__)
        return data
