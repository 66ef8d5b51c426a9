"""Thin wrapper around yfinance with project defaults."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import pandas as pd
import yfinance as yf

from stockval.domain.models.financials import CompanyFinancials
from stockval.domain.services.technicals import TIMEFRAMES, resolve_timeframe
from stockval.infrastructure.data_providers.base import (
    DataProviderError,
    MarketDataProvider,
    TickerNotFoundError,
)
from stockval.infrastructure.normalization import normalize_candles, normalize_yahoo

logger = logging.getLogger(__name__)


class YahooFinanceClient(MarketDataProvider):
    """Fetch quote statistics, annual statements and candles from Yahoo Finance."""

    name = "yahoo"

    def __init__(self, *, proxy_url: Optional[str] = None, ticker_factory=None) -> None:
        self._proxy_url = proxy_url
        self._ticker_factory = ticker_factory or yf.Ticker
        if proxy_url:
            yf.set_config(proxy=proxy_url)

    # ------------------
    # Public API helpers
    # ------------------
    def fetch_raw(self, ticker: str) -> Dict[str, Any]:
        handle = self._ticker(ticker)
        try:
            info = handle.info or {}
            income = handle.income_stmt
            balance = handle.balance_sheet
            cashflow = handle.cashflow
        except Exception as exc:  # pylint: disable=broad-except
            raise DataProviderError(f"Yahoo Finance request failed for {ticker}: {exc}") from exc

        if not info or not any(key in info for key in ("currentPrice", "regularMarketPrice", "previousClose")):
            raise TickerNotFoundError(f"Yahoo Finance has no quote for {ticker}.")
        logger.debug("Yahoo payload for %s: %d info keys", ticker, len(info))
        return {"info": info, "income": income, "balance": balance, "cashflow": cashflow}

    def fetch_company(self, ticker: str) -> CompanyFinancials:
        return normalize_yahoo(ticker, self.fetch_raw(ticker))

    def fetch_price_history(self, ticker: str, timeframe: str = "1Y") -> pd.DataFrame:
        key = resolve_timeframe(timeframe)
        config = TIMEFRAMES[key]
        start = pd.Timestamp.today().normalize() - pd.DateOffset(months=config.months)
        try:
            frame = self._ticker(ticker).history(
                start=start.strftime("%Y-%m-%d"),
                interval=config.interval,
                auto_adjust=False,
            )
        except Exception as exc:  # pylint: disable=broad-except
            raise DataProviderError(f"Yahoo Finance history failed for {ticker}: {exc}") from exc

        candles = normalize_candles(frame)
        if candles.empty:
            raise TickerNotFoundError(f"No price data found for {ticker}.")
        return candles

    # -----------------
    # Internal helpers
    # -----------------
    def _ticker(self, ticker: str):
        return self._ticker_factory(ticker.strip().upper())
