"""Market data provider interface shared by the Yahoo and FMP clients."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

import pandas as pd

from stockval.domain.models.financials import CompanyFinancials

CANDLE_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


class DataProviderError(RuntimeError):
    """Raised when an upstream data source fails or returns unusable data."""


class TickerNotFoundError(DataProviderError):
    """Raised when the provider does not know the requested symbol."""


class MarketDataProvider(ABC):
    """Fetch raw payloads and normalize them into domain objects."""

    name: str = "provider"

    @abstractmethod
    def fetch_raw(self, ticker: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def fetch_company(self, ticker: str) -> CompanyFinancials:
        raise NotImplementedError

    @abstractmethod
    def fetch_price_history(self, ticker: str, timeframe: str = "1Y") -> pd.DataFrame:
        """Candles with ``CANDLE_COLUMNS``, oldest first."""
        raise NotImplementedError

    def close(self) -> None:
        """Release network resources, if any."""
