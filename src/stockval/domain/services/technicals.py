"""Technical indicators over OHLC candles.

Candles are a pandas DataFrame with ``high``, ``low`` and ``close`` columns in
chronological order (oldest first). Rows with missing prices are ignored.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from stockval.domain.models.technicals import (
    MovingAverages,
    PivotLevels,
    SupportResistance,
    TechnicalSnapshot,
)

PIVOT_LOOKBACK = 20
ZONE_BUCKETS = 100
ZONE_COUNT = 10
LEVELS_PER_SIDE = 3
RSI_PERIOD = 14
RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0


@dataclass(frozen=True)
class Timeframe:
    months: int
    interval: str


TIMEFRAMES: Dict[str, Timeframe] = {
    "1M": Timeframe(1, "1d"),
    "6M": Timeframe(6, "1d"),
    "1Y": Timeframe(12, "1d"),
    "3Y": Timeframe(36, "1wk"),
    "5Y": Timeframe(60, "1wk"),
    "10Y": Timeframe(120, "1mo"),
}
DEFAULT_TIMEFRAME = "1Y"


def resolve_timeframe(key: Optional[str]) -> str:
    key = (key or DEFAULT_TIMEFRAME).upper()
    return key if key in TIMEFRAMES else DEFAULT_TIMEFRAME


def _clean(values: Sequence[Optional[float]]) -> List[float]:
    return [float(v) for v in values if v is not None and not pd.isna(v)]


def simple_moving_average(closes: Sequence[Optional[float]], period: int) -> Optional[float]:
    """Mean of the trailing ``period`` closes, or None with too little data."""
    data = _clean(closes)
    if period <= 0 or len(data) < period:
        return None
    return float(np.mean(data[-period:]))


def exponential_moving_average(closes: Sequence[Optional[float]], period: int) -> Optional[float]:
    """EMA seeded with the SMA of the first ``period`` closes."""
    data = _clean(closes)
    if period <= 0 or len(data) < period:
        return None
    k = 2 / (period + 1)
    value = sum(data[:period]) / period
    for price in data[period:]:
        value = price * k + value * (1 - k)
    return value


def relative_strength_index(closes: Sequence[Optional[float]], period: int = RSI_PERIOD) -> Optional[float]:
    """Wilder-smoothed RSI rounded to two decimals; 100 when there were no losses."""
    data = _clean(closes)
    if len(data) < period + 1:
        return None

    deltas = np.diff(data)
    first = deltas[:period]
    avg_gain = float(first[first > 0].sum()) / period
    avg_loss = float(-first[first < 0].sum()) / period

    for change in deltas[period:]:
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return round(100 - 100 / (1 + rs), 2)


def rsi_signal(rsi: Optional[float]) -> Optional[str]:
    if rsi is None:
        return None
    if rsi > RSI_OVERBOUGHT:
        return "OVERBOUGHT"
    if rsi < RSI_OVERSOLD:
        return "OVERSOLD"
    return "NEUTRAL"


def pivot_points(candles: pd.DataFrame, lookback: int = PIVOT_LOOKBACK) -> PivotLevels:
    """Classic pivot levels from the last ``lookback`` candles."""
    recent = candles.dropna(subset=["high", "low", "close"]).tail(lookback)
    if recent.empty:
        return PivotLevels(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    high = float(recent["high"].max())
    low = float(recent["low"].min())
    close = float(recent["close"].iloc[-1])
    pivot = (high + low + close) / 3

    return PivotLevels(
        pivot=pivot,
        r1=2 * pivot - low,
        r2=pivot + (high - low),
        r3=high + 2 * (pivot - low),
        s1=2 * pivot - high,
        s2=pivot - (high - low),
        s3=low - 2 * (high - pivot),
    )


def price_zones(candles: pd.DataFrame, buckets: int = ZONE_BUCKETS, top: int = ZONE_COUNT) -> List[float]:
    """Midpoints of the most visited price buckets, most frequent first."""
    prices = [
        p
        for p in _clean(candles[["high", "low", "close"]].to_numpy().ravel().tolist())
        if p > 0
    ]
    if not prices:
        return []

    low, high = min(prices), max(prices)
    price_range = high - low
    if price_range == 0:
        return [round(low, 2)]

    size = price_range / buckets
    counts = Counter(int(np.floor((p - low) / size)) for p in prices)
    return [round(low + index * size + size / 2, 2) for index, _ in counts.most_common(top)]


def support_resistance(candles: pd.DataFrame) -> SupportResistance:
    """Pivot levels plus the nearest frequently traded zones around the last close."""
    pivots = pivot_points(candles)
    closes = _clean(candles["close"].tolist()) if "close" in candles else []
    if not closes:
        return SupportResistance(support=[], resistance=[], pivots=pivots)

    current = closes[-1]
    zones = price_zones(candles)
    support = sorted((z for z in zones if z < current), reverse=True)[:LEVELS_PER_SIDE]
    resistance = sorted(z for z in zones if z > current)[:LEVELS_PER_SIDE]
    return SupportResistance(support=support, resistance=resistance, pivots=pivots)


def calculate_moving_averages(closes: Sequence[Optional[float]]) -> MovingAverages:
    def rounded(value: Optional[float]) -> Optional[float]:
        return None if value is None else round(value, 2)

    return MovingAverages(
        sma20=rounded(simple_moving_average(closes, 20)),
        sma50=rounded(simple_moving_average(closes, 50)),
        sma200=rounded(simple_moving_average(closes, 200)),
        ema12=rounded(exponential_moving_average(closes, 12)),
        ema26=rounded(exponential_moving_average(closes, 26)),
    )


class TechnicalAnalyzer:
    """Bundle every indicator for one candle window."""

    def analyze(self, ticker: str, candles: pd.DataFrame, timeframe: Optional[str] = None) -> TechnicalSnapshot:
        key = resolve_timeframe(timeframe)
        if candles is None or candles.empty:
            raise ValueError(f"No price history available for {ticker}.")

        closes = candles["close"].tolist()
        clean_closes = _clean(closes)
        levels = support_resistance(candles)
        rsi = relative_strength_index(closes)

        return TechnicalSnapshot(
            ticker=ticker.upper(),
            timeframe=key,
            interval=TIMEFRAMES[key].interval,
            current_price=clean_closes[-1] if clean_closes else 0.0,
            data_points=len(candles),
            levels=SupportResistance(
                support=levels.support,
                resistance=levels.resistance,
                pivots=levels.pivots.rounded(),
            ),
            moving_averages=calculate_moving_averages(closes),
            rsi=rsi,
            rsi_signal=rsi_signal(rsi),
        )
