from __future__ import annotations

import math

import pandas as pd
import pytest

from stockval.domain.services.technicals import (
    TechnicalAnalyzer,
    exponential_moving_average,
    pivot_points,
    price_zones,
    relative_strength_index,
    resolve_timeframe,
    rsi_signal,
    simple_moving_average,
    support_resistance,
)


def make_candles(closes, spread: float = 1.0) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "date": pd.date_range("2024-01-01", periods=len(closes), freq="D"),
            "open": closes,
            "high": [c + spread for c in closes],
            "low": [c - spread for c in closes],
            "close": closes,
            "volume": [1_000] * len(closes),
        }
    )


def test_moving_averages_need_enough_points():
    closes = [float(i) for i in range(1, 20)]
    assert simple_moving_average(closes, 20) is None
    assert exponential_moving_average(closes, 20) is None
    assert simple_moving_average(closes + [20.0], 20) == pytest.approx(10.5)


def test_ema_is_seeded_with_sma():
    # seed (1 + 2) / 2 = 1.5, then 3 * 2/3 + 1.5 * 1/3 = 2.5
    assert exponential_moving_average([1.0, 2.0, 3.0], 2) == pytest.approx(2.5)
    assert exponential_moving_average([7.0] * 30, 12) == pytest.approx(7.0)


def test_moving_averages_skip_missing_values():
    closes = [1.0, None, 2.0, float("nan"), 3.0]
    assert simple_moving_average(closes, 3) == pytest.approx(2.0)


def test_rsi_without_losses_is_100():
    closes = [float(i) for i in range(1, 31)]
    assert relative_strength_index(closes) == 100.0
    assert rsi_signal(100.0) == "OVERBOUGHT"


def test_rsi_without_gains_is_0():
    closes = [float(i) for i in range(30, 0, -1)]
    assert relative_strength_index(closes) == 0.0
    assert rsi_signal(0.0) == "OVERSOLD"


def test_rsi_needs_period_plus_one_points():
    assert relative_strength_index([1.0] * 14) is None
    assert rsi_signal(None) is None


def test_rsi_is_bounded():
    closes = [100 + 10 * math.sin(i / 3) for i in range(60)]
    value = relative_strength_index(closes)
    assert value is not None
    assert 0.0 <= value <= 100.0


def test_pivot_identities():
    candles = make_candles([10.0, 12.0, 11.0, 15.0, 13.0, 14.0], spread=0.5)
    levels = pivot_points(candles)
    high, low, close = 15.5, 9.5, 14.0

    assert levels.pivot == pytest.approx((high + low + close) / 3)
    assert levels.r1 - levels.s1 == pytest.approx(high - low)
    assert levels.r2 - levels.s2 == pytest.approx(2 * (high - low))
    assert levels.r1 + levels.s1 == pytest.approx(4 * levels.pivot - high - low)
    assert levels.r3 == pytest.approx(high + 2 * (levels.pivot - low))
    assert levels.s3 == pytest.approx(low - 2 * (high - levels.pivot))


def test_pivot_uses_recent_window_only():
    closes = [1000.0] + [10.0] * 20
    levels = pivot_points(make_candles(closes))
    assert levels.pivot == pytest.approx((11.0 + 9.0 + 10.0) / 3)


def test_price_zones_flat_series():
    assert price_zones(make_candles([5.0] * 10, spread=0.0)) == [5.0]


def test_price_zones_rank_most_visited_first():
    closes = [10.0] * 30 + [20.0] * 5
    zones = price_zones(make_candles(closes, spread=0.0))
    assert len(zones) == 2
    assert zones[0] < 10.2
    assert zones[1] > 19.8


def test_support_below_and_resistance_above_last_close():
    closes = [10.0] * 10 + [20.0] * 10 + [30.0] * 10 + [20.5]
    levels = support_resistance(make_candles(closes, spread=0.0))
    assert levels.support and all(zone < 20.5 for zone in levels.support)
    assert levels.resistance and all(zone > 20.5 for zone in levels.resistance)
    assert levels.support == sorted(levels.support, reverse=True)


def test_analyzer_builds_snapshot():
    closes = [float(i) for i in range(1, 61)]
    snapshot = TechnicalAnalyzer().analyze("msft", make_candles(closes), "6m")

    assert snapshot.ticker == "MSFT"
    assert snapshot.timeframe == "6M"
    assert snapshot.interval == "1d"
    assert snapshot.current_price == 60.0
    assert snapshot.data_points == 60
    assert snapshot.moving_averages.sma20 == pytest.approx(50.5)
    assert snapshot.moving_averages.sma200 is None
    assert snapshot.rsi == 100.0
    assert snapshot.rsi_signal == "OVERBOUGHT"
    assert snapshot.levels.pivots.pivot == round(snapshot.levels.pivots.pivot, 2)


def test_analyzer_short_history_has_no_rsi_signal():
    snapshot = TechnicalAnalyzer().analyze("msft", make_candles([float(i) for i in range(1, 11)]))
    assert snapshot.rsi is None
    assert snapshot.rsi_signal is None


def test_analyzer_rejects_empty_history():
    with pytest.raises(ValueError):
        TechnicalAnalyzer().analyze("X", pd.DataFrame(columns=["date", "high", "low", "close"]))


def test_unknown_timeframe_falls_back_to_default():
    assert resolve_timeframe("2W") == "1Y"
    assert resolve_timeframe(None) == "1Y"
    assert resolve_timeframe("10y") == "10Y"
