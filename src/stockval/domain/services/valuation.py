"""Discounted cash flow toolkit.

This module implements:
- CAPM based discount rate (``calculate_wacc``)
- Five-year two-stage DCF on per-share and aggregate free cash flow
- Reverse DCF (market implied growth) via bisection
- Sensitivity grid and growth suggestions used to seed user assumptions

All rates are percentages (``10.0`` means 10%). Inputs outside the valid domain
return ``0`` rather than raising; callers treat ``0`` as "not applicable".
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from stockval.domain.models.financials import CompanyFinancials
from stockval.domain.models.valuation import DCFAssumptions

RISK_FREE_RATE = 4.5
EQUITY_RISK_PREMIUM = 5.5
MIN_WACC = 6.0
MAX_WACC = 15.0
DEFAULT_TERMINAL_GROWTH = 2.5
PROJECTION_YEARS = 5

REVERSE_DCF_LOW = -20.0
REVERSE_DCF_HIGH = 100.0
REVERSE_DCF_ITERATIONS = 50
REVERSE_DCF_TOLERANCE = 0.1

SECTOR_GROWTH_RATES: Dict[str, float] = {
    "Technology": 12.0,
    "Healthcare": 8.0,
    "Consumer Cyclical": 6.0,
    "Consumer Defensive": 4.0,
    "Financial Services": 6.0,
    "Industrials": 5.0,
    "Energy": 3.0,
    "Utilities": 3.0,
    "Real Estate": 5.0,
    "Communication Services": 6.0,
    "Basic Materials": 4.0,
}
DEFAULT_SECTOR_GROWTH = 6.0


@dataclass(frozen=True)
class GrowthSuggestion:
    rate: float
    source: str


@dataclass(frozen=True)
class EquityBridge:
    """Balance sheet items that turn enterprise value into equity value."""

    free_cash_flow: float
    shares_outstanding: float
    cash: float = 0.0
    short_term_investments: float = 0.0
    long_term_investments: float = 0.0
    total_debt: float = 0.0


def calculate_wacc(
    beta: Optional[float],
    sector: Optional[str] = None,
    *,
    risk_free_rate: float = RISK_FREE_RATE,
    equity_risk_premium: float = EQUITY_RISK_PREMIUM,
) -> float:
    """Cost of equity via CAPM, rounded to one decimal and clamped to [6, 15].

    ``sector`` is accepted for call-site symmetry with the growth helpers and does
    not change the result.
    """
    if beta is None or (isinstance(beta, float) and math.isnan(beta)):
        beta = 1.0
    wacc = round(risk_free_rate + float(beta) * equity_risk_premium, 1)
    return max(MIN_WACC, min(MAX_WACC, wacc))


def _project_cash_flows(base_fcf: float, assumptions: DCFAssumptions) -> float:
    """Present value of the projection years plus the discounted terminal value."""
    wacc = assumptions.wacc / 100.0
    terminal = assumptions.terminal_growth / 100.0
    initial = assumptions.revenue_growth / 100.0

    fcf = base_fcf
    total = 0.0
    for year in range(1, PROJECTION_YEARS + 1):
        # Growth fades linearly from the initial rate to the terminal rate.
        year_growth = terminal + (initial - terminal) * ((PROJECTION_YEARS - year) / PROJECTION_YEARS)
        fcf *= 1 + year_growth
        total += fcf / (1 + wacc) ** year

    terminal_value = fcf * (1 + terminal) / (wacc - terminal)
    total += terminal_value / (1 + wacc) ** PROJECTION_YEARS
    return total


def calculate_dcf(assumptions: DCFAssumptions, current_fcf_per_share: float) -> float:
    """Intrinsic value per share from a five-year DCF with Gordon terminal value."""
    if current_fcf_per_share <= 0 or not assumptions.is_valid:
        return 0.0
    return max(0.0, _project_cash_flows(current_fcf_per_share, assumptions))


def calculate_full_dcf(assumptions: DCFAssumptions, bridge: EquityBridge) -> float:
    """Aggregate DCF bridged from enterprise value to equity value per share."""
    if bridge.free_cash_flow <= 0 or bridge.shares_outstanding <= 0 or not assumptions.is_valid:
        return 0.0
    enterprise_value = _project_cash_flows(bridge.free_cash_flow, assumptions)
    equity_value = (
        enterprise_value
        + bridge.cash
        + bridge.short_term_investments
        + bridge.long_term_investments
        - bridge.total_debt
    )
    return max(0.0, equity_value / bridge.shares_outstanding)


def _solve_implied_growth(price: float, fcf_per_share: float, wacc: float, terminal_growth: float) -> float:
    low, high = REVERSE_DCF_LOW, REVERSE_DCF_HIGH
    for _ in range(REVERSE_DCF_ITERATIONS):
        mid = (low + high) / 2
        value = calculate_dcf(DCFAssumptions(mid, terminal_growth, wacc), fcf_per_share)
        if abs(value - price) < REVERSE_DCF_TOLERANCE:
            return mid
        if value > price:
            high = mid
        else:
            low = mid
    return (low + high) / 2


def calculate_reverse_dcf(
    current_price: float,
    current_fcf_per_share: float,
    wacc: float,
    terminal_growth: float = DEFAULT_TERMINAL_GROWTH,
    *,
    precision: Optional[int] = 1,
) -> float:
    """Initial growth rate (percent) at which the DCF reproduces ``current_price``.

    Solved by bisection over [-20, 100]. When the price is out of reach the last
    midpoint is returned. ``precision=None`` skips rounding.
    """
    if current_price <= 0 or current_fcf_per_share <= 0:
        return 0.0
    implied = _solve_implied_growth(current_price, current_fcf_per_share, wacc, terminal_growth)
    return implied if precision is None else round(implied, precision)


def calculate_sensitivity_table(
    base_fcf: float,
    terminal_growth: float = DEFAULT_TERMINAL_GROWTH,
    center_wacc: float = 10.0,
    center_growth: float = 10.0,
) -> List[Dict[str, float]]:
    """Fair value grid around a central WACC/growth pair."""
    rows: List[Dict[str, float]] = []
    for wacc_offset in (-2, -1, 0, 1, 2):
        wacc = center_wacc + wacc_offset
        if wacc <= terminal_growth:
            continue
        for growth_offset in (-4, -2, 0, 2, 4):
            growth = center_growth + growth_offset
            if growth < 0:
                continue
            value = calculate_dcf(DCFAssumptions(growth, terminal_growth, wacc), base_fcf)
            rows.append({"wacc": wacc, "growth": growth, "fair_value": round(value, 2)})
    return rows


def suggest_growth_rate(
    historical_revenue_growth: Optional[float],
    historical_earnings_growth: Optional[float] = None,
    sector: Optional[str] = None,
) -> GrowthSuggestion:
    """Near-term growth seed: discounted history when plausible, sector baseline otherwise."""
    sector_rate = SECTOR_GROWTH_RATES.get(sector or "", DEFAULT_SECTOR_GROWTH)
    if historical_revenue_growth is not None and 0 < historical_revenue_growth < 50:
        return GrowthSuggestion(
            rate=round(min(30.0, historical_revenue_growth * 0.9), 1),
            source="Historical revenue growth (discounted 10%)",
        )
    return GrowthSuggestion(rate=sector_rate, source=f"{sector or 'Market'} sector average")


def calculate_cagr(values_newest_first: Sequence[float]) -> float:
    """Compound annual growth rate in percent between the oldest and newest value."""
    values = [float(v) for v in values_newest_first if v is not None]
    if len(values) < 2:
        return 0.0
    end, start = values[0], values[-1]
    if start <= 0 or end <= 0:
        return 0.0
    years = len(values) - 1
    return round(((end / start) ** (1 / years) - 1) * 100, 1)


def default_assumptions(
    financials: CompanyFinancials,
    *,
    risk_free_rate: float = RISK_FREE_RATE,
    equity_risk_premium: float = EQUITY_RISK_PREMIUM,
) -> DCFAssumptions:
    """Suggested starting assumptions for a company."""
    cagr = calculate_cagr(financials.revenue_history())
    growth = suggest_growth_rate(cagr or None, None, financials.market.sector)
    wacc = calculate_wacc(
        financials.market.beta,
        financials.market.sector,
        risk_free_rate=risk_free_rate,
        equity_risk_premium=equity_risk_premium,
    )
    return DCFAssumptions(
        revenue_growth=growth.rate,
        terminal_growth=DEFAULT_TERMINAL_GROWTH,
        wacc=wacc,
    )
