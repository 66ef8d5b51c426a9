"""Multi-method intrinsic valuation and its weighted synthesis.

Each ``*_method`` builder returns a :class:`ValuationMethodResult`. A builder never
raises for bad inputs; it returns ``ValuationMethodResult.not_applicable`` with a
reason so the synthesis can skip it. :class:`ValuationEngine` runs the builders
that fit the company's sector bucket and folds them into a verdict.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from stockval.domain.models.financials import CompanyFinancials, SectorType
from stockval.domain.models.valuation import (
    ComprehensiveValuation,
    Confidence,
    DCFAssumptions,
    ValuationMethodResult,
    Verdict,
)
from stockval.domain.services.asset_valuation import calculate_asset_value
from stockval.domain.services.switchboard import get_valuation_config
from stockval.domain.services.valuation import (
    DEFAULT_TERMINAL_GROWTH,
    EQUITY_RISK_PREMIUM,
    RISK_FREE_RATE,
    calculate_dcf,
    calculate_reverse_dcf,
    calculate_wacc,
)

logger = logging.getLogger(__name__)

DCF = "DCF (FCFF)"
GRAHAM = "Graham Number"
REIT_NAV = "NAV (Book Value Proxy)"
LYNCH = "Lynch Fair Value"
EPV = "Earnings Power Value"
DDM = "Dividend Discount Model"
REVERSE_DCF = "Reverse DCF"
RESIDUAL_INCOME = "Residual Income Model"
RULE_OF_40 = "Rule of 40"

SYNTHESIS_WEIGHTS: Dict[str, float] = {
    DCF: 0.40,
    LYNCH: 0.35,
    GRAHAM: 0.15,
    REIT_NAV: 0.15,
    EPV: 0.10,
}
CONSERVATIVE_DISCOUNT = 0.85
DDM_MIN_YIELD = 2.0
DEFAULT_DIVIDEND_GROWTH = 5.0
DEFAULT_BOOK_GROWTH = 5.0
DEFAULT_GROWTH = 8.0
MAINTENANCE_CAPEX_SHARE = 0.3


@dataclass(frozen=True)
class ValuationInputs:
    """Flat view of the figures the method builders read."""

    ticker: str
    current_price: float
    eps: float
    book_value_per_share: float
    free_cash_flow: float
    shares_outstanding: float
    net_income: float = 0.0
    revenue: float = 0.0
    enterprise_value: float = 0.0
    beta: float = 1.0
    sector: str = ""
    sector_type: SectorType = SectorType.GENERAL
    dividend_per_share: float = 0.0
    analyst_growth_estimate: Optional[float] = None
    earnings_growth: Optional[float] = None
    revenue_growth: Optional[float] = None
    dividend_growth: Optional[float] = None
    return_on_equity: Optional[float] = None
    profit_margin: Optional[float] = None
    maintenance_capex: Optional[float] = None

    @property
    def fcf_per_share(self) -> float:
        return self.free_cash_flow / self.shares_outstanding if self.shares_outstanding > 0 else 0.0

    @property
    def dividend_yield(self) -> float:
        if self.dividend_per_share <= 0 or self.current_price <= 0:
            return 0.0
        return self.dividend_per_share / self.current_price * 100

    @classmethod
    def from_financials(cls, financials: CompanyFinancials) -> "ValuationInputs":
        stats = financials.statistics
        latest = financials.latest
        net_income = latest.net_income if latest is not None else 0.0
        revenue = stats.total_revenue if stats.total_revenue is not None else (latest.revenue if latest else 0.0)
        dividend = stats.dividend_per_share
        if dividend is None and latest is not None and financials.shares_outstanding > 0:
            dividend = abs(latest.dividends_paid) / financials.shares_outstanding
        return cls(
            ticker=financials.ticker,
            current_price=financials.market.price,
            eps=financials.eps,
            book_value_per_share=financials.book_value_per_share,
            free_cash_flow=financials.free_cash_flow,
            shares_outstanding=financials.shares_outstanding,
            net_income=net_income,
            revenue=revenue or 0.0,
            enterprise_value=stats.enterprise_value or 0.0,
            beta=financials.market.beta,
            sector=financials.market.sector,
            sector_type=financials.sector_type,
            dividend_per_share=dividend or 0.0,
            analyst_growth_estimate=stats.analyst_growth_estimate,
            earnings_growth=stats.earnings_growth,
            revenue_growth=stats.revenue_growth,
            return_on_equity=stats.return_on_equity,
            profit_margin=stats.profit_margin,
        )


def _upside(fair_value: float, price: float) -> float:
    if price <= 0:
        return 0.0
    return round((fair_value / price - 1) * 100, 1)


def estimate_growth_rate(inputs: ValuationInputs) -> float:
    """Near-term growth: analyst estimate, then haircut earnings, then haircut revenue growth."""
    if inputs.analyst_growth_estimate and inputs.analyst_growth_estimate > 0:
        return min(inputs.analyst_growth_estimate, 30.0)
    if inputs.earnings_growth and inputs.earnings_growth > 0:
        return min(inputs.earnings_growth * 0.85, 25.0)
    if inputs.revenue_growth and inputs.revenue_growth > 0:
        return min(inputs.revenue_growth * 0.8, 20.0)
    return DEFAULT_GROWTH


def dcf_method(inputs: ValuationInputs, assumptions: DCFAssumptions) -> ValuationMethodResult:
    if inputs.free_cash_flow <= 0 or inputs.shares_outstanding <= 0:
        return ValuationMethodResult.not_applicable(
            DCF, "Cannot calculate DCF for companies with negative free cash flow"
        )
    if not assumptions.is_valid:
        return ValuationMethodResult.not_applicable(
            DCF, "Discount rate must be greater than terminal growth rate"
        )

    fair_value = calculate_dcf(assumptions, inputs.fcf_per_share)
    if 0 < inputs.beta < 2:
        confidence = Confidence.HIGH
    elif inputs.beta > 2.5:
        confidence = Confidence.LOW
    else:
        confidence = Confidence.MEDIUM

    return ValuationMethodResult(
        method=DCF,
        fair_value=round(fair_value, 2),
        upside=_upside(fair_value, inputs.current_price),
        confidence=confidence,
        details=(
            f"{assumptions.revenue_growth:.1f}% growth fading to {assumptions.terminal_growth:.1f}% "
            f"over 5 years, discounted at {assumptions.wacc:.1f}%"
        ),
        assumptions={
            "growth_rate": assumptions.revenue_growth,
            "terminal_growth": assumptions.terminal_growth,
            "wacc": assumptions.wacc,
            "fcf_per_share": round(inputs.fcf_per_share, 2),
        },
    )


def asset_method(inputs: ValuationInputs) -> ValuationMethodResult:
    """Graham Number, or the book value NAV proxy for REITs."""
    is_reit = inputs.sector_type == SectorType.REIT
    method = REIT_NAV if is_reit else GRAHAM
    if inputs.book_value_per_share <= 0 or (not is_reit and inputs.eps <= 0):
        return ValuationMethodResult.not_applicable(method, "Requires positive EPS and book value")

    fair_value = calculate_asset_value(inputs.eps, inputs.book_value_per_share, inputs.sector_type)
    details = (
        "Book value with a 10% NAV premium; earnings are distorted by depreciation"
        if is_reit
        else "Defensive ceiling: sqrt(22.5 x EPS x BVPS)"
    )
    return ValuationMethodResult(
        method=method,
        fair_value=round(fair_value, 2),
        upside=_upside(fair_value, inputs.current_price),
        confidence=Confidence.LOW,
        details=details,
        assumptions={"eps": inputs.eps, "book_value_per_share": inputs.book_value_per_share},
    )


def lynch_method(inputs: ValuationInputs, growth_rate: float) -> ValuationMethodResult:
    """Fair P/E equals growth plus dividend yield."""
    if inputs.eps <= 0 or growth_rate <= 0 or inputs.current_price <= 0:
        return ValuationMethodResult.not_applicable(LYNCH, "Lynch method requires positive earnings and growth")

    adjusted_growth = growth_rate + inputs.dividend_yield
    fair_value = inputs.eps * adjusted_growth
    current_pe = inputs.current_price / inputs.eps
    peg = current_pe / growth_rate
    score = adjusted_growth / current_pe

    if peg < 1.5:
        confidence = Confidence.HIGH
    elif peg < 2.5:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    return ValuationMethodResult(
        method=LYNCH,
        fair_value=round(max(0.0, fair_value), 2),
        upside=_upside(fair_value, inputs.current_price),
        confidence=confidence,
        details="Attractive by Lynch criteria" if score > 1.5 else "Fairly valued by Lynch criteria",
        assumptions={
            "growth_rate": round(growth_rate, 1),
            "dividend_yield": round(inputs.dividend_yield, 1),
            "fair_pe": round(adjusted_growth, 1),
            "peg_ratio": round(peg, 2),
            "lynch_score": round(score, 2),
        },
    )


def epv_method(inputs: ValuationInputs, cost_of_equity: float) -> ValuationMethodResult:
    """Zero-growth earnings capitalised at the cost of equity."""
    if inputs.net_income <= 0:
        return ValuationMethodResult.not_applicable(EPV, "EPV cannot be calculated for loss-making companies")
    if inputs.shares_outstanding <= 0 or cost_of_equity <= 0:
        return ValuationMethodResult.not_applicable(EPV, "Requires share count and a positive cost of equity")

    earnings = inputs.net_income
    if inputs.maintenance_capex:
        earnings -= abs(inputs.maintenance_capex) * MAINTENANCE_CAPEX_SHARE
    per_share = earnings / (cost_of_equity / 100) / inputs.shares_outstanding

    return ValuationMethodResult(
        method=EPV,
        fair_value=round(max(0.0, per_share), 2),
        upside=_upside(per_share, inputs.current_price),
        confidence=Confidence.LOW,
        details="Zero-growth floor (value if the company stops growing)",
        assumptions={"cost_of_equity": cost_of_equity, "implied_pe": round(100 / cost_of_equity, 1)},
    )


def ddm_method(inputs: ValuationInputs, cost_of_equity: float, dividend_growth: float) -> ValuationMethodResult:
    """Gordon growth model on next year's dividend."""
    if inputs.dividend_per_share <= 0:
        return ValuationMethodResult.not_applicable(DDM, "Company does not pay a dividend")

    r = cost_of_equity / 100
    g = dividend_growth / 100
    if r <= g:
        return ValuationMethodResult.not_applicable(DDM, "Growth rate must be less than required return")

    next_dividend = inputs.dividend_per_share * (1 + g)
    fair_value = next_dividend / (r - g)
    return ValuationMethodResult(
        method=DDM,
        fair_value=round(max(0.0, fair_value), 2),
        upside=_upside(fair_value, inputs.current_price),
        confidence=Confidence.HIGH if dividend_growth < 8 else Confidence.MEDIUM,
        details=f"D1 ${next_dividend:.2f} growing {dividend_growth:.1f}% at {cost_of_equity:.1f}% required return",
        assumptions={
            "dividend_per_share": inputs.dividend_per_share,
            "dividend_growth": dividend_growth,
            "cost_of_equity": cost_of_equity,
        },
    )


def _interpret_implied_growth(implied: float) -> str:
    if implied < 0:
        return "Market expects decline"
    if implied < 5:
        return "Market expects minimal growth"
    if implied < 15:
        return "Market expects moderate growth"
    if implied < 25:
        return "Market expects high growth"
    return "Market expects exceptional growth (risky)"


def reverse_dcf_method(
    inputs: ValuationInputs,
    wacc: float,
    terminal_growth: float = DEFAULT_TERMINAL_GROWTH,
) -> ValuationMethodResult:
    """What growth the current price implies. Reported at price, so it never moves the averages."""
    if inputs.fcf_per_share <= 0 or inputs.current_price <= 0:
        return ValuationMethodResult.not_applicable(REVERSE_DCF, "Requires positive free cash flow")

    implied = calculate_reverse_dcf(inputs.current_price, inputs.fcf_per_share, wacc, terminal_growth)
    return ValuationMethodResult(
        method=REVERSE_DCF,
        fair_value=inputs.current_price,
        upside=0.0,
        confidence=Confidence.HIGH,
        details=_interpret_implied_growth(implied),
        assumptions={"implied_growth": implied, "wacc": wacc, "fcf_per_share": round(inputs.fcf_per_share, 2)},
    )


def residual_income_method(
    inputs: ValuationInputs,
    cost_of_equity: float,
    growth_rate: float = DEFAULT_BOOK_GROWTH,
) -> ValuationMethodResult:
    """Fair P/B = 1 + (ROE - r) / (r - g), clamped to [0.5, 4]."""
    if inputs.book_value_per_share <= 0:
        return ValuationMethodResult.not_applicable(RESIDUAL_INCOME, "RIM requires positive book value")
    if inputs.return_on_equity is None or cost_of_equity <= 0:
        return ValuationMethodResult.not_applicable(RESIDUAL_INCOME, "Return on equity is unavailable")

    roe = inputs.return_on_equity / 100
    r = cost_of_equity / 100
    g = growth_rate / 100
    fair_pb = 1 + (roe - r) / (r - g) if r > g else roe / r
    fair_pb = max(0.5, min(fair_pb, 4.0))
    fair_value = inputs.book_value_per_share * fair_pb

    return ValuationMethodResult(
        method=RESIDUAL_INCOME,
        fair_value=round(fair_value, 2),
        upside=_upside(fair_value, inputs.current_price),
        confidence=Confidence.HIGH if inputs.return_on_equity > cost_of_equity else Confidence.MEDIUM,
        details=(
            "Company creates value above cost of equity"
            if roe > r
            else "Company destroys value vs cost of equity"
        ),
        assumptions={
            "return_on_equity": inputs.return_on_equity,
            "cost_of_equity": cost_of_equity,
            "fair_pb": round(fair_pb, 2),
        },
    )


def _rule_of_40_multiple(score: float) -> float:
    if score >= 60:
        return 12.0
    if score >= 40:
        return 8.0
    if score >= 20:
        return 5.0
    if score >= 0:
        return 3.0
    return 1.5


def rule_of_40_method(inputs: ValuationInputs) -> ValuationMethodResult:
    """EV/Revenue multiple scaled by revenue growth plus margin."""
    if inputs.revenue <= 0 or inputs.shares_outstanding <= 0:
        return ValuationMethodResult.not_applicable(RULE_OF_40, "Requires revenue and share count")

    growth = inputs.revenue_growth or 0.0
    margin = inputs.profit_margin or 0.0
    score = growth + margin
    multiple = _rule_of_40_multiple(score)
    fair_value = inputs.revenue * multiple / inputs.shares_outstanding
    current_multiple = inputs.enterprise_value / inputs.revenue if inputs.enterprise_value else None

    return ValuationMethodResult(
        method=RULE_OF_40,
        fair_value=round(max(0.0, fair_value), 2),
        upside=_upside(fair_value, inputs.current_price),
        confidence=Confidence.HIGH if score >= 40 else Confidence.MEDIUM,
        details=(
            "Passes Rule of 40 - high quality growth"
            if score >= 40
            else "Below Rule of 40 - growth quality concerns"
        ),
        assumptions={
            "score": round(score, 1),
            "implied_multiple": multiple,
            "current_multiple": round(current_multiple, 1) if current_multiple else None,
        },
    )


def classify_verdict(upside: float) -> Verdict:
    if upside > 25:
        return Verdict.STRONG_BUY
    if upside > 10:
        return Verdict.BUY
    if upside > -10:
        return Verdict.HOLD
    if upside > -25:
        return Verdict.SELL
    return Verdict.STRONG_SELL


def _median(values: List[float]) -> float:
    # Upper middle element for even counts.
    ordered = sorted(values)
    return ordered[len(ordered) // 2] if ordered else 0.0


def synthesize(
    inputs: ValuationInputs,
    methods: List[ValuationMethodResult],
    *,
    wacc: float,
    warnings: Optional[List[str]] = None,
    dcf_assumptions: Optional[DCFAssumptions] = None,
) -> ComprehensiveValuation:
    """Fold method results into weighted, simple, median and conservative fair values."""
    weighted = [(m.fair_value, SYNTHESIS_WEIGHTS[m.method]) for m in methods if m.applicable and m.method in SYNTHESIS_WEIGHTS]
    total_weight = sum(weight for _, weight in weighted)
    best_estimate = sum(value * weight for value, weight in weighted) / total_weight if total_weight > 0 else 0.0

    values = [m.fair_value for m in methods if m.applicable and m.method != REVERSE_DCF]
    simple_average = sum(values) / len(values) if values else 0.0

    upside = _upside(best_estimate, inputs.current_price) if best_estimate > 0 else 0.0
    implied = next(
        (m.assumptions.get("implied_growth", 0.0) for m in methods if m.method == REVERSE_DCF and m.applicable),
        0.0,
    )
    model_config = get_valuation_config(inputs.sector_type)

    return ComprehensiveValuation(
        ticker=inputs.ticker,
        current_price=inputs.current_price,
        methods=methods,
        average_fair_value=round(best_estimate, 2),
        simple_average_fair_value=round(simple_average, 2),
        median_fair_value=round(_median(values), 2),
        conservative_fair_value=round(best_estimate * CONSERVATIVE_DISCOUNT, 2),
        upside=upside,
        verdict=classify_verdict(upside),
        implied_growth=implied,
        wacc=wacc,
        sector_type=inputs.sector_type,
        dcf_assumptions=dcf_assumptions,
        model_config=model_config,
        warnings=list(model_config.warnings) + list(warnings or []),
    )


class ValuationEngine:
    """Run every method that fits the company and synthesize a verdict."""

    def __init__(
        self,
        *,
        risk_free_rate: float = RISK_FREE_RATE,
        equity_risk_premium: float = EQUITY_RISK_PREMIUM,
    ) -> None:
        self._risk_free_rate = risk_free_rate
        self._equity_risk_premium = equity_risk_premium

    def _wacc(self, inputs: ValuationInputs) -> float:
        return calculate_wacc(
            inputs.beta,
            inputs.sector,
            risk_free_rate=self._risk_free_rate,
            equity_risk_premium=self._equity_risk_premium,
        )

    def base_assumptions(self, financials: CompanyFinancials) -> DCFAssumptions:
        """DCF inputs used when the caller supplies none."""
        inputs = ValuationInputs.from_financials(financials)
        return DCFAssumptions(estimate_growth_rate(inputs), DEFAULT_TERMINAL_GROWTH, self._wacc(inputs))

    def run(
        self,
        financials: CompanyFinancials,
        assumptions: Optional[DCFAssumptions] = None,
    ) -> ComprehensiveValuation:
        inputs = ValuationInputs.from_financials(financials)
        if inputs.current_price <= 0:
            raise ValueError(f"No usable market price for {inputs.ticker}.")

        wacc = self._wacc(inputs)
        growth = estimate_growth_rate(inputs)
        dcf_assumptions = assumptions or DCFAssumptions(growth, DEFAULT_TERMINAL_GROWTH, wacc)
        logger.debug(
            "Valuing %s: growth=%.1f terminal=%.1f wacc=%.1f",
            inputs.ticker,
            dcf_assumptions.revenue_growth,
            dcf_assumptions.terminal_growth,
            dcf_assumptions.wacc,
        )

        methods = [
            dcf_method(inputs, dcf_assumptions),
            asset_method(inputs),
            lynch_method(inputs, growth),
            epv_method(inputs, wacc),
        ]
        if inputs.dividend_yield > DDM_MIN_YIELD:
            methods.append(ddm_method(inputs, wacc, inputs.dividend_growth or DEFAULT_DIVIDEND_GROWTH))
        methods.append(reverse_dcf_method(inputs, dcf_assumptions.wacc, dcf_assumptions.terminal_growth))
        if inputs.sector_type == SectorType.FINANCIAL and inputs.return_on_equity:
            methods.append(residual_income_method(inputs, wacc))
        if inputs.sector_type == SectorType.TECH_GROWTH:
            methods.append(rule_of_40_method(inputs))

        return synthesize(
            inputs,
            methods,
            wacc=wacc,
            warnings=financials.warnings,
            dcf_assumptions=dcf_assumptions,
        )
