"""Sector-relative valuation: price a company at its sector's multiples."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from stockval.domain.models.financials import CompanyFinancials
from stockval.domain.models.valuation import (
    CompanyMetrics,
    Confidence,
    RelativeMethodResult,
    RelativeValuationResult,
    RelativeVerdict,
    SectorAverages,
)

SECTOR_AVERAGES: Dict[str, SectorAverages] = {
    "Technology": SectorAverages("Technology", 28, 24, 1.5, 18, 6, 8, 5),
    "Healthcare": SectorAverages("Healthcare", 22, 18, 1.8, 14, 4, 4, 3),
    "Financial Services": SectorAverages("Financial Services", 12, 10, 1.2, 8, 3, 1.2, 2),
    "Consumer Cyclical": SectorAverages("Consumer Cyclical", 18, 15, 1.5, 12, 1.5, 4, 1.2),
    "Consumer Defensive": SectorAverages("Consumer Defensive", 20, 18, 2.5, 14, 2, 5, 1.5),
    "Industrials": SectorAverages("Industrials", 18, 16, 1.8, 12, 2, 3.5, 1.5),
    "Energy": SectorAverages("Energy", 10, 8, 1.0, 5, 1, 1.5, 0.8),
    "Utilities": SectorAverages("Utilities", 16, 15, 3.0, 10, 2.5, 1.8, 2),
    "Real Estate": SectorAverages("Real Estate", 35, 30, 2.5, 18, 8, 2, 6),
    "Communication Services": SectorAverages("Communication Services", 20, 18, 1.5, 10, 3, 3, 2.5),
    "Basic Materials": SectorAverages("Basic Materials", 12, 10, 1.2, 7, 1.5, 2, 1),
}
DEFAULT_AVERAGES = SectorAverages("Market", 18, 16, 1.5, 12, 2.5, 3, 2)

UNDERVALUED_THRESHOLD = 15.0
OVERVALUED_THRESHOLD = -15.0


def calculate_harmonic_mean(values: Iterable[Optional[float]]) -> float:
    """Harmonic mean of the positive values; 0 when there are none."""
    valid = [float(v) for v in values if v is not None and v > 0]
    if not valid:
        return 0.0
    return len(valid) / sum(1.0 / v for v in valid)


def get_sector_averages(sector: Optional[str]) -> SectorAverages:
    return SECTOR_AVERAGES.get(sector or "", DEFAULT_AVERAGES)


def aggregate_peer_multiples(peers: Iterable[CompanyMetrics]) -> Dict[str, float]:
    peers = list(peers)
    return {
        "pe": calculate_harmonic_mean(p.pe_ratio for p in peers),
        "pb": calculate_harmonic_mean(p.price_to_book for p in peers),
        "ev_ebitda": calculate_harmonic_mean(p.ev_to_ebitda for p in peers),
        "ev_sales": calculate_harmonic_mean(p.ev_to_revenue for p in peers),
    }


def sector_averages_from_peers(sector: str, peers: Iterable[CompanyMetrics]) -> SectorAverages:
    """Build a baseline from a peer set, falling back to the static table where peers are silent."""
    peers = list(peers)
    fallback = get_sector_averages(sector)

    def pick(values: Iterable[float], default: float) -> float:
        value = calculate_harmonic_mean(values)
        return value if value > 0 else default

    return SectorAverages(
        sector=sector or fallback.sector,
        pe_ratio=pick((p.pe_ratio for p in peers), fallback.pe_ratio),
        forward_pe=pick((p.forward_pe for p in peers), fallback.forward_pe),
        peg_ratio=pick((p.peg_ratio for p in peers), fallback.peg_ratio),
        ev_to_ebitda=pick((p.ev_to_ebitda for p in peers), fallback.ev_to_ebitda),
        ev_to_revenue=pick((p.ev_to_revenue for p in peers), fallback.ev_to_revenue),
        price_to_book=pick((p.price_to_book for p in peers), fallback.price_to_book),
        price_to_sales=pick((p.price_to_sales for p in peers), fallback.price_to_sales),
    )


def _upside(fair_value: float, price: float) -> float:
    return (fair_value - price) / price * 100 if price > 0 else 0.0


def _per_share_from_ev(fair_ev: float, company: CompanyMetrics) -> float:
    if company.shares_outstanding <= 0:
        return 0.0
    return (fair_ev - company.net_debt) / company.shares_outstanding


def calculate_relative_valuation(
    company: CompanyMetrics,
    averages: Optional[SectorAverages] = None,
) -> RelativeValuationResult:
    """Triangulate fair value from six sector multiples."""
    averages = averages or get_sector_averages(company.sector)
    price = company.price
    rows: List[RelativeMethodResult] = []

    def add(method: str, company_multiple: float, sector_multiple: float, fair_value: float,
            weight: float, confidence: Confidence) -> None:
        rows.append(
            RelativeMethodResult(
                method=method,
                company_multiple=company_multiple,
                sector_multiple=sector_multiple,
                fair_value=fair_value,
                upside=_upside(fair_value, price),
                weight=weight,
                confidence=confidence,
            )
        )

    if company.eps > 0 and company.pe_ratio > 0:
        add(
            "P/E Ratio",
            company.pe_ratio,
            averages.pe_ratio,
            company.eps * averages.pe_ratio,
            0.25,
            Confidence.HIGH if company.earnings_growth > 0 else Confidence.MEDIUM,
        )

    if company.eps_forward > 0:
        add(
            "Forward P/E",
            company.forward_pe,
            averages.forward_pe,
            company.eps_forward * averages.forward_pe,
            0.20,
            Confidence.MEDIUM,
        )

    if company.peg_ratio > 0 and company.revenue_growth > 0:
        # A PEG of 1.0 is treated as fair.
        fair_value = company.eps * company.revenue_growth
        if fair_value > 0:
            add("PEG Ratio", company.peg_ratio, 1.0, fair_value, 0.15, Confidence.MEDIUM)

    if company.ebitda > 0 and company.ev_to_ebitda > 0:
        fair_value = _per_share_from_ev(company.ebitda * averages.ev_to_ebitda, company)
        if fair_value > 0:
            add("EV/EBITDA", company.ev_to_ebitda, averages.ev_to_ebitda, fair_value, 0.20, Confidence.HIGH)

    if company.revenue > 0:
        fair_value = _per_share_from_ev(company.revenue * averages.ev_to_revenue, company)
        if fair_value > 0:
            add(
                "EV/Sales",
                company.ev_to_revenue,
                averages.ev_to_revenue,
                fair_value,
                0.10,
                Confidence.HIGH if company.revenue_growth > 20 else Confidence.LOW,
            )

    if company.book_value_per_share > 0:
        add(
            "Price/Book",
            company.price_to_book,
            averages.price_to_book,
            company.book_value_per_share * averages.price_to_book,
            0.10,
            Confidence.MEDIUM,
        )

    simple_avg = sum(row.fair_value for row in rows) / len(rows) if rows else 0.0
    total_weight = sum(row.weight for row in rows)
    weighted_avg = sum(row.fair_value * row.weight for row in rows) / total_weight if total_weight > 0 else 0.0
    overall_upside = _upside(weighted_avg, price)

    if overall_upside > UNDERVALUED_THRESHOLD:
        verdict = RelativeVerdict.UNDERVALUED
    elif overall_upside < OVERVALUED_THRESHOLD:
        verdict = RelativeVerdict.OVERVALUED
    else:
        verdict = RelativeVerdict.FAIRLY_VALUED

    sector_premium = (
        (company.pe_ratio - averages.pe_ratio) / averages.pe_ratio * 100 if averages.pe_ratio > 0 else 0.0
    )

    return RelativeValuationResult(
        ticker=company.ticker,
        current_price=price,
        sector_averages=averages,
        valuations=rows,
        average_fair_value=round(simple_avg, 2),
        weighted_fair_value=round(weighted_avg, 2),
        overall_upside=round(overall_upside, 1),
        verdict=verdict,
        sector_premium=round(sector_premium, 1),
    )


def build_company_metrics(financials: CompanyFinancials) -> CompanyMetrics:
    """Derive relative-valuation inputs, computing a multiple when the provider omits it."""
    stats = financials.statistics
    market = financials.market
    latest = financials.latest
    price = market.price

    shares = financials.shares_outstanding
    revenue = stats.total_revenue if stats.total_revenue is not None else (latest.revenue if latest else 0.0)
    ebitda = stats.ebitda if stats.ebitda is not None else (latest.ebitda if latest else 0.0)
    net_debt = financials.net_debt
    enterprise_value = stats.enterprise_value or (market.market_cap + net_debt)
    eps = financials.eps
    eps_forward = stats.forward_eps or 0.0
    bvps = financials.book_value_per_share
    revenue_per_share = revenue / shares if shares > 0 else 0.0

    def ratio(reported: Optional[float], numerator: float, denominator: float) -> float:
        if reported:
            return float(reported)
        return numerator / denominator if denominator > 0 else 0.0

    return CompanyMetrics(
        ticker=market.ticker,
        price=price,
        sector=market.sector,
        industry=market.industry,
        eps=eps,
        eps_forward=eps_forward,
        book_value_per_share=bvps,
        revenue_per_share=revenue_per_share,
        ebitda=ebitda,
        market_cap=market.market_cap,
        enterprise_value=enterprise_value,
        revenue=revenue,
        shares_outstanding=shares,
        net_debt=net_debt,
        pe_ratio=ratio(stats.pe_ratio, price, eps),
        forward_pe=ratio(stats.forward_pe, price, eps_forward),
        peg_ratio=stats.peg_ratio or 0.0,
        ev_to_ebitda=ratio(stats.ev_to_ebitda, enterprise_value, ebitda),
        ev_to_revenue=ratio(stats.ev_to_revenue, enterprise_value, revenue),
        price_to_book=ratio(stats.price_to_book, price, bvps),
        price_to_sales=ratio(stats.price_to_sales, price, revenue_per_share),
        revenue_growth=stats.revenue_growth or 0.0,
        earnings_growth=stats.earnings_growth or 0.0,
    )
