"""Domain models describing the normalized company data consumed by the valuation core."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class SectorType(str, Enum):
    """Coarse sector buckets used to pick valuation models."""

    FINANCIAL = "FINANCIAL"
    REIT = "REIT"
    TECH_GROWTH = "TECH_GROWTH"
    BIOTECH = "BIOTECH"
    CYCLICAL = "CYCLICAL"
    GENERAL = "GENERAL"


@dataclass(frozen=True)
class FinancialStatementSnapshot:
    """One annual period of income statement, balance sheet and cash flow figures.

    Missing line items are stored as ``0.0`` so arithmetic never meets ``None``.
    """

    period: date
    # Income statement
    revenue: float = 0.0
    cost_of_revenue: float = 0.0
    gross_profit: float = 0.0
    operating_income: float = 0.0
    ebitda: float = 0.0
    net_income: float = 0.0
    eps: float = 0.0
    # Balance sheet
    cash: float = 0.0
    short_term_investments: float = 0.0
    long_term_investments: float = 0.0
    receivables: float = 0.0
    inventory: float = 0.0
    total_debt: float = 0.0
    total_assets: float = 0.0
    total_liabilities: float = 0.0
    total_equity: float = 0.0
    shares_outstanding: float = 0.0
    # Cash flow
    operating_cash_flow: float = 0.0
    capital_expenditure: float = 0.0
    free_cash_flow: float = 0.0
    dividends_paid: float = 0.0


@dataclass(frozen=True)
class MarketSnapshot:
    """Quote level data for a single ticker."""

    ticker: str
    price: float
    currency: str = "USD"
    market_cap: float = 0.0
    beta: float = 1.0
    sector: str = ""
    industry: str = ""
    company_name: Optional[str] = None


@dataclass(frozen=True)
class KeyStatistics:
    """Provider supplied trailing figures; ``None`` marks a value the provider did not send.

    Percent-style fields (growth, yield, ROE) are expressed in percent, e.g. ``12.5``.
    """

    trailing_eps: Optional[float] = None
    forward_eps: Optional[float] = None
    book_value_per_share: Optional[float] = None
    pe_ratio: Optional[float] = None
    forward_pe: Optional[float] = None
    peg_ratio: Optional[float] = None
    ev_to_ebitda: Optional[float] = None
    ev_to_revenue: Optional[float] = None
    price_to_book: Optional[float] = None
    price_to_sales: Optional[float] = None
    enterprise_value: Optional[float] = None
    dividend_per_share: Optional[float] = None
    dividend_yield: Optional[float] = None
    revenue_growth: Optional[float] = None
    earnings_growth: Optional[float] = None
    analyst_growth_estimate: Optional[float] = None
    return_on_equity: Optional[float] = None
    profit_margin: Optional[float] = None
    free_cash_flow: Optional[float] = None
    ebitda: Optional[float] = None
    total_revenue: Optional[float] = None
    total_cash: Optional[float] = None
    total_debt: Optional[float] = None
    shares_outstanding: Optional[float] = None


@dataclass(frozen=True)
class CompanyFinancials:
    """Everything the valuation core needs for one ticker, newest statement first."""

    market: MarketSnapshot
    statistics: KeyStatistics = field(default_factory=KeyStatistics)
    history: List[FinancialStatementSnapshot] = field(default_factory=list)
    sector_type: SectorType = SectorType.GENERAL
    warnings: List[str] = field(default_factory=list)

    @property
    def ticker(self) -> str:
        return self.market.ticker

    @property
    def latest(self) -> Optional[FinancialStatementSnapshot]:
        return self.history[0] if self.history else None

    @property
    def shares_outstanding(self) -> float:
        if self.statistics.shares_outstanding:
            return float(self.statistics.shares_outstanding)
        if self.latest is not None and self.latest.shares_outstanding > 0:
            return self.latest.shares_outstanding
        if self.market.price > 0 and self.market.market_cap > 0:
            return self.market.market_cap / self.market.price
        return 0.0

    @property
    def eps(self) -> float:
        if self.statistics.trailing_eps is not None:
            return float(self.statistics.trailing_eps)
        return self.latest.eps if self.latest is not None else 0.0

    @property
    def book_value_per_share(self) -> float:
        if self.statistics.book_value_per_share is not None:
            return float(self.statistics.book_value_per_share)
        shares = self.shares_outstanding
        if self.latest is None or shares <= 0:
            return 0.0
        return self.latest.total_equity / shares

    @property
    def free_cash_flow(self) -> float:
        if self.statistics.free_cash_flow is not None:
            return float(self.statistics.free_cash_flow)
        return self.latest.free_cash_flow if self.latest is not None else 0.0

    @property
    def fcf_per_share(self) -> float:
        shares = self.shares_outstanding
        return self.free_cash_flow / shares if shares > 0 else 0.0

    @property
    def net_debt(self) -> float:
        debt = self.statistics.total_debt
        cash = self.statistics.total_cash
        if debt is None:
            debt = self.latest.total_debt if self.latest is not None else 0.0
        if cash is None:
            cash = self.latest.cash if self.latest is not None else 0.0
        return float(debt) - float(cash)

    def revenue_history(self) -> List[float]:
        """Revenue per period, newest first."""
        return [snapshot.revenue for snapshot in self.history]
