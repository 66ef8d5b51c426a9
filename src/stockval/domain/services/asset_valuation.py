"""Balance-sheet anchored valuation: Graham Number, NNWC and the REIT override."""
from __future__ import annotations

import math

from stockval.domain.models.financials import FinancialStatementSnapshot, SectorType

GRAHAM_MULTIPLIER = 22.5
REIT_BOOK_PREMIUM = 1.1


def calculate_graham_number(eps: float, book_value_per_share: float) -> float:
    """sqrt(22.5 * EPS * BVPS); 0 when either input is negative."""
    if eps < 0 or book_value_per_share < 0:
        return 0.0
    return math.sqrt(GRAHAM_MULTIPLIER * eps * book_value_per_share)


def calculate_nnwc(snapshot: FinancialStatementSnapshot) -> float:
    """Net-net working capital per share (Graham's liquidation floor)."""
    if snapshot.shares_outstanding <= 0:
        return 0.0
    liquid = snapshot.cash + 0.75 * snapshot.receivables + 0.5 * snapshot.inventory
    return max(0.0, (liquid - snapshot.total_liabilities) / snapshot.shares_outstanding)


def calculate_asset_value(eps: float, book_value_per_share: float, sector_type: SectorType) -> float:
    """Sector-aware asset value; REITs use book value with a small NAV premium."""
    if sector_type == SectorType.REIT:
        return max(0.0, book_value_per_share * REIT_BOOK_PREMIUM)
    return calculate_graham_number(eps, book_value_per_share)
