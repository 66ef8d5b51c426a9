"""Sector switchboard: map provider sector/industry labels onto valuation model choices."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from stockval.domain.models.financials import SectorType
from stockval.domain.models.valuation import ValuationModelConfig, ValuationModelType

Rule = Tuple[Callable[[str, str], bool], SectorType]


def _contains_any(text: str, needles: Tuple[str, ...]) -> bool:
    return any(needle in text for needle in needles)


# Evaluated top to bottom; first match wins.
_RULES: List[Rule] = [
    (lambda sector, industry: _contains_any(sector, ("financial", "bank", "insurance")), SectorType.FINANCIAL),
    (lambda sector, industry: "real estate" in sector or "reit" in industry, SectorType.REIT),
    (lambda sector, industry: _contains_any(industry, ("biotechnology", "pharmaceutical")), SectorType.BIOTECH),
    (
        lambda sector, industry: "technology" in sector or _contains_any(industry, ("software", "internet")),
        SectorType.TECH_GROWTH,
    ),
    (
        lambda sector, industry: _contains_any(sector, ("energy", "basic materials"))
        or _contains_any(industry, ("oil", "mining")),
        SectorType.CYCLICAL,
    ),
]

_CONFIGS: Dict[SectorType, ValuationModelConfig] = {
    SectorType.FINANCIAL: ValuationModelConfig(
        sector_type=SectorType.FINANCIAL,
        primary_model=ValuationModelType.RESIDUAL_INCOME,
        secondary_model=ValuationModelType.PRICE_TO_BOOK,
        warnings=["DCF is unreliable for banks due to nature of cash flow. Using RIM & P/B."],
    ),
    SectorType.REIT: ValuationModelConfig(
        sector_type=SectorType.REIT,
        primary_model=ValuationModelType.NAV,
        secondary_model=ValuationModelType.PRICE_TO_FFO,
        warnings=["Net Income is distorted by depreciation. Using FFO/AFFO logic."],
    ),
    SectorType.TECH_GROWTH: ValuationModelConfig(
        sector_type=SectorType.TECH_GROWTH,
        primary_model=ValuationModelType.DCF_GROWTH,
        secondary_model=ValuationModelType.EV_SALES,
        warnings=["High reliance on future growth. Check Rule of 40."],
    ),
    SectorType.BIOTECH: ValuationModelConfig(
        sector_type=SectorType.BIOTECH,
        primary_model=ValuationModelType.R_NPV,
        secondary_model=ValuationModelType.CASH_BURN,
        warnings=["Valuation depends heavily on clinical trial success probability."],
    ),
    SectorType.CYCLICAL: ValuationModelConfig(
        sector_type=SectorType.CYCLICAL,
        primary_model=ValuationModelType.NORMALIZED_DCF,
        secondary_model=ValuationModelType.PE_AVG,
        warnings=["Cyclical peak/trough detected. Using normalized 5-10y earnings."],
    ),
    SectorType.GENERAL: ValuationModelConfig(
        sector_type=SectorType.GENERAL,
        primary_model=ValuationModelType.DCF_STANDARD,
        secondary_model=ValuationModelType.EV_EBITDA,
    ),
}


def detect_sector(sector: Optional[str], industry: Optional[str]) -> SectorType:
    """Classify a company from free-text provider labels (case-insensitive)."""
    sector_text = (sector or "").lower()
    industry_text = (industry or "").lower()
    for predicate, sector_type in _RULES:
        if predicate(sector_text, industry_text):
            return sector_type
    return SectorType.GENERAL


def get_valuation_config(sector_type: SectorType) -> ValuationModelConfig:
    return _CONFIGS[sector_type]
