from __future__ import annotations

import pytest

from stockval.domain.models.financials import SectorType
from stockval.domain.models.valuation import ValuationModelType
from stockval.domain.services.switchboard import detect_sector, get_valuation_config


@pytest.mark.parametrize(
    "sector, industry, expected",
    [
        ("Financial Services", "Banks - Regional", SectorType.FINANCIAL),
        ("Financial Services", "REIT - Mortgage", SectorType.FINANCIAL),
        ("Real Estate", "REIT - Retail", SectorType.REIT),
        ("Healthcare", "Biotechnology", SectorType.BIOTECH),
        ("Healthcare", "Drug Manufacturers - Specialty & Generic Pharmaceutical", SectorType.BIOTECH),
        ("Technology", "Consumer Electronics", SectorType.TECH_GROWTH),
        ("Communication Services", "Internet Content & Information", SectorType.TECH_GROWTH),
        ("Energy", "Oil & Gas E&P", SectorType.CYCLICAL),
        ("Basic Materials", "Gold", SectorType.CYCLICAL),
        ("Industrials", "Other Industrial Metals & Mining", SectorType.CYCLICAL),
        ("Consumer Defensive", "Beverages - Non-Alcoholic", SectorType.GENERAL),
        (None, None, SectorType.GENERAL),
    ],
)
def test_detect_sector(sector, industry, expected):
    assert detect_sector(sector, industry) == expected


def test_detect_sector_is_case_insensitive():
    assert detect_sector("TECHNOLOGY", "") == SectorType.TECH_GROWTH
    assert detect_sector("", "software - infrastructure") == SectorType.TECH_GROWTH


def test_every_sector_type_has_a_config():
    for sector_type in SectorType:
        config = get_valuation_config(sector_type)
        assert config.sector_type == sector_type


def test_model_choices_and_caveats():
    financial = get_valuation_config(SectorType.FINANCIAL)
    assert financial.primary_model == ValuationModelType.RESIDUAL_INCOME
    assert financial.secondary_model == ValuationModelType.PRICE_TO_BOOK
    assert "DCF is unreliable" in financial.warnings[0]

    tech = get_valuation_config(SectorType.TECH_GROWTH)
    assert tech.primary_model == ValuationModelType.DCF_GROWTH
    assert "Rule of 40" in tech.warnings[0]

    general = get_valuation_config(SectorType.GENERAL)
    assert general.primary_model == ValuationModelType.DCF_STANDARD
    assert general.secondary_model == ValuationModelType.EV_EBITDA
    assert general.warnings == []
