"""Workflow state definitions shared by LangGraph nodes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from stockval.domain.models.financials import CompanyFinancials
from stockval.domain.models.technicals import TechnicalSnapshot
from stockval.domain.models.valuation import (
    ComprehensiveValuation,
    DCFAssumptions,
    RelativeValuationResult,
    ValuationModelConfig,
)


class AnalysisState(TypedDict, total=False):
    ticker: str
    company_name: Optional[str]
    provider: str
    report_date: str
    timeframe: str
    include_technicals: bool
    assumption_overrides: Dict[str, float]

    financials: Optional[CompanyFinancials]
    model_config: Optional[ValuationModelConfig]
    suggested_assumptions: Optional[DCFAssumptions]
    applied_assumptions: Optional[DCFAssumptions]
    sensitivity: Optional[List[Dict[str, float]]]
    asset_metrics: Optional[Dict[str, float]]
    valuation: Optional[ComprehensiveValuation]
    relative: Optional[RelativeValuationResult]
    technicals: Optional[TechnicalSnapshot]
    markdown_report: Optional[str]
    stage_order: List[str]

    logs: List[str]
    errors: List[str]

    extras: Dict[str, Any]
