"""LangGraph node that routes the company through the sector switchboard and seeds DCF inputs."""
from __future__ import annotations

from stockval.domain.services.switchboard import get_valuation_config
from stockval.domain.services.valuation import calculate_sensitivity_table, default_assumptions
from stockval.workflows.context import WorkflowContext
from stockval.workflows.state import AnalysisState


def run(state: AnalysisState, context: WorkflowContext) -> AnalysisState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    financials = state.get("financials")

    if financials is None:
        errors.append("SectorAgent skipped because financials are missing.")
        return state

    model_config = get_valuation_config(financials.sector_type)
    state["model_config"] = model_config
    logs.append(
        f"SectorAgent -> {financials.sector_type.value}: primary {model_config.primary_model.value}, "
        f"secondary {model_config.secondary_model.value}"
    )

    suggested = default_assumptions(
        financials,
        risk_free_rate=context.config.risk_free_rate,
        equity_risk_premium=context.config.equity_risk_premium,
    )
    state["suggested_assumptions"] = suggested
    state["sensitivity"] = calculate_sensitivity_table(
        financials.fcf_per_share,
        suggested.terminal_growth,
        center_wacc=suggested.wacc,
        center_growth=suggested.revenue_growth,
    )
    return state
