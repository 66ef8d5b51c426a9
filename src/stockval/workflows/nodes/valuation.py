"""LangGraph node for intrinsic valuation modelling."""
from __future__ import annotations

from dataclasses import replace

from stockval.domain.services.asset_valuation import calculate_graham_number, calculate_nnwc
from stockval.domain.services.valuation import EquityBridge, calculate_full_dcf
from stockval.workflows.context import WorkflowContext
from stockval.workflows.state import AnalysisState

_OVERRIDE_FIELDS = {"growth": "revenue_growth", "terminal_growth": "terminal_growth", "wacc": "wacc"}


def run(state: AnalysisState, context: WorkflowContext) -> AnalysisState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    financials = state.get("financials")

    if financials is None:
        errors.append("ValuationAgent skipped because prerequisites are missing.")
        return state

    engine = context.valuation_engine
    overrides = {
        _OVERRIDE_FIELDS[key]: float(value)
        for key, value in (state.get("assumption_overrides") or {}).items()
        if key in _OVERRIDE_FIELDS and value is not None
    }
    assumptions = replace(engine.base_assumptions(financials), **overrides) if overrides else None
    if overrides:
        logs.append(f"ValuationAgent -> applying user assumptions {overrides}")

    logs.append("ValuationAgent -> run DCF, asset and earnings based methods")
    try:
        valuation = engine.run(financials, assumptions)
    except Exception as exc:  # pylint: disable=broad-except
        errors.append(f"Valuation engine failed: {exc}")
        return state
    state["valuation"] = valuation
    # Assumptions the DCF method actually ran on.
    applied = valuation.dcf_assumptions
    state["applied_assumptions"] = applied

    latest = financials.latest
    metrics = {"graham_number": calculate_graham_number(financials.eps, financials.book_value_per_share)}
    if latest is not None:
        metrics["nnwc"] = calculate_nnwc(latest)
        if applied is not None:
            bridge = EquityBridge(
                free_cash_flow=latest.free_cash_flow,
                shares_outstanding=financials.shares_outstanding,
                cash=latest.cash,
                short_term_investments=latest.short_term_investments,
                long_term_investments=latest.long_term_investments,
                total_debt=latest.total_debt,
            )
            metrics["full_dcf"] = calculate_full_dcf(applied, bridge)
    state["asset_metrics"] = {key: round(value, 2) for key, value in metrics.items()}
    return state
