"""LangGraph node for loading company data from the configured market data provider."""
from __future__ import annotations

from stockval.workflows.context import WorkflowContext
from stockval.workflows.state import AnalysisState


def run(state: AnalysisState, context: WorkflowContext) -> AnalysisState:
    """Populate the workflow state with normalized company financials."""
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    ticker = state["ticker"]
    provider_name = state.get("provider") or context.config.data_provider

    provider = context.provider_for(provider_name)
    if provider is None:
        errors.append(f"Data provider '{provider_name}' is unavailable (missing API key?).")
        return state

    logs.append(f"DataLoadAgent -> fetch {ticker} from {provider.name}")
    try:
        financials = provider.fetch_company(ticker)
    except Exception as exc:  # pylint: disable=broad-except
        errors.append(f"{provider.name} fetch failed: {exc}")
        return state

    state["financials"] = financials
    state["company_name"] = state.get("company_name") or financials.market.company_name
    logs.append(
        f"Loaded {len(financials.history)} annual periods; price {financials.market.price:.2f} "
        f"{financials.market.currency}"
    )
    for warning in financials.warnings:
        logs.append(f"DataLoadAgent warning: {warning}")
    return state
