"""LangGraph node for price-history indicators."""
from __future__ import annotations

from stockval.workflows.context import WorkflowContext
from stockval.workflows.state import AnalysisState


def run(state: AnalysisState, context: WorkflowContext) -> AnalysisState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])

    if not state.get("include_technicals", True):
        logs.append("TechnicalsAgent -> skipped on request")
        return state
    if state.get("financials") is None:
        errors.append("TechnicalsAgent skipped because financials are missing.")
        return state

    provider = context.provider_for(state.get("provider"))
    if provider is None:
        errors.append("TechnicalsAgent skipped because no data provider is available.")
        return state

    ticker = state["ticker"]
    timeframe = state.get("timeframe") or "1Y"
    logs.append(f"TechnicalsAgent -> load {timeframe} candles for {ticker}")
    try:
        candles = provider.fetch_price_history(ticker, timeframe)
        state["technicals"] = context.technical_analyzer.analyze(ticker, candles, timeframe)
    except Exception as exc:  # pylint: disable=broad-except
        errors.append(f"Technical analysis failed: {exc}")
    return state
