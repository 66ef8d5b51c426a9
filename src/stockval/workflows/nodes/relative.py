"""LangGraph node comparing the company's multiples against its sector."""
from __future__ import annotations

from stockval.domain.services.relative_valuation import build_company_metrics, calculate_relative_valuation
from stockval.workflows.context import WorkflowContext
from stockval.workflows.state import AnalysisState


def run(state: AnalysisState, context: WorkflowContext) -> AnalysisState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    financials = state.get("financials")

    if financials is None:
        errors.append("RelativeAgent skipped because financials are missing.")
        return state

    logs.append("RelativeAgent -> price company at sector multiples")
    try:
        result = calculate_relative_valuation(build_company_metrics(financials))
    except Exception as exc:  # pylint: disable=broad-except
        errors.append(f"Relative valuation failed: {exc}")
        return state

    state["relative"] = result
    logs.append(
        f"Relative verdict {result.verdict.value} from {len(result.valuations)} methods "
        f"vs {result.sector_averages.sector} averages"
    )
    return state
