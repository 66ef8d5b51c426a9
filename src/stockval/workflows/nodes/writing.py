"""LangGraph node responsible for final Markdown assembly."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from stockval.reports.renderer import ReportRenderer
from stockval.workflows.context import WorkflowContext
from stockval.workflows.state import AnalysisState

_TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "reports" / "templates"


def run(state: AnalysisState, context: WorkflowContext) -> AnalysisState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])

    logs.append("WritingAgent -> render Markdown output")

    renderer = ReportRenderer(template_dir=_TEMPLATE_DIR)
    valuation = state.get("valuation")
    warnings = list(valuation.warnings) if valuation is not None else []
    if valuation is None and state.get("financials") is not None:
        warnings.extend(state["financials"].warnings)

    render_context = {
        "ticker": state.get("ticker"),
        "company_name": state.get("company_name"),
        "provider": state.get("provider") or context.config.data_provider,
        "report_date": state.get("report_date", datetime.now(timezone.utc).date().isoformat()),
        "report_timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "valuation": valuation,
        "assumptions": state.get("applied_assumptions"),
        "asset_metrics": state.get("asset_metrics") or {},
        "relative": state.get("relative"),
        "technicals": state.get("technicals"),
        "warnings": warnings,
        "errors": list(errors),
    }

    try:
        state["markdown_report"] = renderer.render(render_context)
    except Exception as exc:  # pylint: disable=broad-except
        errors.append(f"Markdown render failed: {exc}")
    return state
