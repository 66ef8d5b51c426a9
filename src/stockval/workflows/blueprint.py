"""Workflow blueprint describing analysis stages and their handlers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, TYPE_CHECKING

from stockval.workflows.nodes import (
    data_load,
    relative,
    sector_classify,
    technicals,
    valuation,
    writing,
)

if TYPE_CHECKING:
    from stockval.workflows.context import WorkflowContext
    from stockval.workflows.state import AnalysisState


@dataclass
class StageSpec:
    """Single LangGraph stage definition."""

    key: str
    description: str
    handler: Callable[["AnalysisState", "WorkflowContext"], "AnalysisState"]
    depends_on: List[str] = field(default_factory=list)


def build_default_stages() -> List[StageSpec]:
    """Return the ordered stages for the analysis workflow."""
    return [
        StageSpec(
            key="ingest_market_data",
            description="Fetch profile, statements and key statistics from the selected provider.",
            handler=data_load.run,
        ),
        StageSpec(
            key="classify_sector",
            description="Route the company to a sector bucket and seed DCF assumptions.",
            handler=sector_classify.run,
            depends_on=["ingest_market_data"],
        ),
        StageSpec(
            key="intrinsic_valuation",
            description="Run DCF, asset, Lynch, EPV, DDM and reverse DCF methods into one verdict.",
            handler=valuation.run,
            depends_on=["classify_sector"],
        ),
        StageSpec(
            key="relative_valuation",
            description="Price the company at sector average multiples.",
            handler=relative.run,
            depends_on=["ingest_market_data"],
        ),
        StageSpec(
            key="technical_analysis",
            description="Load price history for pivots, price zones, moving averages and RSI.",
            handler=technicals.run,
            depends_on=["ingest_market_data"],
        ),
        StageSpec(
            key="render_report",
            description="Render the Markdown valuation report from all upstream outputs.",
            handler=writing.run,
            depends_on=["intrinsic_valuation", "relative_valuation", "technical_analysis"],
        ),
    ]
