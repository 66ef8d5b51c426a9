"""LangGraph workflow assembly for the end-to-end valuation pipeline."""
from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from langgraph.graph import END, StateGraph

from config import Config
from stockval.domain.services.comprehensive import ValuationEngine
from stockval.domain.services.technicals import DEFAULT_TIMEFRAME, TechnicalAnalyzer
from stockval.infrastructure.data_providers.base import MarketDataProvider
from stockval.infrastructure.data_providers.fmp_client import FMPClient
from stockval.infrastructure.data_providers.yahoo_client import YahooFinanceClient
from stockval.workflows import context as context_module
from stockval.workflows.blueprint import StageSpec, build_default_stages
from stockval.workflows.state import AnalysisState


class ValuationWorkflow:
    """Compose LangGraph nodes into a runnable workflow."""

    def __init__(
        self,
        config: Config,
        *,
        providers: Optional[Dict[str, MarketDataProvider]] = None,
    ) -> None:
        self._config = config
        self._context = self._build_context(providers)
        self._stages: List[StageSpec] = build_default_stages()
        self._graph = self._build_graph()

    @property
    def context(self) -> context_module.WorkflowContext:
        return self._context

    def _build_context(
        self,
        providers: Optional[Dict[str, MarketDataProvider]],
    ) -> context_module.WorkflowContext:
        if providers is None:
            providers = {"yahoo": YahooFinanceClient(proxy_url=self._config.proxy_url)}
            try:
                providers["fmp"] = FMPClient(
                    self._config.fmp_api_key,
                    base_url=self._config.fmp_base_url,
                    proxy_url=self._config.proxy_url,
                    timeout=self._config.http_timeout,
                )
            except ValueError:
                pass

        return context_module.WorkflowContext(
            config=self._config,
            valuation_engine=ValuationEngine(
                risk_free_rate=self._config.risk_free_rate,
                equity_risk_premium=self._config.equity_risk_premium,
            ),
            technical_analyzer=TechnicalAnalyzer(),
            providers=providers,
        )

    def _build_graph(self):
        builder = StateGraph(dict)

        if not self._stages:
            raise RuntimeError("Workflow blueprint is empty; cannot build LangGraph.")

        for stage in self._stages:
            builder.add_node(stage.key, self._wrap(stage.handler))

        # Serialize execution in declared stage order to avoid concurrent state writes.
        builder.set_entry_point(self._stages[0].key)
        for current, nxt in zip(self._stages, self._stages[1:]):
            builder.add_edge(current.key, nxt.key)
        builder.add_edge(self._stages[-1].key, END)

        return builder.compile(checkpointer=None)

    def _wrap(self, func: Callable[[AnalysisState, context_module.WorkflowContext], AnalysisState]):
        def wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            return func(state, self._context)

        return wrapper

    def run(
        self,
        ticker: str,
        *,
        provider: Optional[str] = None,
        timeframe: str = DEFAULT_TIMEFRAME,
        include_technicals: bool = True,
        assumption_overrides: Optional[Dict[str, float]] = None,
    ) -> AnalysisState:
        """Execute the workflow for a single ticker."""
        initial_state: AnalysisState = {
            "ticker": ticker.strip().upper(),
            "provider": (provider or self._config.data_provider).lower(),
            "report_date": datetime.now(timezone.utc).date().isoformat(),
            "timeframe": timeframe,
            "include_technicals": include_technicals,
            "logs": [],
            "errors": [],
            "extras": {},
            "stage_order": [stage.key for stage in self._stages],
        }
        if assumption_overrides:
            initial_state["assumption_overrides"] = assumption_overrides
        result: AnalysisState = self._graph.invoke(initial_state)
        return result  # type: ignore[return-value]

    def persist_state(self, state: AnalysisState, path: Path) -> None:
        """Serialize the workflow state to disk for debugging or auditing."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state, default=_json_serializer, indent=2, ensure_ascii=False)
        path.write_text(payload, encoding="utf-8")

    def persist_markdown(self, markdown: str, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(markdown, encoding="utf-8")

    def describe_stages(self) -> List[str]:
        """Return human-readable workflow stage descriptions."""
        return [f"{stage.key}: {stage.description}" for stage in self._stages]

    def close(self) -> None:
        self._context.close()


def _json_serializer(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "tolist"):
        return value.tolist()
    return str(value)
