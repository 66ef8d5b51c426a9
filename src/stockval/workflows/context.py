"""Workflow dependency container."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from config import Config
from stockval.domain.services.comprehensive import ValuationEngine
from stockval.domain.services.technicals import TechnicalAnalyzer
from stockval.infrastructure.data_providers.base import MarketDataProvider


@dataclass
class WorkflowContext:
    """Holds heavy-weight dependencies shared by LangGraph nodes."""

    config: Config
    valuation_engine: ValuationEngine
    technical_analyzer: TechnicalAnalyzer
    providers: Dict[str, MarketDataProvider] = field(default_factory=dict)

    def provider_for(self, name: Optional[str]) -> Optional[MarketDataProvider]:
        """Resolve a provider by name, defaulting to the configured one."""
        return self.providers.get((name or self.config.data_provider).lower())

    def close(self) -> None:
        """Release any dependencies that need explicit cleanup."""
        for provider in self.providers.values():
            provider.close()
