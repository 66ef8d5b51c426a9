"""Application-wide configuration defaults and helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Base directory for resolving relative paths.
BASE_DIR = Path(__file__).resolve().parent

PROVIDERS = ("yahoo", "fmp")


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse truthy environment values like '1' or 'true'."""
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _to_float(value: Optional[str], default: float) -> float:
    """Safely parse a float env var, falling back to ``default``."""
    if value is None:
        return default
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    debug: bool = False
    database_path: Path = BASE_DIR / "data" / "watchlist.db"
    sqlite_echo: bool = False
    data_provider: str = "yahoo"
    fmp_api_key: Optional[str] = None
    fmp_base_url: str = "https://financialmodelingprep.com/stable"
    proxy_url: Optional[str] = None
    http_timeout: float = 20.0
    risk_free_rate: float = 4.5
    equity_risk_premium: float = 5.5
    output_dir: Path = BASE_DIR / "reports"

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration instance using environment overrides."""
        provider = os.getenv("DATA_PROVIDER", "yahoo").strip().lower()
        if provider not in PROVIDERS:
            provider = "yahoo"

        return cls(
            debug=_to_bool(os.getenv("APP_DEBUG")),
            database_path=Path(os.getenv("STOCKVAL_DB_PATH", BASE_DIR / "data" / "watchlist.db")),
            sqlite_echo=_to_bool(os.getenv("SQLITE_ECHO")),
            data_provider=provider,
            fmp_api_key=os.getenv("FMP_API_KEY") or None,
            fmp_base_url=os.getenv("FMP_BASE_URL", "https://financialmodelingprep.com/stable"),
            proxy_url=os.getenv("PROXY_URL") or None,
            http_timeout=_to_float(os.getenv("HTTP_TIMEOUT"), 20.0),
            risk_free_rate=_to_float(os.getenv("RISK_FREE_RATE"), 4.5),
            equity_risk_premium=_to_float(os.getenv("EQUITY_RISK_PREMIUM"), 5.5),
            output_dir=Path(os.getenv("OUTPUT_DIR", BASE_DIR / "reports")),
        )

    def ensure_directories(self) -> None:
        """Create directories needed for runtime artifacts."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
