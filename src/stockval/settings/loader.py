"""Settings helpers to centralize configuration access."""
from __future__ import annotations

from typing import Optional

from config import PROVIDERS, Config


def load_settings(
    debug_override: Optional[bool] = None,
    provider_override: Optional[str] = None,
) -> Config:
    """Return a Config instance, applying optional runtime overrides."""
    config = Config.from_env()
    if debug_override is not None:
        config.debug = debug_override
    if provider_override is not None:
        provider = provider_override.strip().lower()
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown data provider '{provider_override}'; choose from {', '.join(PROVIDERS)}.")
        config.data_provider = provider
    config.ensure_directories()
    return config
