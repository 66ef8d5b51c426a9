"""Convenience re-exports for workflow nodes."""
from __future__ import annotations

from . import (
    data_load,
    relative,
    sector_classify,
    technicals,
    valuation,
    writing,
)

__all__ = [
    "data_load",
    "relative",
    "sector_classify",
    "technicals",
    "valuation",
    "writing",
]
