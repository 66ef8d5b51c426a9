"""Technical indicator outputs."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class PivotLevels:
    """Classic floor-trader pivot with three resistance and three support levels."""

    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float

    def rounded(self, digits: int = 2) -> "PivotLevels":
        return PivotLevels(**{key: round(value, digits) for key, value in asdict(self).items()})


@dataclass(frozen=True)
class SupportResistance:
    support: List[float]
    resistance: List[float]
    pivots: PivotLevels


@dataclass(frozen=True)
class MovingAverages:
    sma20: Optional[float] = None
    sma50: Optional[float] = None
    sma200: Optional[float] = None
    ema12: Optional[float] = None
    ema26: Optional[float] = None


@dataclass(frozen=True)
class TechnicalSnapshot:
    ticker: str
    timeframe: str
    interval: str
    current_price: float
    data_points: int
    levels: SupportResistance
    moving_averages: MovingAverages = field(default_factory=MovingAverages)
    rsi: Optional[float] = None
    rsi_signal: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
