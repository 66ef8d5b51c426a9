"""Value objects produced by the valuation services."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from stockval.domain.models.financials import SectorType


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Verdict(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


class RelativeVerdict(str, Enum):
    UNDERVALUED = "UNDERVALUED"
    FAIRLY_VALUED = "FAIRLY_VALUED"
    OVERVALUED = "OVERVALUED"


class ValuationModelType(str, Enum):
    DCF_STANDARD = "DCF_STANDARD"
    DCF_GROWTH = "DCF_GROWTH"
    NORMALIZED_DCF = "NORMALIZED_DCF"
    RESIDUAL_INCOME = "RESIDUAL_INCOME"
    PRICE_TO_BOOK = "PRICE_TO_BOOK"
    NAV = "NAV"
    PRICE_TO_FFO = "PRICE_TO_FFO"
    R_NPV = "R_NPV"
    CASH_BURN = "CASH_BURN"
    EV_SALES = "EV_SALES"
    EV_EBITDA = "EV_EBITDA"
    PE_AVG = "PE_AVG"


@dataclass(frozen=True)
class DCFAssumptions:
    """Growth and discount inputs for the five-year DCF, all in percent."""

    revenue_growth: float
    terminal_growth: float = 2.5
    wacc: float = 10.0

    @property
    def is_valid(self) -> bool:
        return self.wacc > 0 and self.wacc > self.terminal_growth


@dataclass(frozen=True)
class ValuationModelConfig:
    """Primary/secondary models and caveats for a sector bucket."""

    sector_type: SectorType
    primary_model: ValuationModelType
    secondary_model: ValuationModelType
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ValuationMethodResult:
    """Outcome of one valuation method.

    A fair value of ``0`` means the method does not apply; ``not_applicable_reason``
    says why when the builder knows.
    """

    method: str
    fair_value: float
    upside: float = 0.0
    confidence: Confidence = Confidence.MEDIUM
    details: str = ""
    assumptions: Dict[str, Any] = field(default_factory=dict)
    not_applicable_reason: Optional[str] = None

    @classmethod
    def not_applicable(cls, method: str, reason: str) -> "ValuationMethodResult":
        return cls(
            method=method,
            fair_value=0.0,
            confidence=Confidence.LOW,
            details=reason,
            not_applicable_reason=reason,
        )

    @property
    def applicable(self) -> bool:
        return self.not_applicable_reason is None and self.fair_value > 0

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["confidence"] = self.confidence.value
        return payload


@dataclass(frozen=True)
class ComprehensiveValuation:
    """Synthesis of every applicable intrinsic method for one ticker."""

    ticker: str
    current_price: float
    methods: List[ValuationMethodResult]
    average_fair_value: float
    simple_average_fair_value: float
    median_fair_value: float
    conservative_fair_value: float
    upside: float
    verdict: Verdict
    implied_growth: float
    wacc: float
    sector_type: SectorType = SectorType.GENERAL
    model_config: Optional[ValuationModelConfig] = None
    dcf_assumptions: Optional[DCFAssumptions] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def applicable_methods(self) -> List[ValuationMethodResult]:
        return [method for method in self.methods if method.applicable]

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["verdict"] = self.verdict.value
        payload["sector_type"] = self.sector_type.value
        payload["methods"] = [method.to_dict() for method in self.methods]
        return payload


@dataclass(frozen=True)
class SectorAverages:
    """Baseline multiples a company is compared against."""

    sector: str
    pe_ratio: float
    forward_pe: float
    peg_ratio: float
    ev_to_ebitda: float
    ev_to_revenue: float
    price_to_book: float
    price_to_sales: float


@dataclass(frozen=True)
class CompanyMetrics:
    """Per-share figures and trailing multiples for relative valuation."""

    ticker: str
    price: float
    sector: str = ""
    industry: str = ""
    eps: float = 0.0
    eps_forward: float = 0.0
    book_value_per_share: float = 0.0
    revenue_per_share: float = 0.0
    ebitda: float = 0.0
    market_cap: float = 0.0
    enterprise_value: float = 0.0
    revenue: float = 0.0
    shares_outstanding: float = 0.0
    net_debt: float = 0.0
    pe_ratio: float = 0.0
    forward_pe: float = 0.0
    peg_ratio: float = 0.0
    ev_to_ebitda: float = 0.0
    ev_to_revenue: float = 0.0
    price_to_book: float = 0.0
    price_to_sales: float = 0.0
    revenue_growth: float = 0.0
    earnings_growth: float = 0.0


@dataclass(frozen=True)
class RelativeMethodResult:
    method: str
    company_multiple: float
    sector_multiple: float
    fair_value: float
    upside: float
    weight: float
    confidence: Confidence


@dataclass(frozen=True)
class RelativeValuationResult:
    ticker: str
    current_price: float
    sector_averages: SectorAverages
    valuations: List[RelativeMethodResult]
    average_fair_value: float
    weighted_fair_value: float
    overall_upside: float
    verdict: RelativeVerdict
    sector_premium: float

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["verdict"] = self.verdict.value
        for row, method in zip(payload["valuations"], self.valuations):
            row["confidence"] = method.confidence.value
        return payload
