"""Provider payload -> domain model normalization.

This is the only place that knows provider field names. Yahoo (yfinance) hands us
statement DataFrames indexed by line item with one column per period; FMP hands us
JSON records with camelCase keys and sometimes wraps single objects in a list.
Both are merged per period and picked through alias lists, newest period first.
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from stockval.domain.models.financials import (
    CompanyFinancials,
    FinancialStatementSnapshot,
    KeyStatistics,
    MarketSnapshot,
)
from stockval.domain.services.switchboard import detect_sector
from stockval.infrastructure.data_providers.base import CANDLE_COLUMNS

logger = logging.getLogger(__name__)

MAX_PERIODS = 4
DEFAULT_BETA = 1.0

YAHOO_STATEMENT_FIELDS: Dict[str, List[str]] = {
    "revenue": ["Total Revenue", "Operating Revenue"],
    "cost_of_revenue": ["Cost Of Revenue", "Reconciled Cost Of Revenue"],
    "gross_profit": ["Gross Profit"],
    "operating_income": ["Operating Income", "Total Operating Income As Reported"],
    "ebitda": ["EBITDA", "Normalized EBITDA"],
    "net_income": ["Net Income Common Stockholders", "Net Income"],
    "eps": ["Basic EPS", "Diluted EPS"],
    "cash": ["Cash And Cash Equivalents", "Cash Financial"],
    "short_term_investments": ["Other Short Term Investments", "Short Term Investments"],
    "long_term_investments": ["Long Term Equity Investment", "Investments And Advances"],
    "receivables": ["Accounts Receivable", "Receivables"],
    "inventory": ["Inventory"],
    "total_debt": ["Total Debt"],
    "total_assets": ["Total Assets"],
    "total_liabilities": ["Total Liabilities Net Minority Interest", "Total Liabilities"],
    "total_equity": ["Common Stock Equity", "Stockholders Equity"],
    "shares_outstanding": ["Ordinary Shares Number", "Share Issued"],
    "operating_cash_flow": ["Operating Cash Flow", "Cash Flow From Continuing Operating Activities"],
    "capital_expenditure": ["Capital Expenditure"],
    "free_cash_flow": ["Free Cash Flow"],
    "dividends_paid": ["Cash Dividends Paid", "Common Stock Dividend Paid"],
}

FMP_STATEMENT_FIELDS: Dict[str, List[str]] = {
    "revenue": ["revenue"],
    "cost_of_revenue": ["costOfRevenue"],
    "gross_profit": ["grossProfit"],
    "operating_income": ["operatingIncome"],
    "ebitda": ["ebitda"],
    "net_income": ["netIncome"],
    "eps": ["eps", "epsDiluted", "epsdiluted"],
    "cash": ["cashAndCashEquivalents"],
    "short_term_investments": ["shortTermInvestments"],
    "long_term_investments": ["longTermInvestments"],
    "receivables": ["netReceivables", "accountsReceivables"],
    "inventory": ["inventory"],
    "total_debt": ["totalDebt"],
    "total_assets": ["totalAssets"],
    "total_liabilities": ["totalLiabilities"],
    "total_equity": ["totalStockholdersEquity", "totalEquity"],
    "shares_outstanding": ["weightedAverageShsOut", "weightedAverageShsOutDil"],
    "operating_cash_flow": ["operatingCashFlow", "netCashProvidedByOperatingActivities"],
    "capital_expenditure": ["capitalExpenditure"],
    "free_cash_flow": ["freeCashFlow"],
    "dividends_paid": ["commonDividendsPaid", "netDividendsPaid", "dividendsPaid"],
}


# -----------------
# Primitive helpers
# -----------------


def _to_float(value: Any) -> Optional[float]:
    """Coerce provider numbers; ``None`` for blanks, NaN and junk."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _pick(record: Mapping[str, Any], aliases: Sequence[str]) -> Optional[float]:
    for key in aliases:
        value = _to_float(record.get(key))
        if value is not None:
            return value
    return None


def _percent(value: Any) -> Optional[float]:
    """Fraction (0.12) -> percent (12.0)."""
    parsed = _to_float(value)
    return None if parsed is None else parsed * 100


def _safe_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _first_record(payload: Any) -> Dict[str, Any]:
    """FMP returns either an object or a one-element list for the same endpoint."""
    if isinstance(payload, list):
        return dict(payload[0]) if payload and isinstance(payload[0], Mapping) else {}
    if isinstance(payload, Mapping):
        return dict(payload)
    return {}


def _as_records(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return [dict(item) for item in payload if isinstance(item, Mapping)]
    if isinstance(payload, Mapping):
        return [dict(payload)]
    return []


def _records_from_frame(frame: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    """yfinance statement frame (line items x periods) -> one record per period."""
    if frame is None or frame.empty:
        return []
    records: List[Dict[str, Any]] = []
    for column in frame.columns:
        record: Dict[str, Any] = {"date": column}
        record.update(frame[column].to_dict())
        records.append(record)
    return records


# -----------------
# Statement history
# -----------------


def _merge_by_period(*groups: Iterable[Dict[str, Any]]) -> Dict[date, Dict[str, Any]]:
    merged: Dict[date, Dict[str, Any]] = {}
    for records in groups:
        for record in records:
            period = _safe_date(record.get("date"))
            if period is None:
                continue
            bucket = merged.setdefault(period, {})
            for key, value in record.items():
                if key not in bucket or _to_float(bucket.get(key)) is None:
                    bucket[key] = value
    return merged


def build_history(
    merged: Dict[date, Dict[str, Any]],
    fields: Mapping[str, Sequence[str]],
    *,
    limit: int = MAX_PERIODS,
) -> List[FinancialStatementSnapshot]:
    """Snapshots sorted newest first, truncated to ``limit`` periods."""
    history: List[FinancialStatementSnapshot] = []
    for period in sorted(merged, reverse=True)[:limit]:
        record = merged[period]
        values = {name: _pick(record, aliases) or 0.0 for name, aliases in fields.items()}
        if not values["free_cash_flow"] and values["operating_cash_flow"]:
            # Capex is reported negative by both providers.
            values["free_cash_flow"] = values["operating_cash_flow"] + values["capital_expenditure"]
        history.append(FinancialStatementSnapshot(period=period, **values))
    return history


# ------
# Yahoo
# ------


def normalize_yahoo(ticker: str, payload: Mapping[str, Any]) -> CompanyFinancials:
    """Turn ``YahooFinanceClient.fetch_raw`` output into ``CompanyFinancials``."""
    info: Mapping[str, Any] = payload.get("info") or {}
    warnings: List[str] = []

    merged = _merge_by_period(
        _records_from_frame(payload.get("income")),
        _records_from_frame(payload.get("balance")),
        _records_from_frame(payload.get("cashflow")),
    )
    history = build_history(merged, YAHOO_STATEMENT_FIELDS)
    if not history:
        warnings.append("No annual statements returned; using quote statistics only.")

    price = _pick(info, ["currentPrice", "regularMarketPrice", "previousClose"]) or 0.0
    if price <= 0:
        warnings.append("Current price unavailable.")
    beta = _to_float(info.get("beta"))
    if beta is None:
        warnings.append("Beta unavailable; assuming 1.0.")
        beta = DEFAULT_BETA

    sector = str(info.get("sector") or "")
    industry = str(info.get("industry") or "")
    market = MarketSnapshot(
        ticker=ticker.upper(),
        price=price,
        currency=str(info.get("currency") or "USD"),
        market_cap=_to_float(info.get("marketCap")) or 0.0,
        beta=beta,
        sector=sector,
        industry=industry,
        company_name=info.get("longName") or info.get("shortName"),
    )

    dividend_rate = _to_float(info.get("dividendRate"))
    statistics = KeyStatistics(
        trailing_eps=_to_float(info.get("trailingEps")),
        forward_eps=_to_float(info.get("forwardEps")),
        book_value_per_share=_to_float(info.get("bookValue")),
        pe_ratio=_to_float(info.get("trailingPE")),
        forward_pe=_to_float(info.get("forwardPE")),
        peg_ratio=_pick(info, ["pegRatio", "trailingPegRatio"]),
        ev_to_ebitda=_to_float(info.get("enterpriseToEbitda")),
        ev_to_revenue=_to_float(info.get("enterpriseToRevenue")),
        price_to_book=_to_float(info.get("priceToBook")),
        price_to_sales=_to_float(info.get("priceToSalesTrailing12Months")),
        enterprise_value=_to_float(info.get("enterpriseValue")),
        dividend_per_share=dividend_rate,
        dividend_yield=dividend_rate / price * 100 if dividend_rate and price > 0 else None,
        revenue_growth=_percent(info.get("revenueGrowth")),
        earnings_growth=_percent(info.get("earningsGrowth")),
        return_on_equity=_percent(info.get("returnOnEquity")),
        profit_margin=_percent(info.get("profitMargins")),
        free_cash_flow=_to_float(info.get("freeCashflow")),
        ebitda=_to_float(info.get("ebitda")),
        total_revenue=_to_float(info.get("totalRevenue")),
        total_cash=_to_float(info.get("totalCash")),
        total_debt=_to_float(info.get("totalDebt")),
        shares_outstanding=_to_float(info.get("sharesOutstanding")),
    )

    return CompanyFinancials(
        market=market,
        statistics=statistics,
        history=history,
        sector_type=detect_sector(sector, industry),
        warnings=warnings,
    )


# ----
# FMP
# ----


def _analyst_growth(estimates: Any) -> Optional[float]:
    """Annual growth of consensus EPS between the two nearest estimate years."""
    rows = []
    for record in _as_records(estimates):
        period = _safe_date(record.get("date"))
        eps = _pick(record, ["epsAvg", "estimatedEpsAvg"])
        if period is not None and eps is not None and eps > 0:
            rows.append((period, eps))
    rows.sort()
    if len(rows) < 2:
        return None
    (_, first), (_, second) = rows[0], rows[1]
    return (second / first - 1) * 100


def normalize_fmp(ticker: str, payload: Mapping[str, Any]) -> CompanyFinancials:
    """Turn ``FMPClient.fetch_raw`` output into ``CompanyFinancials``."""
    profile = _first_record(payload.get("profile"))
    metrics = _first_record(payload.get("key_metrics"))
    ratios = _first_record(payload.get("ratios"))
    warnings: List[str] = []

    merged = _merge_by_period(
        _as_records(payload.get("income")),
        _as_records(payload.get("balance")),
        _as_records(payload.get("cashflow")),
    )
    history = build_history(merged, FMP_STATEMENT_FIELDS)
    if not history:
        warnings.append("No annual statements returned; using profile statistics only.")

    price = _to_float(profile.get("price")) or 0.0
    if price <= 0:
        warnings.append("Current price unavailable.")
    beta = _to_float(profile.get("beta"))
    if beta is None:
        warnings.append("Beta unavailable; assuming 1.0.")
        beta = DEFAULT_BETA

    sector = str(profile.get("sector") or "")
    industry = str(profile.get("industry") or "")
    market_cap = _pick(profile, ["marketCap", "mktCap"]) or 0.0
    market = MarketSnapshot(
        ticker=ticker.upper(),
        price=price,
        currency=str(profile.get("currency") or "USD"),
        market_cap=market_cap,
        beta=beta,
        sector=sector,
        industry=industry,
        company_name=profile.get("companyName"),
    )

    latest = history[0] if history else None
    previous = history[1] if len(history) > 1 else None

    def growth(field: str) -> Optional[float]:
        if latest is None or previous is None:
            return None
        old, new = getattr(previous, field), getattr(latest, field)
        return (new / old - 1) * 100 if old > 0 else None

    dividend = _pick(ratios, ["dividendPerShareTTM"]) or _to_float(profile.get("lastDividend"))
    statistics = KeyStatistics(
        trailing_eps=latest.eps if latest is not None and latest.eps else None,
        book_value_per_share=_pick(ratios, ["bookValuePerShareTTM"]) or _pick(metrics, ["bookValuePerShareTTM"]),
        pe_ratio=_pick(ratios, ["priceToEarningsRatioTTM", "peRatioTTM"]),
        peg_ratio=_pick(ratios, ["priceToEarningsGrowthRatioTTM", "pegRatioTTM"]),
        ev_to_ebitda=_pick(metrics, ["evToEBITDATTM", "enterpriseValueOverEBITDATTM"]),
        ev_to_revenue=_pick(metrics, ["evToSalesTTM"]),
        price_to_book=_pick(ratios, ["priceToBookRatioTTM"]),
        price_to_sales=_pick(ratios, ["priceToSalesRatioTTM"]),
        enterprise_value=_pick(metrics, ["enterpriseValueTTM"]),
        dividend_per_share=dividend,
        dividend_yield=_percent(ratios.get("dividendYieldTTM")),
        revenue_growth=growth("revenue"),
        earnings_growth=growth("net_income"),
        analyst_growth_estimate=_analyst_growth(payload.get("estimates")),
        return_on_equity=_percent(_pick(metrics, ["returnOnEquityTTM", "roeTTM"])),
        profit_margin=_percent(_pick(ratios, ["netProfitMarginTTM"])),
        shares_outstanding=market_cap / price if market_cap > 0 and price > 0 else None,
    )

    return CompanyFinancials(
        market=market,
        statistics=statistics,
        history=history,
        sector_type=detect_sector(sector, industry),
        warnings=warnings,
    )


# -------
# Candles
# -------


def normalize_candles(frame: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Flatten provider OHLCV frames into lower-case columns sorted oldest first."""
    if frame is None or frame.empty:
        return pd.DataFrame(columns=CANDLE_COLUMNS)

    df = frame.copy()
    # yfinance may return MultiIndex columns like ("Close", "MSFT").
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = [str(col[0]) if isinstance(col, tuple) and col else str(col) for col in df.columns]
    if "date" not in df.columns and "Date" not in df.columns and "Datetime" not in df.columns:
        df = df.reset_index()
    df = df.rename(
        columns={
            "Date": "date",
            "Datetime": "date",
            "index": "date",
            "Open": "open",
            "High": "high",
            "Low": "low",
            "Close": "close",
            "Volume": "volume",
        }
    )
    for column in CANDLE_COLUMNS:
        if column not in df.columns:
            df[column] = float("nan")
    df["date"] = pd.to_datetime(df["date"], errors="coerce", utc=True).dt.tz_localize(None)
    for column in CANDLE_COLUMNS[1:]:
        df[column] = pd.to_numeric(df[column], errors="coerce")
    df = df.dropna(subset=["date", "close"]).sort_values("date").reset_index(drop=True)
    return df[CANDLE_COLUMNS]
