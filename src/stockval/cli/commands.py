"""CLI command definitions for the stock valuation toolkit."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from config import Config
from stockval.domain.models.valuation import DCFAssumptions
from stockval.domain.services.relative_valuation import build_company_metrics, calculate_relative_valuation
from stockval.domain.services.technicals import DEFAULT_TIMEFRAME, TIMEFRAMES, resolve_timeframe
from stockval.domain.services.valuation import (
    DEFAULT_TERMINAL_GROWTH,
    calculate_dcf,
    calculate_reverse_dcf,
    calculate_sensitivity_table,
    calculate_wacc,
)
from stockval.infrastructure.data_providers.base import DataProviderError
from stockval.infrastructure.db.sqlite import DEFAULT_USER, WatchlistRepository
from stockval.settings.loader import load_settings
from stockval.utils.logging import configure_logging
from stockval.workflows.graph import ValuationWorkflow
from stockval.workflows.state import AnalysisState

console = Console()
app = typer.Typer(help="Value US-listed stocks from the terminal: DCF, relative multiples and technicals.")
watchlist_app = typer.Typer(help="Manage the local watchlist.")
app.add_typer(watchlist_app, name="watchlist")


@dataclass
class AppContext:
    """Holds reusable process-wide objects for CLI commands.

    The workflow and repository are built on first use so offline calculators
    never touch providers or the database.
    """

    config: Config
    _workflow: Optional[ValuationWorkflow] = None
    _repository: Optional[WatchlistRepository] = None

    @property
    def repository(self) -> WatchlistRepository:
        if self._repository is None:
            self._repository = WatchlistRepository(
                database_uri=f"sqlite:///{self.config.database_path}",
                echo=self.config.sqlite_echo,
            )
        return self._repository

    @property
    def workflow(self) -> ValuationWorkflow:
        if self._workflow is None:
            self._workflow = ValuationWorkflow(config=self.config)
        return self._workflow


def _init_context(debug_override: Optional[bool] = None, provider_override: Optional[str] = None) -> AppContext:
    """Create a context with configuration and logging."""
    try:
        config = load_settings(debug_override=debug_override, provider_override=provider_override)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--provider") from exc
    configure_logging(debug=config.debug)
    return AppContext(config=config)


def _context(ctx: typer.Context) -> AppContext:
    if ctx.obj is None:
        raise typer.Exit(code=1)
    return ctx.obj


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Temporarily toggle verbose logging without touching environment variables.",
    ),
    provider: Optional[str] = typer.Option(
        None,
        "--provider",
        help="Market data provider for this run: yahoo or fmp (defaults to DATA_PROVIDER).",
    ),
) -> None:
    """Attach the lazily constructed application context to Typer."""
    ctx.obj = _init_context(debug_override=debug, provider_override=provider)


@app.command()
def analyze(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL"),
    emit_json: bool = typer.Option(False, "--json", help="Persist the merged workflow state to JSON."),
    markdown_path: Optional[Path] = typer.Option(
        None,
        "--markdown",
        help="Optional custom path for the rendered Markdown report.",
    ),
    save: bool = typer.Option(False, "--save", help="Store the verdict as the ticker's watchlist snapshot."),
    growth: Optional[float] = typer.Option(None, "--growth", help="Override initial FCF growth in percent (e.g. 12)."),
    terminal_growth: Optional[float] = typer.Option(
        None, "--terminal-growth", help="Override terminal growth in percent (e.g. 2.5)."
    ),
    wacc: Optional[float] = typer.Option(None, "--wacc", help="Override discount rate in percent (e.g. 9.5)."),
    timeframe: str = typer.Option(DEFAULT_TIMEFRAME, "--timeframe", help="Price history window for technicals."),
    include_technicals: bool = typer.Option(
        True, "--technicals/--no-technicals", help="Load price history and compute indicators."
    ),
) -> None:
    """Run the LangGraph workflow for a single ticker and present the outcome."""
    context = _context(ctx)
    ticker = ticker.strip().upper()
    console.rule(f"Valuing {ticker}")

    overrides = {
        key: value
        for key, value in {"growth": growth, "terminal_growth": terminal_growth, "wacc": wacc}.items()
        if value is not None
    }

    with console.status("[bold cyan]Running workflow..."):
        result: AnalysisState = context.workflow.run(
            ticker,
            timeframe=timeframe,
            include_technicals=include_technicals,
            assumption_overrides=overrides or None,
        )

    if result.get("errors"):
        console.print("[bold red]Workflow completed with errors:[/bold red]")
        for issue in result["errors"]:
            console.print(f"- {issue}")
    else:
        console.print("[bold green]Workflow completed successfully.[/bold green]")

    if result.get("financials") is None:
        raise typer.Exit(code=1)

    _print_valuation(result)
    _print_relative(result)
    _print_technicals(result)

    if emit_json:
        target = context.config.output_dir / f"{ticker}_state.json"
        context.workflow.persist_state(result, target)
        console.print(f"State saved to {target}")

    if result.get("markdown_report"):
        output_md = markdown_path or context.config.output_dir / f"{ticker}.md"
        context.workflow.persist_markdown(result["markdown_report"], output_md)
        console.print(f"Markdown report available at {output_md}")

    valuation = result.get("valuation")
    if save and valuation is not None:
        context.repository.upsert_snapshot(
            ticker,
            price=valuation.current_price,
            fair_value=valuation.average_fair_value,
            upside=valuation.upside,
            verdict=valuation.verdict.value,
        )
        console.print(f"Snapshot saved for {ticker}")


@app.command()
def dcf(
    ctx: typer.Context,
    fcf: float = typer.Option(..., "--fcf", help="Current free cash flow per share."),
    growth: float = typer.Option(10.0, "--growth", help="Initial growth in percent."),
    terminal_growth: float = typer.Option(DEFAULT_TERMINAL_GROWTH, "--terminal-growth", help="Terminal growth in percent."),
    wacc: Optional[float] = typer.Option(None, "--wacc", help="Discount rate in percent."),
    beta: Optional[float] = typer.Option(None, "--beta", help="Derive the discount rate from beta via CAPM."),
    price: Optional[float] = typer.Option(None, "--price", help="Current price, to report upside."),
) -> None:
    """Five-year DCF on a per-share free cash flow, no network access."""
    context = _context(ctx)
    rate = wacc if wacc is not None else _capm(context.config, beta)
    assumptions = DCFAssumptions(revenue_growth=growth, terminal_growth=terminal_growth, wacc=rate)
    if not assumptions.is_valid:
        console.print("[red]Discount rate must be greater than terminal growth rate.[/red]")
        raise typer.Exit(code=2)

    value = calculate_dcf(assumptions, fcf)
    table = Table(title="DCF Valuation")
    table.add_column("Input", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("FCF / share", f"{fcf:,.2f}")
    table.add_row("Initial growth", f"{growth:.1f}%")
    table.add_row("Terminal growth", f"{terminal_growth:.1f}%")
    table.add_row("Discount rate", f"{rate:.1f}%")
    table.add_row("Fair value", f"[bold]{value:,.2f}[/bold]")
    if price:
        table.add_row("Upside", f"{(value / price - 1) * 100:+.1f}%")
    console.print(table)


@app.command("reverse-dcf")
def reverse_dcf(
    ctx: typer.Context,
    price: float = typer.Option(..., "--price", help="Current share price."),
    fcf: float = typer.Option(..., "--fcf", help="Current free cash flow per share."),
    wacc: Optional[float] = typer.Option(None, "--wacc", help="Discount rate in percent."),
    beta: Optional[float] = typer.Option(None, "--beta", help="Derive the discount rate from beta via CAPM."),
    terminal_growth: float = typer.Option(DEFAULT_TERMINAL_GROWTH, "--terminal-growth", help="Terminal growth in percent."),
) -> None:
    """Growth rate the current price implies."""
    context = _context(ctx)
    rate = wacc if wacc is not None else _capm(context.config, beta)
    if price <= 0 or fcf <= 0:
        console.print("[yellow]Reverse DCF needs a positive price and free cash flow.[/yellow]")
        raise typer.Exit(code=2)
    implied = calculate_reverse_dcf(price, fcf, rate, terminal_growth)
    console.print(
        f"Price {price:,.2f} at {rate:.1f}% discount rate implies "
        f"[bold]{implied:.1f}%[/bold] initial FCF growth."
    )


@app.command()
def sensitivity(
    ctx: typer.Context,
    fcf: float = typer.Option(..., "--fcf", help="Current free cash flow per share."),
    wacc: float = typer.Option(10.0, "--wacc", help="Central discount rate in percent."),
    growth: float = typer.Option(10.0, "--growth", help="Central initial growth in percent."),
    terminal_growth: float = typer.Option(DEFAULT_TERMINAL_GROWTH, "--terminal-growth", help="Terminal growth in percent."),
) -> None:
    """Fair value grid around a discount rate / growth pair."""
    _context(ctx)
    rows = calculate_sensitivity_table(fcf, terminal_growth, center_wacc=wacc, center_growth=growth)
    growths = sorted({row["growth"] for row in rows})
    waccs = sorted({row["wacc"] for row in rows})
    values = {(row["wacc"], row["growth"]): row["fair_value"] for row in rows}

    table = Table(title="DCF Sensitivity (rows: discount rate, columns: growth)")
    table.add_column("WACC", style="cyan")
    for value in growths:
        table.add_column(f"{value:g}%", justify="right")
    for rate in waccs:
        cells = [f"{values[(rate, g)]:,.2f}" if (rate, g) in values else "-" for g in growths]
        table.add_row(f"{rate:g}%", *cells)
    console.print(table)


@app.command()
def relative(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL"),
) -> None:
    """Price a company at its sector's average multiples."""
    context = _context(ctx)
    provider = context.workflow.context.provider_for(context.config.data_provider)
    if provider is None:
        console.print(f"[red]Data provider '{context.config.data_provider}' is unavailable.[/red]")
        raise typer.Exit(code=1)
    try:
        with console.status(f"[bold cyan]Fetching {ticker.upper()}..."):
            financials = provider.fetch_company(ticker)
    except DataProviderError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    _print_relative({"relative": calculate_relative_valuation(build_company_metrics(financials))})


@app.command()
def technicals(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL"),
    timeframe: str = typer.Option(DEFAULT_TIMEFRAME, "--timeframe", help=f"One of {', '.join(TIMEFRAMES)}."),
) -> None:
    """Pivot points, price zones, moving averages and RSI."""
    context = _context(ctx)
    workflow_context = context.workflow.context
    provider = workflow_context.provider_for(context.config.data_provider)
    if provider is None:
        console.print(f"[red]Data provider '{context.config.data_provider}' is unavailable.[/red]")
        raise typer.Exit(code=1)
    key = resolve_timeframe(timeframe)
    try:
        with console.status(f"[bold cyan]Loading {key} history for {ticker.upper()}..."):
            candles = provider.fetch_price_history(ticker, key)
        snapshot = workflow_context.technical_analyzer.analyze(ticker.upper(), candles, key)
    except (DataProviderError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    _print_technicals({"technicals": snapshot})


@app.command()
def plan(ctx: typer.Context) -> None:
    """Display the high-level workflow path for quick operator reference."""
    context = _context(ctx)
    table = Table(title="Workflow Stages")
    table.add_column("Step", style="cyan")
    table.add_column("Description")

    for idx, step in enumerate(context.workflow.describe_stages(), start=1):
        table.add_row(str(idx), step)

    console.print(table)


@watchlist_app.command("add")
def watchlist_add(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol to track."),
    note: Optional[str] = typer.Option(None, "--note", help="Free-form note."),
    target_price: Optional[float] = typer.Option(None, "--target", help="Personal target price."),
    user: str = typer.Option(DEFAULT_USER, "--user", help="Watchlist owner."),
) -> None:
    """Add or update a watchlist entry."""
    context = _context(ctx)
    context.repository.add(ticker, user_id=user, note=note, target_price=target_price)
    console.print(f"Added {ticker.upper()} to {user}'s watchlist.")


@watchlist_app.command("remove")
def watchlist_remove(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker symbol to drop."),
    user: str = typer.Option(DEFAULT_USER, "--user", help="Watchlist owner."),
) -> None:
    """Remove a ticker from the watchlist."""
    context = _context(ctx)
    if not context.repository.remove(ticker, user_id=user):
        console.print(f"[yellow]{ticker.upper()} is not on {user}'s watchlist.[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"Removed {ticker.upper()}.")


@watchlist_app.command("list")
def watchlist_list(
    ctx: typer.Context,
    user: str = typer.Option(DEFAULT_USER, "--user", help="Watchlist owner."),
    emit_json: bool = typer.Option(False, "--json", help="Print entries as JSON."),
) -> None:
    """Show watchlist entries with their last saved verdict."""
    context = _context(ctx)
    entries = context.repository.entries(user_id=user)
    if emit_json:
        console.print_json(json.dumps(entries, default=str))
        return
    if not entries:
        console.print("Watchlist is empty.")
        return

    table = Table(title=f"Watchlist ({user})")
    for column in ("Ticker", "Note", "Target", "Price", "Fair Value", "Upside", "Verdict"):
        table.add_column(column)
    for entry in entries:
        table.add_row(
            entry["ticker"],
            entry.get("note") or "",
            _fmt(entry.get("target_price")),
            _fmt(entry.get("price")),
            _fmt(entry.get("fair_value")),
            f"{entry['upside']:+.1f}%" if entry.get("upside") is not None else "-",
            entry.get("verdict") or "-",
        )
    console.print(table)


def _capm(config: Config, beta: Optional[float]) -> float:
    return calculate_wacc(
        beta,
        risk_free_rate=config.risk_free_rate,
        equity_risk_premium=config.equity_risk_premium,
    )


def _fmt(value: Optional[float]) -> str:
    return f"{value:,.2f}" if value is not None else "-"


def _print_valuation(state: Dict[str, Any]) -> None:
    valuation = state.get("valuation")
    if valuation is None:
        return

    table = Table(title=f"{valuation.ticker} Intrinsic Valuation", header_style="bold magenta")
    table.add_column("Method")
    table.add_column("Fair Value", justify="right")
    table.add_column("Upside", justify="right")
    table.add_column("Confidence")
    table.add_column("Notes")
    for method in valuation.methods:
        if method.applicable:
            table.add_row(
                method.method,
                _fmt(method.fair_value),
                f"{method.upside:+.1f}%",
                method.confidence.value,
                method.details,
            )
        else:
            table.add_row(method.method, "-", "-", "-", f"[dim]{method.not_applicable_reason or method.details}[/dim]")
    console.print(table)

    summary = Table(show_header=False)
    summary.add_column("Key", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row("Price", _fmt(valuation.current_price))
    summary.add_row("Best estimate", _fmt(valuation.average_fair_value))
    summary.add_row("Median", _fmt(valuation.median_fair_value))
    summary.add_row("Conservative", _fmt(valuation.conservative_fair_value))
    summary.add_row("Upside", f"{valuation.upside:+.1f}%")
    summary.add_row("Verdict", f"[bold]{valuation.verdict.value}[/bold]")
    summary.add_row("Implied growth", f"{valuation.implied_growth:.1f}%")
    console.print(summary)
    for warning in valuation.warnings:
        console.print(f"[yellow]! {warning}[/yellow]")


def _print_relative(state: Dict[str, Any]) -> None:
    result = state.get("relative")
    if result is None:
        return

    table = Table(title=f"Relative Valuation vs {result.sector_averages.sector}", header_style="bold magenta")
    for column in ("Method", "Company", "Sector", "Fair Value", "Upside", "Weight"):
        table.add_column(column, justify="left" if column == "Method" else "right")
    for row in result.valuations:
        table.add_row(
            row.method,
            f"{row.company_multiple:.1f}x",
            f"{row.sector_multiple:.1f}x",
            _fmt(row.fair_value),
            f"{row.upside:+.1f}%",
            f"{row.weight:.0%}",
        )
    console.print(table)
    console.print(
        f"Weighted fair value {_fmt(result.weighted_fair_value)} "
        f"({result.overall_upside:+.1f}%): [bold]{result.verdict.value}[/bold]"
    )


def _print_technicals(state: Dict[str, Any]) -> None:
    snapshot = state.get("technicals")
    if snapshot is None:
        return

    pivots = snapshot.levels.pivots
    table = Table(title=f"{snapshot.ticker} Technicals ({snapshot.timeframe}, {snapshot.interval})")
    table.add_column("Level", style="cyan")
    table.add_column("Value", justify="right")
    for label, value in (
        ("R3", pivots.r3), ("R2", pivots.r2), ("R1", pivots.r1), ("Pivot", pivots.pivot),
        ("S1", pivots.s1), ("S2", pivots.s2), ("S3", pivots.s3),
    ):
        table.add_row(label, _fmt(value))
    averages = snapshot.moving_averages
    for label, value in (("SMA20", averages.sma20), ("SMA50", averages.sma50), ("SMA200", averages.sma200)):
        table.add_row(label, _fmt(value))
    table.add_row("RSI(14)", f"{snapshot.rsi:.1f} {snapshot.rsi_signal}" if snapshot.rsi is not None else "-")
    console.print(table)
    console.print(f"Support: {_join(snapshot.levels.support)}")
    console.print(f"Resistance: {_join(snapshot.levels.resistance)}")


def _join(values: List[float]) -> str:
    return ", ".join(_fmt(value) for value in values) or "-"
