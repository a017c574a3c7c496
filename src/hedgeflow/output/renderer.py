from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from hedgeflow.data.expirations import expiration_date, expiration_label
from hedgeflow.models.analysis import ChainAnalysis, RefreshReport
from hedgeflow.output.formatters import (
    exposure_color,
    fmt_number,
    fmt_pct,
    fmt_price,
    fmt_ratio,
    fmt_signed,
    fmt_strike,
    pressure_bar,
)

MAX_STRIKE_ROWS = 25


class AnalysisRenderer:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render(self, analysis: ChainAnalysis) -> None:
        self._render_header(analysis)
        self._render_summary(analysis)
        if analysis.strikes:
            self._render_strikes(analysis)
        if analysis.max_pain:
            self._render_max_pain(analysis)

    def _render_header(self, analysis: ChainAnalysis) -> None:
        name = analysis.company_name or analysis.ticker
        price = fmt_price(analysis.spot_price)
        change = fmt_pct(analysis.change_24h_percent)
        self.console.print()
        self.console.print(
            Panel(
                f"[bold]{name}[/bold] ({analysis.ticker})  {price}  {change}",
                title="Options Hedging Analysis",
                style="cyan",
            )
        )
        if analysis.is_synthetic:
            self.console.print(
                "[bold yellow]Synthetic data:[/bold yellow] no live provider "
                "returned a chain, figures are illustrative only."
            )
        sources = ", ".join(analysis.sources) or "none"
        cached = f"  (updated {analysis.cache.age})" if analysis.cache else ""
        self.console.print(f"[dim]Sources: {sources}{cached}[/dim]")

    def _render_summary(self, analysis: ChainAnalysis) -> None:
        table = Table(title="Dealer Positioning", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        net_shares = analysis.net_hedging_shares
        net_gex = analysis.net_gamma_exposure
        rows = [
            ("Put/Call Ratio", fmt_ratio(analysis.put_call_ratio)),
            ("Call Multiplier", fmt_number(analysis.call_multiplier)),
            ("Put Multiplier", fmt_number(analysis.put_multiplier)),
            ("Net Hedging Shares", Text(fmt_signed(net_shares), style=exposure_color(net_shares))),
            ("Net Gamma Exposure", Text(fmt_signed(net_gex), style=exposure_color(net_gex))),
            ("Gamma Flip", fmt_price(analysis.gamma_flip)),
        ]
        for r in rows:
            table.add_row(*r)
        self.console.print(table)

    def _render_strikes(self, analysis: ChainAnalysis) -> None:
        strikes = analysis.strikes
        spot = analysis.spot_price
        if spot and len(strikes) > MAX_STRIKE_ROWS:
            # keep the rows nearest the money
            nearest = sorted(strikes, key=lambda s: abs(s.strike - spot))
            strikes = sorted(nearest[:MAX_STRIKE_ROWS], key=lambda s: s.strike)

        table = Table(title="Exposure by Strike", show_header=True)
        table.add_column("Strike", justify="right", style="cyan")
        table.add_column("Call OI", justify="right")
        table.add_column("Put OI", justify="right")
        table.add_column("Hedging Shares", justify="right")
        table.add_column("Gamma Exp.", justify="right")
        table.add_column("Buy/Sell")

        for s in strikes:
            table.add_row(
                fmt_strike(s.strike),
                f"{s.call_open_interest:,}",
                f"{s.put_open_interest:,}",
                Text(fmt_signed(s.hedging_shares), style=exposure_color(s.hedging_shares)),
                Text(fmt_signed(s.gamma_exposure), style=exposure_color(s.gamma_exposure)),
                pressure_bar(s.buy_pressure, s.sell_pressure),
            )
        self.console.print(table)

    def _render_max_pain(self, analysis: ChainAnalysis, today: date | None = None) -> None:
        table = Table(title="Max Pain", show_header=True)
        table.add_column("Expiration", style="cyan")
        table.add_column("Days", justify="right")
        table.add_column("Strike", justify="right")
        table.add_column("Open Interest", justify="right")
        table.add_column("Reliable")

        for mp in analysis.max_pain:
            expiry = expiration_date(mp.expiration_days, today)
            reliable = (
                Text("yes", style="green")
                if mp.is_reliable
                else Text("; ".join(mp.reliability_notes), style="yellow")
            )
            table.add_row(
                f"{expiry.isoformat()} ({expiration_label(expiry)})",
                str(mp.expiration_days),
                fmt_strike(mp.max_pain_strike),
                f"{mp.total_open_interest:,}",
                reliable,
            )
        self.console.print(table)

    def render_refresh(self, report: RefreshReport) -> None:
        table = Table(title="Refresh", show_header=True)
        table.add_column("Ticker", style="cyan")
        table.add_column("Status")
        table.add_column("Contracts", justify="right")

        for r in report.results:
            if not r.success:
                status = Text(f"failed: {r.error}", style="red")
            elif r.is_synthetic:
                status = Text("synthetic", style="yellow")
            else:
                status = Text("live", style="green")
            table.add_row(r.ticker, status, f"{r.contract_count:,}")
        self.console.print(table)
        self.console.print(
            f"Refreshed {report.refreshed}/{len(report.results)} tickers"
        )

    def render_expirations(self, dates: list[date]) -> None:
        table = Table(title="Standard Expirations", show_header=True)
        table.add_column("Date", style="cyan")
        table.add_column("Weekday")
        table.add_column("Type")
        for d in dates:
            table.add_row(d.isoformat(), d.strftime("%a"), expiration_label(d))
        self.console.print(table)
