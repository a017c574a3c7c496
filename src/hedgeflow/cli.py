import argparse
import asyncio
import logging
import sys
from datetime import date

from dotenv import load_dotenv
from rich.console import Console

from hedgeflow.analysis.engine import OptionsAnalyticsEngine
from hedgeflow.config import POPULAR_TICKERS, CacheConfig, EngineConfig, ProviderConfig
from hedgeflow.data.cache import OptionsChainCache
from hedgeflow.data.cascade import build_cascade
from hedgeflow.data.expirations import upcoming_standard_expirations
from hedgeflow.data.refresh import refresh_popular
from hedgeflow.models.common import HedgeWeighting
from hedgeflow.output.renderer import AnalysisRenderer

logger = logging.getLogger(__name__)
console = Console()

COMMANDS = ("analyze", "refresh", "expirations")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="hedgeflow",
        description="Dealer hedging, max pain and gamma flip from options chains",
    )
    sub = p.add_subparsers(dest="command")

    # --- analyze (default) ---
    analyze = sub.add_parser("analyze", help="Analyze a ticker's options chain")
    analyze.add_argument("ticker", help="Ticker symbol or alias (e.g. TSLA, bitcoin)")
    analyze.add_argument(
        "--refresh",
        action="store_true",
        help="Bypass the cache and query providers again",
    )
    analyze.add_argument(
        "--volume",
        action="store_true",
        help="Weight hedging exposure by volume instead of open interest",
    )
    analyze.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up after this many seconds",
    )
    analyze.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # --- refresh ---
    refresh = sub.add_parser("refresh", help="Force-refresh a list of tickers")
    refresh.add_argument(
        "tickers",
        nargs="*",
        help=f"Tickers to refresh (default: {' '.join(POPULAR_TICKERS)})",
    )
    refresh.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # --- expirations ---
    expirations = sub.add_parser(
        "expirations", help="List upcoming monthly and quarterly expirations"
    )
    expirations.add_argument(
        "--months",
        type=int,
        default=3,
        help="How many months ahead to list",
    )
    expirations.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return p


def _build_cache() -> OptionsChainCache:
    load_dotenv()
    cascade = build_cascade(ProviderConfig.from_env())
    return OptionsChainCache(cascade, CacheConfig())


def _run_analyze(args: argparse.Namespace) -> None:
    """Execute the analyze subcommand."""
    engine = OptionsAnalyticsEngine(_build_cache(), EngineConfig())
    weighting = HedgeWeighting.VOLUME if args.volume else HedgeWeighting.OPEN_INTEREST

    with console.status(f"[cyan]Fetching options chain for {args.ticker}..."):
        analysis = asyncio.run(
            engine.analyze(
                args.ticker,
                force_refresh=args.refresh,
                timeout=args.timeout,
                weighting=weighting,
            )
        )
    AnalysisRenderer(console).render(analysis)


def _run_refresh(args: argparse.Namespace) -> None:
    """Execute the refresh subcommand."""
    cache = _build_cache()
    tickers = args.tickers or POPULAR_TICKERS

    with console.status(f"[cyan]Refreshing {len(tickers)} tickers..."):
        report = asyncio.run(refresh_popular(cache, tickers))
    AnalysisRenderer(console).render_refresh(report)

    if report.failed:
        sys.exit(1)


def _run_expirations(args: argparse.Namespace) -> None:
    """Execute the expirations subcommand."""
    dates = upcoming_standard_expirations(date.today(), days=args.months * 31)
    AnalysisRenderer(console).render_expirations(dates)


def main() -> None:
    parser = build_parser()

    # A bare ticker runs the analyze subcommand
    if len(sys.argv) > 1 and sys.argv[1] not in (*COMMANDS, "-h", "--help"):
        sys.argv.insert(1, "analyze")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        if args.command == "analyze":
            _run_analyze(args)
        elif args.command == "refresh":
            _run_refresh(args)
        elif args.command == "expirations":
            _run_expirations(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(1)
    except TimeoutError:
        console.print("[red]Error: timed out waiting for options data[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
