import logging
from collections.abc import Iterable

from hedgeflow.config import POPULAR_TICKERS
from hedgeflow.data.cache import OptionsChainCache
from hedgeflow.data.errors import HedgeflowError
from hedgeflow.models.analysis import RefreshReport, TickerRefreshResult

logger = logging.getLogger(__name__)


async def refresh_popular(
    cache: OptionsChainCache,
    tickers: Iterable[str] = POPULAR_TICKERS,
) -> RefreshReport:
    """Force-refresh each ticker in turn; one failure does not stop the rest."""
    report = RefreshReport()
    for ticker in tickers:
        try:
            chain = await cache.get(ticker, force_refresh=True)
        except HedgeflowError as e:
            logger.warning("Refresh failed for %s: %s", ticker, e)
            report.results.append(
                TickerRefreshResult(ticker=ticker, success=False, error=str(e))
            )
            continue
        report.results.append(
            TickerRefreshResult(
                ticker=chain.ticker,
                success=True,
                is_synthetic=chain.is_synthetic,
                contract_count=chain.contract_count,
            )
        )

    logger.info(
        "Refreshed %d/%d tickers", report.refreshed, len(report.results)
    )
    return report
