import asyncio
import logging

from hedgeflow.analysis.exposure import HedgingExposureAggregator
from hedgeflow.analysis.gamma_flip import find_gamma_flip
from hedgeflow.analysis.max_pain import MaxPainSolver
from hedgeflow.config import EngineConfig
from hedgeflow.data.cache import OptionsChainCache
from hedgeflow.data.tickers import normalize_ticker
from hedgeflow.models.analysis import ChainAnalysis
from hedgeflow.models.common import HedgeWeighting
from hedgeflow.models.options import OptionsChain

logger = logging.getLogger(__name__)


class OptionsAnalyticsEngine:
    def __init__(
        self,
        cache: OptionsChainCache,
        config: EngineConfig | None = None,
    ) -> None:
        self.cache = cache
        self.config = config or EngineConfig()
        self.aggregator = HedgingExposureAggregator(self.config)
        self.max_pain = MaxPainSolver(self.config.max_pain)

    def analyze_chain(
        self,
        chain: OptionsChain,
        weighting: HedgeWeighting = HedgeWeighting.OPEN_INTEREST,
    ) -> ChainAnalysis:
        contracts = chain.contracts
        spot = chain.spot

        ratio = self.aggregator.put_call_ratio(contracts, weighting)
        call_mult, put_mult = self.aggregator.multipliers(ratio)
        deltas = self.aggregator.compute(contracts, spot or 0.0, weighting)
        strikes = self.aggregator.aggregate_by_strike(deltas)

        if spot is None:
            logger.warning("No spot price for %s, exposure not computed", chain.ticker)

        return ChainAnalysis(
            ticker=chain.ticker,
            company_name=chain.company_name,
            spot_price=spot,
            change_24h_percent=chain.change_24h_percent,
            is_synthetic=chain.is_synthetic,
            sources=chain.sources,
            put_call_ratio=ratio,
            call_multiplier=call_mult,
            put_multiplier=put_mult,
            deltas=deltas,
            strikes=strikes,
            max_pain=self.max_pain.calculate_upcoming(contracts, spot),
            gamma_flip=find_gamma_flip(strikes),
        )

    async def analyze(
        self,
        ticker: str,
        force_refresh: bool = False,
        timeout: float | None = None,
        weighting: HedgeWeighting = HedgeWeighting.OPEN_INTEREST,
    ) -> ChainAnalysis:
        """Fetch (or reuse) the chain for a ticker and analyze it.

        Raises TimeoutError when ``timeout`` seconds pass first.
        """
        symbol = normalize_ticker(ticker)
        chain = await asyncio.wait_for(
            self.cache.get(symbol, force_refresh=force_refresh), timeout
        )
        analysis = self.analyze_chain(chain, weighting)
        analysis.cache = self.cache.info(symbol)
        return analysis
