"""Provider fallback and aggregation.

Equity symbols walk an ordered provider list (rotating the starting point
after each success) and stop at the first usable chain. Crypto symbols fan
out to every exchange at once and the answers are merged. Either path ends in
the synthetic generator when nothing real is available.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime

from hedgeflow.config import ProviderConfig
from hedgeflow.data.errors import (
    ChainUnavailableError,
    ProviderAuthError,
    ProviderError,
    ProviderTransportError,
)
from hedgeflow.data.providers.alphavantage import AlphaVantageProvider
from hedgeflow.data.providers.base import DEFAULT_TIMEOUT, OptionsProvider
from hedgeflow.data.providers.bybit import BybitProvider
from hedgeflow.data.providers.deribit import DeribitProvider
from hedgeflow.data.providers.marketdata import MarketDataProvider
from hedgeflow.data.providers.okx import OKXProvider
from hedgeflow.data.providers.polygon import PolygonProvider
from hedgeflow.data.providers.yfinance import YFinanceProvider
from hedgeflow.data.synthetic import generate_synthetic_chain
from hedgeflow.data.tickers import is_crypto_ticker, is_valid_ticker, normalize_ticker
from hedgeflow.models.common import InstrumentClass, SourceState
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)


def merge_contracts(contracts: Iterable[Contract]) -> list[Contract]:
    """Collapse duplicates on (strike, expiration_days), summing OI and volume.

    The first source's implied volatility is kept.
    """
    merged: dict[tuple[float, int], Contract] = {}
    for c in contracts:
        key = (c.strike, c.expiration_days)
        existing = merged.get(key)
        if existing is None:
            merged[key] = c
            continue
        volume = existing.volume
        if c.volume is not None:
            volume = (volume or 0) + c.volume
        merged[key] = existing.model_copy(
            update={
                "open_interest": existing.open_interest + c.open_interest,
                "volume": volume,
                "implied_volatility": existing.implied_volatility
                or c.implied_volatility,
            }
        )
    return list(merged.values())


def merge_chains(ticker: str, chains: Sequence[OptionsChain]) -> OptionsChain:
    """Merge chains for one symbol from several sources, in provider order."""
    spot_source: OptionsChain | None = None
    for chain in chains:
        if chain.spot_price > 0:
            spot_source = chain

    company_name = next((c.company_name for c in chains if c.company_name), None)
    ivs = [c.implied_volatility for c in chains if c.implied_volatility]
    return OptionsChain(
        ticker=ticker,
        company_name=company_name,
        spot_price=spot_source.spot_price if spot_source else 0.0,
        change_24h=spot_source.change_24h if spot_source else None,
        change_24h_percent=spot_source.change_24h_percent if spot_source else None,
        implied_volatility=sum(ivs) / len(ivs) if ivs else None,
        calls=merge_contracts(c for chain in chains for c in chain.calls),
        puts=merge_contracts(p for chain in chains for p in chain.puts),
        sources=[s for chain in chains for s in chain.sources],
    )


class ProviderCascade:
    def __init__(
        self,
        equity_providers: Sequence[OptionsProvider] = (),
        crypto_providers: Sequence[OptionsProvider] = (),
        timeout: float = DEFAULT_TIMEOUT,
        synthetic: Callable[[str], OptionsChain] = generate_synthetic_chain,
    ) -> None:
        self.equity_providers = list(equity_providers)
        self.crypto_providers = list(crypto_providers)
        self.timeout = timeout
        self._synthetic = synthetic
        self._start_index = 0
        self._states = {cls: SourceState.UNKNOWN for cls in InstrumentClass}

    def state(self, instrument_class: InstrumentClass) -> SourceState:
        return self._states[instrument_class]

    def available_providers(self) -> dict[InstrumentClass, list[str]]:
        return {
            InstrumentClass.EQUITY: [p.name for p in self.equity_providers],
            InstrumentClass.CRYPTO: [p.name for p in self.crypto_providers],
        }

    async def fetch(
        self, ticker: str, force: bool = False, now: datetime | None = None
    ) -> OptionsChain:
        symbol = normalize_ticker(ticker)
        if not is_valid_ticker(symbol):
            raise ChainUnavailableError(ticker, "validation", "invalid ticker")

        if is_crypto_ticker(symbol):
            return await self._fetch_crypto(symbol, now)

        if force and self._states[InstrumentClass.EQUITY] == SourceState.AUTH_FAILED:
            logger.info("Forced refresh, retrying equity providers after auth failure")
            self._states[InstrumentClass.EQUITY] = SourceState.UNKNOWN
        return await self._fetch_equity(symbol, now)

    async def _call(
        self, provider: OptionsProvider, symbol: str, now: datetime | None
    ) -> OptionsChain:
        try:
            return await asyncio.wait_for(provider.fetch(symbol, now), self.timeout)
        except TimeoutError as e:
            raise ProviderTransportError(
                provider.name, f"timed out after {self.timeout:g}s"
            ) from e

    async def _fetch_equity(self, symbol: str, now: datetime | None) -> OptionsChain:
        if self._states[InstrumentClass.EQUITY] == SourceState.AUTH_FAILED:
            return self._fallback(symbol, "equity (auth failed)")

        providers = self.equity_providers
        count = len(providers)
        start = self._start_index % count if count else 0
        for offset in range(count):
            provider = providers[(start + offset) % count]
            try:
                chain = await self._call(provider, symbol, now)
            except ProviderAuthError as e:
                logger.warning(
                    "Authentication failed for %s, serving synthetic data "
                    "until a forced refresh: %s",
                    provider.name,
                    e.message,
                )
                self._states[InstrumentClass.EQUITY] = SourceState.AUTH_FAILED
                return self._fallback(symbol, "equity (auth failed)")
            except ProviderError as e:
                logger.warning("%s failed for %s: %s", provider.name, symbol, e.message)
                continue
            except Exception as e:
                logger.error("%s raised unexpectedly for %s: %s", provider.name, symbol, e)
                continue

            if chain.contract_count == 0:
                logger.warning("%s returned no contracts for %s", provider.name, symbol)
                continue

            self._states[InstrumentClass.EQUITY] = SourceState.HEALTHY
            self._start_index = (start + 1) % count
            logger.debug("Fetched %s from %s", symbol, provider.name)
            return chain

        return self._fallback(symbol, "equity")

    async def _fetch_crypto(self, symbol: str, now: datetime | None) -> OptionsChain:
        providers = self.crypto_providers
        results = await asyncio.gather(
            *(self._call(p, symbol, now) for p in providers),
            return_exceptions=True,
        )

        chains: list[OptionsChain] = []
        for provider, result in zip(providers, results, strict=True):
            if isinstance(result, ProviderError):
                logger.warning("%s failed for %s: %s", provider.name, symbol, result.message)
            elif isinstance(result, Exception):
                logger.error("%s raised unexpectedly for %s: %s", provider.name, symbol, result)
            elif isinstance(result, BaseException):
                raise result
            elif result.contract_count > 0:
                chains.append(result)

        if not chains:
            return self._fallback(symbol, "crypto")

        self._states[InstrumentClass.CRYPTO] = SourceState.HEALTHY
        merged = merge_chains(symbol, chains)
        logger.debug(
            "Merged %s from %s (%d contracts)",
            symbol,
            ", ".join(merged.sources),
            merged.contract_count,
        )
        return merged

    def _fallback(self, symbol: str, strategy: str) -> OptionsChain:
        chain = self._synthetic(symbol)
        if chain.contract_count == 0:
            raise ChainUnavailableError(
                symbol, strategy, "synthetic generator produced no contracts"
            )
        logger.info("Using synthetic data for %s (%s)", symbol, strategy)
        return chain


def build_cascade(config: ProviderConfig) -> ProviderCascade:
    """Assemble the providers a configuration enables, in priority order."""
    timeout = config.timeout
    equity: list[OptionsProvider] = []
    if config.polygon_api_key:
        equity.append(PolygonProvider(config.polygon_api_key, timeout=timeout))
    if config.marketdata_api_key:
        equity.append(MarketDataProvider(config.marketdata_api_key, timeout=timeout))
    if config.alphavantage_api_key:
        equity.append(
            AlphaVantageProvider(config.alphavantage_api_key, timeout=timeout)
        )
    if config.enable_yfinance:
        equity.append(YFinanceProvider())

    crypto: list[OptionsProvider] = []
    if config.enable_crypto:
        crypto = [
            DeribitProvider(timeout=timeout),
            OKXProvider(timeout=timeout),
            BybitProvider(timeout=timeout),
        ]

    logger.debug(
        "Configured providers: equity=%s crypto=%s",
        [p.name for p in equity],
        [p.name for p in crypto],
    )
    return ProviderCascade(equity, crypto, timeout=timeout)
