import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

import pandas as pd
import yfinance as yf

from hedgeflow.data.errors import ProviderNotFoundError, ProviderTransportError
from hedgeflow.data.expirations import is_standard_expiration
from hedgeflow.data.providers.base import (
    build_chain,
    change_from_previous,
    make_contract,
    resolve_now,
    to_float,
)
from hedgeflow.models.common import ContractType, InstrumentClass
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

MAX_EXPIRATIONS = 8


class YFinanceProvider:
    """Keyless equity options from Yahoo Finance via yfinance.

    yfinance is synchronous, so the fetch runs in the default executor.
    """

    name = "Yahoo Finance"
    instrument_class = InstrumentClass.EQUITY

    def __init__(
        self,
        max_expirations: int = MAX_EXPIRATIONS,
        ticker_factory: Callable[[str], Any] = yf.Ticker,
    ) -> None:
        self.max_expirations = max_expirations
        self._ticker_factory = ticker_factory

    async def fetch(self, ticker: str, now: datetime | None = None) -> OptionsChain:
        symbol = ticker.upper().strip()
        today = resolve_now(now).date()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_sync, symbol, today)

    def _fetch_sync(self, symbol: str, today: date) -> OptionsChain:
        yt = self._ticker_factory(symbol)
        try:
            expirations = list(yt.options or [])
        except Exception as e:
            raise ProviderTransportError(
                self.name, f"failed to list expirations for {symbol}: {e}"
            ) from e
        if not expirations:
            raise ProviderNotFoundError(self.name, f"no listed options for {symbol}")

        selected = self._standard_dates(expirations, today)
        contracts: list[Contract] = []
        underlying: dict = {}
        for expiry in selected:
            try:
                chain = yt.option_chain(expiry.isoformat())
            except Exception:
                logger.warning(
                    "Failed to fetch %s options expiring %s", symbol, expiry
                )
                continue
            underlying = underlying or dict(getattr(chain, "underlying", None) or {})
            contracts.extend(self._parse_frame(chain.calls, ContractType.CALL, expiry, today))
            contracts.extend(self._parse_frame(chain.puts, ContractType.PUT, expiry, today))

        spot, previous = self._spot(yt, underlying)
        change, change_pct = change_from_previous(spot, previous)
        return build_chain(
            symbol,
            self.name,
            contracts,
            spot_price=spot,
            company_name=underlying.get("longName") or underlying.get("shortName"),
            change_24h=change,
            change_24h_percent=change_pct,
        )

    def _standard_dates(self, expirations: list[str], today: date) -> list[date]:
        dates: list[date] = []
        for raw in expirations:
            try:
                d = date.fromisoformat(str(raw))
            except ValueError:
                logger.debug("Skipping unparseable expiration %r", raw)
                continue
            if d >= today and is_standard_expiration(d):
                dates.append(d)
        return sorted(dates)[: self.max_expirations]

    def _parse_frame(
        self,
        frame: pd.DataFrame | None,
        ctype: ContractType,
        expiry: date,
        today: date,
    ) -> list[Contract]:
        if frame is None or frame.empty:
            return []
        contracts: list[Contract] = []
        for row in frame.to_dict("records"):
            contract = make_contract(
                strike=row.get("strike"),
                expiry=expiry,
                option_type=ctype,
                today=today,
                open_interest=row.get("openInterest"),
                volume=row.get("volume"),
                implied_volatility=row.get("impliedVolatility"),
            )
            if contract:
                contracts.append(contract)
        return contracts

    def _spot(self, yt: Any, underlying: dict) -> tuple[float, float | None]:
        """(last price, previous close) with fast_info first."""
        try:
            fast = yt.fast_info
            price = to_float(fast["last_price"], 0.0)
            previous = to_float(fast["previous_close"])
            if price and price > 0:
                return price, previous
        except Exception:
            logger.debug("fast_info unavailable, using chain underlying")

        price = to_float(underlying.get("regularMarketPrice"), 0.0)
        previous = to_float(underlying.get("regularMarketPreviousClose"))
        return price or 0.0, previous
