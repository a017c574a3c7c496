import logging
import re
from datetime import date, datetime

import httpx

from hedgeflow.data.errors import (
    ProviderError,
    ProviderNotFoundError,
    ProviderTransportError,
)
from hedgeflow.data.providers.base import (
    DEFAULT_TIMEOUT,
    build_chain,
    change_from_previous,
    get_json,
    make_contract,
    open_client,
    resolve_now,
    to_float,
)
from hedgeflow.data.providers.deribit import parse_deribit_expiry
from hedgeflow.data.tickers import CRYPTO_NAMES
from hedgeflow.models.common import InstrumentClass
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

BYBIT_BASE_URL = "https://api.bybit.com/v5"
SUPPORTED = frozenset({"BTC", "ETH", "SOL"})

# BTC-29DEC23-40000-C, optionally suffixed with the settle coin (-USDT)
_SYMBOL_RE = re.compile(
    r"^(?P<base>[A-Z]+)-(?P<expiry>\d{1,2}[A-Z]{3}\d{2})-(?P<strike>[\d.]+)"
    r"-(?P<side>[CP])(?:-[A-Z]+)?$"
)


class BybitProvider:
    """BTC, ETH and SOL options from Bybit's public v5 market API."""

    name = "Bybit"
    instrument_class = InstrumentClass.CRYPTO

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def fetch(self, ticker: str, now: datetime | None = None) -> OptionsChain:
        currency = ticker.upper().strip()
        if currency not in SUPPORTED:
            raise ProviderNotFoundError(self.name, f"{currency} options not listed")
        today = resolve_now(now).date()

        async with open_client(self._client, self._timeout) as client:
            spot, previous = await self._spot(client, currency)
            rows = await self._tickers(
                client, {"category": "option", "baseCoin": currency}
            )

        if spot <= 0:
            for row in rows:
                price = to_float(row.get("underlyingPrice"))
                if price and price > 0:
                    spot = price
                    break

        change, change_pct = change_from_previous(spot, previous)
        return build_chain(
            currency,
            self.name,
            self._parse_rows(rows, today),
            spot_price=spot,
            company_name=CRYPTO_NAMES.get(currency),
            change_24h=change,
            change_24h_percent=change_pct,
        )

    async def _tickers(self, client: httpx.AsyncClient, params: dict) -> list[dict]:
        payload = await get_json(
            client, f"{BYBIT_BASE_URL}/market/tickers", self.name, params=params
        )
        if payload.get("retCode", 0) != 0:
            raise ProviderTransportError(
                self.name, f"retCode {payload.get('retCode')}: {payload.get('retMsg')}"
            )
        return (payload.get("result") or {}).get("list") or []

    async def _spot(
        self, client: httpx.AsyncClient, currency: str
    ) -> tuple[float, float | None]:
        try:
            rows = await self._tickers(
                client, {"category": "spot", "symbol": f"{currency}USDT"}
            )
        except ProviderError as e:
            logger.debug("Bybit spot ticker failed: %s", e)
            return 0.0, None
        if not rows:
            return 0.0, None
        return to_float(rows[0].get("lastPrice"), 0.0), to_float(
            rows[0].get("prevPrice24h")
        )

    def _parse_rows(self, rows: list[dict], today: date) -> list[Contract]:
        contracts: list[Contract] = []
        for row in rows:
            symbol = str(row.get("symbol", ""))
            m = _SYMBOL_RE.match(symbol)
            expiry = parse_deribit_expiry(m.group("expiry")) if m else None
            if expiry is None:
                logger.debug("Dropping Bybit symbol %r", symbol)
                continue
            contract = make_contract(
                strike=m.group("strike"),
                expiry=expiry,
                option_type=m.group("side"),
                today=today,
                open_interest=row.get("openInterest"),
                volume=row.get("volume24h"),
                implied_volatility=row.get("markIv"),
            )
            if contract:
                contracts.append(contract)
        return contracts
