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
    get_json,
    make_contract,
    open_client,
    resolve_now,
    to_float,
)
from hedgeflow.data.tickers import CRYPTO_NAMES
from hedgeflow.models.common import InstrumentClass
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

DERIBIT_BASE_URL = "https://www.deribit.com/api/v2/public"
SUPPORTED = frozenset({"BTC", "ETH"})

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}
_EXPIRY_RE = re.compile(r"^(\d{1,2})([A-Z]{3})(\d{2})$")


def parse_deribit_expiry(code: str) -> date | None:
    """'29DEC23' or '5JAN24' -> date; None when unparseable."""
    m = _EXPIRY_RE.match(code.upper())
    if not m or m.group(2) not in MONTHS:
        return None
    try:
        return date(2000 + int(m.group(3)), MONTHS[m.group(2)], int(m.group(1)))
    except ValueError:
        return None


class DeribitProvider:
    """BTC and ETH options from Deribit's public API."""

    name = "Deribit"
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
            spot, change_pct = await self._spot(client, currency)
            instruments = await self._result(
                client,
                "get_instruments",
                {"currency": currency, "kind": "option", "expired": "false"},
            )
            summaries = await self._result(
                client,
                "get_book_summary_by_currency",
                {"currency": currency, "kind": "option"},
            )

        books = {s.get("instrument_name"): s for s in summaries or []}
        if spot <= 0:
            for s in summaries or []:
                price = to_float(s.get("underlying_price"))
                if price and price > 0:
                    spot = price
                    break

        return build_chain(
            currency,
            self.name,
            self._parse_instruments(instruments or [], books, today),
            spot_price=spot,
            company_name=CRYPTO_NAMES.get(currency),
            change_24h_percent=change_pct,
        )

    async def _result(
        self, client: httpx.AsyncClient, method: str, params: dict
    ) -> list | dict | None:
        data = await get_json(
            client, f"{DERIBIT_BASE_URL}/{method}", self.name, params=params
        )
        if data.get("error"):
            raise ProviderTransportError(
                self.name, f"{method}: {data['error'].get('message', 'error')}"
            )
        return data.get("result")

    async def _spot(
        self, client: httpx.AsyncClient, currency: str
    ) -> tuple[float, float | None]:
        try:
            ticker = await self._result(
                client, "ticker", {"instrument_name": f"{currency}-PERPETUAL"}
            ) or {}
            price = to_float(ticker.get("last_price")) or to_float(
                ticker.get("index_price")
            )
            if price and price > 0:
                stats = ticker.get("stats") or {}
                return price, to_float(stats.get("price_change"))
        except ProviderError as e:
            logger.debug("Deribit perpetual ticker failed: %s", e)

        try:
            index = await self._result(
                client, "get_index_price", {"index_name": f"{currency.lower()}_usd"}
            ) or {}
            return to_float(index.get("index_price"), 0.0), None
        except ProviderError as e:
            logger.debug("Deribit index price failed: %s", e)
        return 0.0, None

    def _parse_instruments(
        self, instruments: list[dict], books: dict[str, dict], today: date
    ) -> list[Contract]:
        contracts: list[Contract] = []
        for inst in instruments:
            name = str(inst.get("instrument_name", ""))
            parts = name.split("-")
            if len(parts) != 4:
                logger.debug("Dropping Deribit instrument %r", name)
                continue
            expiry = parse_deribit_expiry(parts[1])
            if expiry is None:
                logger.debug("Dropping Deribit instrument %r", name)
                continue

            book = books.get(name) or {}
            mark_iv = to_float(book.get("mark_iv"))
            contract = make_contract(
                strike=inst.get("strike") or parts[2],
                expiry=expiry,
                option_type=parts[3],
                today=today,
                # quoted in coins
                open_interest=round(to_float(book.get("open_interest"), 0.0)),
                volume=book.get("volume"),
                # quoted in percent
                implied_volatility=mark_iv / 100 if mark_iv else None,
            )
            if contract:
                contracts.append(contract)
        return contracts
