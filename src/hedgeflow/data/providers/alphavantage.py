import logging
from datetime import date, datetime

import httpx

from hedgeflow.data.errors import (
    ProviderAuthError,
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
from hedgeflow.models.common import InstrumentClass
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

ALPHAVANTAGE_URL = "https://www.alphavantage.co/query"


class AlphaVantageProvider:
    """Equity options from Alpha Vantage's HISTORICAL_OPTIONS function.

    Alpha Vantage answers most failures with HTTP 200 and a message body, so
    the payload itself is inspected for key and symbol errors.
    """

    name = "Alpha Vantage"
    instrument_class = InstrumentClass.EQUITY

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self._client = client
        self._timeout = timeout

    async def fetch(self, ticker: str, now: datetime | None = None) -> OptionsChain:
        symbol = ticker.upper().strip()
        today = resolve_now(now).date()

        async with open_client(self._client, self._timeout) as client:
            quote = await self._quote(client, symbol)
            data = await get_json(
                client,
                ALPHAVANTAGE_URL,
                self.name,
                params={
                    "function": "HISTORICAL_OPTIONS",
                    "symbol": symbol,
                    "apikey": self.api_key,
                },
            )
        self._check_message(data, symbol)

        rows = data.get("data") or []
        if not rows:
            raise ProviderNotFoundError(self.name, f"no options data for {symbol}")

        spot = to_float(quote.get("05. price"), 0.0)
        change_pct = str(quote.get("10. change percent", "")).rstrip("%")
        return build_chain(
            symbol,
            self.name,
            self._parse_rows(rows, today),
            spot_price=spot,
            change_24h=to_float(quote.get("09. change")),
            change_24h_percent=to_float(change_pct),
        )

    async def _quote(self, client: httpx.AsyncClient, symbol: str) -> dict:
        try:
            data = await get_json(
                client,
                ALPHAVANTAGE_URL,
                self.name,
                params={
                    "function": "GLOBAL_QUOTE",
                    "symbol": symbol,
                    "apikey": self.api_key,
                },
            )
        except ProviderAuthError:
            raise
        except ProviderError:
            logger.debug("Alpha Vantage quote unavailable for %s", symbol)
            return {}
        self._check_message(data, symbol)
        return data.get("Global Quote") or {}

    def _check_message(self, data: dict, symbol: str) -> None:
        info = str(data.get("Information") or data.get("Note") or "")
        if info:
            lowered = info.lower()
            if "rate limit" in lowered:
                raise ProviderTransportError(self.name, info)
            if any(k in lowered for k in ("api key", "apikey", "premium endpoint")):
                raise ProviderAuthError(self.name, info)
            raise ProviderTransportError(self.name, info)
        if "Error Message" in data:
            raise ProviderNotFoundError(
                self.name, f"{symbol}: {data['Error Message']}"
            )

    def _parse_rows(self, rows: list[dict], today: date) -> list[Contract]:
        contracts: list[Contract] = []
        for row in rows:
            try:
                expiry = date.fromisoformat(str(row.get("expiration")))
            except ValueError:
                logger.debug("Dropping Alpha Vantage row: %s", row.get("contractID"))
                continue
            contract = make_contract(
                strike=row.get("strike"),
                expiry=expiry,
                option_type=str(row.get("type", "")),
                today=today,
                open_interest=row.get("open_interest"),
                volume=row.get("volume"),
                implied_volatility=row.get("implied_volatility"),
            )
            if contract:
                contracts.append(contract)
        return contracts
