import logging
from datetime import date, datetime

import httpx

from hedgeflow.data.errors import ProviderAuthError, ProviderError
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
from hedgeflow.models.common import InstrumentClass
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

POLYGON_BASE_URL = "https://api.polygon.io"
SNAPSHOT_PAGE_LIMIT = 250  # API maximum
MAX_PAGES = 10
STRIKE_WINDOW = (0.6, 1.4)  # fraction of spot


class PolygonProvider:
    """Equity options from Polygon.io snapshots."""

    name = "Polygon.io"
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
            company_name = await self._company_name(client, symbol)

            prev = await get_json(
                client,
                f"{POLYGON_BASE_URL}/v2/aggs/ticker/{symbol}/prev",
                self.name,
                params={"adjusted": "true", "apiKey": self.api_key},
            )
            bars = prev.get("results") or []
            spot = to_float(bars[0].get("c"), 0.0) if bars else 0.0
            open_price = to_float(bars[0].get("o")) if bars else None

            rows = await self._snapshot(client, symbol, spot)

        if spot <= 0:
            # Fall back to the underlying price embedded in the snapshot
            for row in rows:
                price = to_float((row.get("underlying_asset") or {}).get("price"))
                if price and price > 0:
                    spot = price
                    break

        change, change_pct = change_from_previous(spot, open_price)
        return build_chain(
            symbol,
            self.name,
            self._parse_rows(rows, today),
            spot_price=spot,
            company_name=company_name,
            change_24h=change,
            change_24h_percent=change_pct,
        )

    async def _company_name(self, client: httpx.AsyncClient, symbol: str) -> str | None:
        try:
            data = await get_json(
                client,
                f"{POLYGON_BASE_URL}/v3/reference/tickers/{symbol}",
                self.name,
                params={"apiKey": self.api_key},
            )
        except ProviderAuthError:
            raise
        except ProviderError:
            logger.debug("Polygon company name lookup failed for %s", symbol)
            return None
        results = data.get("results")
        if not isinstance(results, dict):
            return None
        return results.get("name") or results.get("description")

    async def _snapshot(
        self, client: httpx.AsyncClient, symbol: str, spot: float
    ) -> list[dict]:
        params: dict[str, str | int | float] = {
            "limit": SNAPSHOT_PAGE_LIMIT,
            "apiKey": self.api_key,
        }
        if spot > 0:
            params["strike_price.gte"] = round(spot * STRIKE_WINDOW[0], 2)
            params["strike_price.lte"] = round(spot * STRIKE_WINDOW[1], 2)

        data = await get_json(
            client,
            f"{POLYGON_BASE_URL}/v3/snapshot/options/{symbol}",
            self.name,
            params=params,
        )
        rows = list(data.get("results") or [])

        next_url = data.get("next_url")
        pages = 1
        while next_url and pages < MAX_PAGES:
            # next_url carries the cursor but not the key
            page = await get_json(
                client, next_url, self.name, params={"apiKey": self.api_key}
            )
            rows.extend(page.get("results") or [])
            next_url = page.get("next_url")
            pages += 1

        logger.debug("Polygon returned %d snapshot rows for %s", len(rows), symbol)
        return rows

    def _parse_rows(self, rows: list[dict], today: date) -> list[Contract]:
        contracts: list[Contract] = []
        for row in rows:
            details = row.get("details") or {}
            try:
                expiry = date.fromisoformat(str(details.get("expiration_date")))
            except ValueError:
                logger.debug("Dropping Polygon row with bad expiry: %s", details)
                continue
            contract = make_contract(
                strike=details.get("strike_price"),
                expiry=expiry,
                option_type=str(details.get("contract_type", "")),
                today=today,
                open_interest=row.get("open_interest"),
                volume=(row.get("day") or {}).get("volume"),
                implied_volatility=row.get("implied_volatility"),
            )
            if contract:
                contracts.append(contract)
        return contracts
