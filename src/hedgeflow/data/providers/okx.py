import logging
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
from hedgeflow.data.tickers import CRYPTO_NAMES
from hedgeflow.models.common import InstrumentClass
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

OKX_BASE_URL = "https://www.okx.com/api/v5"
SUPPORTED = frozenset({"BTC", "ETH", "SOL"})


def parse_okx_expiry(code: str) -> date | None:
    """'240329' (YYMMDD) or '20240329' (YYYYMMDD) -> date."""
    if not code.isdigit():
        return None
    try:
        if len(code) == 6:
            return date(2000 + int(code[:2]), int(code[2:4]), int(code[4:6]))
        if len(code) == 8:
            return date(int(code[:4]), int(code[4:6]), int(code[6:8]))
    except ValueError:
        return None
    return None


class OKXProvider:
    """BTC, ETH and SOL options from OKX's public v5 API."""

    name = "OKX"
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
        underlying = f"{currency}-USD"

        async with open_client(self._client, self._timeout) as client:
            spot, previous = await self._spot(client, currency)
            instruments = await self._data(
                client,
                "public/instruments",
                {"instType": "OPTION", "uly": underlying},
            )
            interest = await self._data(
                client,
                "public/open-interest",
                {"instType": "OPTION", "uly": underlying},
            )
            summary = await self._summary(client, underlying)

        oi_by_id = {row.get("instId"): row.get("oi") for row in interest}
        change, change_pct = change_from_previous(spot, previous)
        return build_chain(
            currency,
            self.name,
            self._parse_instruments(instruments, oi_by_id, summary, today),
            spot_price=spot,
            company_name=CRYPTO_NAMES.get(currency),
            change_24h=change,
            change_24h_percent=change_pct,
        )

    async def _data(
        self, client: httpx.AsyncClient, path: str, params: dict
    ) -> list[dict]:
        payload = await get_json(
            client, f"{OKX_BASE_URL}/{path}", self.name, params=params
        )
        code = str(payload.get("code", "0"))
        if code != "0":
            raise ProviderTransportError(
                self.name, f"{path}: code {code} {payload.get('msg', '')}".strip()
            )
        return payload.get("data") or []

    async def _spot(
        self, client: httpx.AsyncClient, currency: str
    ) -> tuple[float, float | None]:
        try:
            rows = await self._data(
                client, "market/ticker", {"instId": f"{currency}-USDT"}
            )
            if rows:
                price = to_float(rows[0].get("last"), 0.0)
                if price > 0:
                    return price, to_float(rows[0].get("open24h"))
        except ProviderError as e:
            logger.debug("OKX spot ticker failed: %s", e)

        try:
            rows = await self._data(
                client, "market/index-tickers", {"instId": f"{currency}-USD"}
            )
            if rows:
                return to_float(rows[0].get("idxPx"), 0.0), None
        except ProviderError as e:
            logger.debug("OKX index ticker failed: %s", e)
        return 0.0, None

    async def _summary(
        self, client: httpx.AsyncClient, underlying: str
    ) -> dict[str, float]:
        """Mark volatility per instrument; best effort."""
        try:
            rows = await self._data(client, "public/opt-summary", {"uly": underlying})
        except ProviderError as e:
            logger.debug("OKX option summary failed: %s", e)
            return {}
        marks: dict[str, float] = {}
        for row in rows:
            vol = to_float(row.get("markVol"))
            if vol:
                marks[row.get("instId")] = vol
        return marks

    def _parse_instruments(
        self,
        instruments: list[dict],
        oi_by_id: dict,
        marks: dict[str, float],
        today: date,
    ) -> list[Contract]:
        contracts: list[Contract] = []
        for inst in instruments:
            inst_id = str(inst.get("instId", ""))
            parts = inst_id.split("-")
            if len(parts) != 5:
                logger.debug("Dropping OKX instrument %r", inst_id)
                continue
            expiry = parse_okx_expiry(parts[2])
            if expiry is None:
                logger.debug("Dropping OKX instrument %r", inst_id)
                continue
            contract = make_contract(
                strike=inst.get("stk") or parts[3],
                expiry=expiry,
                option_type=parts[4],
                today=today,
                open_interest=oi_by_id.get(inst_id, 0),
                implied_volatility=marks.get(inst_id),
            )
            if contract:
                contracts.append(contract)
        return contracts
