import logging
from datetime import date, datetime

import httpx
import pandas as pd

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

MARKETDATA_BASE_URL = "https://api.marketdata.app/v1"
CHAIN_COLUMNS = (
    "strike",
    "side",
    "expiration",
    "openInterest",
    "volume",
    "iv",
    "underlyingPrice",
)


def _first(values: object) -> object:
    if isinstance(values, list):
        return values[0] if values else None
    return values


class MarketDataProvider:
    """Equity options from MarketData.app (columnar JSON responses)."""

    name = "MarketData.app"
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
                f"{MARKETDATA_BASE_URL}/options/chain/{symbol}/",
                self.name,
                params={"token": self.api_key},
            )
        self._check_status(data, symbol)

        frame = self._to_frame(data)
        spot = to_float(_first(quote.get("last")), 0.0) if quote else 0.0
        if spot <= 0 and "underlyingPrice" in frame:
            prices = frame["underlyingPrice"].dropna()
            spot = float(prices.iloc[0]) if not prices.empty else 0.0

        return build_chain(
            symbol,
            self.name,
            self._parse_frame(frame, today),
            spot_price=spot,
            change_24h=to_float(_first(quote.get("change"))) if quote else None,
            change_24h_percent=(
                to_float(_first(quote.get("changepct"))) if quote else None
            ),
        )

    async def _quote(self, client: httpx.AsyncClient, symbol: str) -> dict | None:
        try:
            data = await get_json(
                client,
                f"{MARKETDATA_BASE_URL}/stocks/quotes/{symbol}/",
                self.name,
                params={"token": self.api_key},
            )
        except ProviderAuthError:
            raise
        except ProviderError:
            logger.debug("MarketData quote unavailable for %s", symbol)
            return None
        if data.get("s") != "ok":
            return None
        if isinstance(data.get("changepct"), list):
            # API reports change percent as a fraction
            data["changepct"] = [
                v * 100 if isinstance(v, int | float) else v
                for v in data["changepct"]
            ]
        return data

    def _check_status(self, data: dict, symbol: str) -> None:
        status = data.get("s")
        if status == "ok":
            return
        if status == "no_data":
            raise ProviderNotFoundError(self.name, f"no options data for {symbol}")
        message = str(data.get("errmsg", "unexpected response"))
        if "token" in message.lower() or "auth" in message.lower():
            raise ProviderAuthError(self.name, message)
        raise ProviderTransportError(self.name, message)

    def _to_frame(self, data: dict) -> pd.DataFrame:
        columns = {k: data[k] for k in CHAIN_COLUMNS if isinstance(data.get(k), list)}
        lengths = {len(v) for v in columns.values()}
        if len(lengths) != 1:
            raise ProviderTransportError(self.name, "ragged chain columns")
        return pd.DataFrame(columns)

    def _parse_frame(self, frame: pd.DataFrame, today: date) -> list[Contract]:
        if frame.empty or not {"strike", "side", "expiration"} <= set(frame.columns):
            return []

        expiries = pd.to_datetime(
            frame["expiration"], unit="s", utc=True, errors="coerce"
        ).dt.date
        contracts: list[Contract] = []
        for idx, row in frame.iterrows():
            expiry = expiries.loc[idx]
            if pd.isna(expiry):
                continue
            contract = make_contract(
                strike=row.get("strike"),
                expiry=expiry,
                option_type=str(row.get("side", "")),
                today=today,
                open_interest=row.get("openInterest", 0),
                volume=row.get("volume"),
                implied_volatility=row.get("iv"),
            )
            if contract:
                contracts.append(contract)
        return contracts
