"""Provider protocol and helpers shared by the vendor adapters."""

import logging
import math
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any, Protocol

import httpx

from hedgeflow.data.errors import (
    ProviderAuthError,
    ProviderNotFoundError,
    ProviderTransportError,
)
from hedgeflow.data.expirations import is_standard_expiration
from hedgeflow.models.common import ContractType, InstrumentClass
from hedgeflow.models.options import Contract, OptionsChain

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_HEADERS = {
    "User-Agent": "hedgeflow/0.1 (+https://github.com/hedgeflow)",
    "Accept": "application/json",
}


class OptionsProvider(Protocol):
    """Protocol for options chain sources."""

    name: str
    instrument_class: InstrumentClass

    async def fetch(self, ticker: str, now: datetime | None = None) -> OptionsChain:
        """Return a normalized chain or raise a ProviderError subclass."""
        ...


def resolve_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now


@asynccontextmanager
async def open_client(
    client: httpx.AsyncClient | None,
    timeout: float = DEFAULT_TIMEOUT,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one owned by this call."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(
        timeout=timeout,
        headers=DEFAULT_HEADERS,
        follow_redirects=True,
    ) as owned:
        yield owned


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    provider: str,
    params: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """GET a JSON object, mapping failures onto the provider error types."""
    try:
        resp = await client.get(url, params=params)
    except httpx.TimeoutException as e:
        raise ProviderTransportError(provider, f"timeout requesting {url}") from e
    except httpx.HTTPError as e:
        raise ProviderTransportError(provider, f"request failed: {e}") from e

    if resp.status_code in (401, 403):
        raise ProviderAuthError(
            provider, f"unauthorized ({resp.status_code}), check the API key"
        )
    if resp.status_code == 404:
        raise ProviderNotFoundError(provider, f"not found: {url}")
    if resp.is_error:
        raise ProviderTransportError(
            provider, f"HTTP {resp.status_code} from {url}"
        )

    try:
        data = resp.json()
    except ValueError as e:
        raise ProviderTransportError(provider, "response is not valid JSON") from e
    if not isinstance(data, dict):
        raise ProviderTransportError(
            provider, f"expected a JSON object from {url}, got {type(data).__name__}"
        )
    return data


def to_float(value: Any, default: float | None = None) -> float | None:
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(parsed) or math.isinf(parsed):
        return default
    return parsed


def to_int(value: Any, default: int = 0) -> int:
    parsed = to_float(value)
    if parsed is None:
        return default
    return int(parsed)


def make_contract(
    strike: Any,
    expiry: date,
    option_type: str | ContractType,
    today: date,
    open_interest: Any = 0,
    volume: Any = None,
    implied_volatility: Any = None,
) -> Contract | None:
    """Build a contract, or None for expired, non-standard or invalid rows."""
    days = (expiry - today).days
    if days < 0 or not is_standard_expiration(expiry):
        return None

    strike_value = to_float(strike)
    if strike_value is None or strike_value <= 0:
        return None

    try:
        ctype = (
            option_type
            if isinstance(option_type, ContractType)
            else ContractType.from_code(option_type)
        )
    except ValueError:
        return None

    iv = to_float(implied_volatility)
    vol = None if volume is None else max(0, to_int(volume))
    return Contract(
        strike=strike_value,
        open_interest=max(0, to_int(open_interest)),
        volume=vol,
        implied_volatility=iv if iv and iv > 0 else None,
        expiration_days=days,
        type=ctype,
    )


def build_chain(
    ticker: str,
    provider: str,
    contracts: Iterable[Contract],
    spot_price: float,
    company_name: str | None = None,
    change_24h: float | None = None,
    change_24h_percent: float | None = None,
) -> OptionsChain:
    calls: list[Contract] = []
    puts: list[Contract] = []
    for c in contracts:
        (calls if c.type == ContractType.CALL else puts).append(c)

    if not calls and not puts:
        raise ProviderNotFoundError(
            provider, f"no standard-expiration contracts for {ticker}"
        )

    ivs = [c.implied_volatility for c in (*calls, *puts) if c.implied_volatility]
    return OptionsChain(
        ticker=ticker,
        company_name=company_name,
        spot_price=spot_price,
        change_24h=change_24h,
        change_24h_percent=change_24h_percent,
        implied_volatility=sum(ivs) / len(ivs) if ivs else None,
        calls=calls,
        puts=puts,
        sources=[provider],
    )


def change_from_previous(
    price: float, previous: float | None
) -> tuple[float | None, float | None]:
    """(absolute change, percent change) relative to a previous price."""
    if not previous or previous <= 0 or price <= 0:
        return None, None
    change = price - previous
    return change, change / previous * 100
