"""In-memory chain cache with a fixed intraday refresh schedule."""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from hedgeflow.config import CacheConfig
from hedgeflow.data.cascade import ProviderCascade
from hedgeflow.data.tickers import normalize_ticker
from hedgeflow.models.analysis import CacheInfo
from hedgeflow.models.common import SourceState
from hedgeflow.models.options import OptionsChain

logger = logging.getLogger(__name__)


class CachedChain(BaseModel):
    chain: OptionsChain
    timestamp: datetime


def format_age(age: timedelta) -> str:
    total_minutes = max(0, int(age.total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m ago"
    return f"{minutes}m ago"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OptionsChainCache:
    """Latest chain per ticker, refreshed around scheduled market times.

    Only one fetch per ticker is in flight at a time; callers that queue
    behind it reuse whatever the running fetch stored. A ticker whose last
    fetch produced synthetic data is served from the cache until a forced
    refresh.
    """

    def __init__(
        self,
        cascade: ProviderCascade,
        config: CacheConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cascade = cascade
        self.config = config or CacheConfig()
        self._clock = clock or _utcnow
        self._tz = ZoneInfo(self.config.market_timezone)
        self._entries: dict[str, CachedChain] = {}
        self._states: dict[str, SourceState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._generations: dict[str, int] = {}

    def hours_until_next_refresh(self, now: datetime) -> float:
        hours = sorted(self.config.refresh_hours)
        if not hours:
            return float("inf")
        local = now.astimezone(self._tz)
        current = local.hour + local.minute / 60
        for h in hours:
            if h > current:
                return h - current
        # wrap to the first slot tomorrow
        return 24 - current + hours[0]

    def should_refresh(self, ticker: str, now: datetime | None = None) -> bool:
        entry = self._entries.get(normalize_ticker(ticker))
        if entry is None:
            return True
        now = now or self._clock()
        hours_since = (now - entry.timestamp).total_seconds() / 3600
        if hours_since > self.config.max_age_hours:
            return True
        lead_hours = self.config.refresh_lead_minutes / 60
        return self.hours_until_next_refresh(now) < lead_hours

    def state(self, ticker: str) -> SourceState:
        return self._states.get(normalize_ticker(ticker), SourceState.UNKNOWN)

    async def get(self, ticker: str, force_refresh: bool = False) -> OptionsChain:
        key = normalize_ticker(ticker)
        if force_refresh:
            self.clear(key)
        else:
            cached = self._usable(key)
            if cached is not None:
                return cached

        generation = self._generations.get(key, 0)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if not force_refresh and self._generations.get(key, 0) != generation:
                entry = self._entries.get(key)
                if entry is not None:
                    logger.debug("Reusing %s fetched by a concurrent request", key)
                    return entry.chain

            logger.debug("Refreshing %s (forced=%s)", key, force_refresh)
            chain = await self.cascade.fetch(key, force=force_refresh)
            self._store(key, chain)
            return chain

    def _usable(self, key: str) -> OptionsChain | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._states.get(key) == SourceState.SYNTHETIC_ONLY:
            return entry.chain
        if not self.should_refresh(key):
            return entry.chain
        return None

    def _store(self, key: str, chain: OptionsChain) -> None:
        self._entries[key] = CachedChain(chain=chain, timestamp=self._clock())
        self._generations[key] = self._generations.get(key, 0) + 1
        if chain.is_synthetic:
            self._states[key] = SourceState.SYNTHETIC_ONLY
        else:
            self._states[key] = SourceState.HEALTHY

    def info(self, ticker: str) -> CacheInfo | None:
        entry = self._entries.get(normalize_ticker(ticker))
        if entry is None:
            return None
        return CacheInfo(
            timestamp=entry.timestamp,
            age=format_age(self._clock() - entry.timestamp),
        )

    def clear(self, ticker: str) -> None:
        key = normalize_ticker(ticker)
        self._entries.pop(key, None)
        self._states.pop(key, None)

    def clear_all(self) -> None:
        self._entries.clear()
        self._states.clear()
        self._locks.clear()
        self._generations.clear()
