import asyncio
from datetime import UTC, datetime, timedelta

from hedgeflow.config import CacheConfig
from hedgeflow.data.cache import OptionsChainCache, format_age
from hedgeflow.data.synthetic import generate_synthetic_chain
from hedgeflow.models.common import ContractType, SourceState
from hedgeflow.models.options import Contract, OptionsChain

# 10:00 in New York (EDT)
MORNING = datetime(2025, 3, 10, 14, 0, tzinfo=UTC)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCascade:
    def __init__(self, synthetic: bool = False, delay: float = 0.0) -> None:
        self.synthetic = synthetic
        self.delay = delay
        self.calls: list[tuple[str, bool]] = []

    async def fetch(self, ticker: str, force: bool = False, now=None) -> OptionsChain:
        self.calls.append((ticker, force))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.synthetic:
            return generate_synthetic_chain(ticker, seed=1)
        return OptionsChain(
            ticker=ticker,
            spot_price=100.0,
            calls=[Contract(strike=100, open_interest=5, expiration_days=11, type=ContractType.CALL)],
            sources=["Live"],
        )


def _cache(cascade=None, clock=None) -> tuple[OptionsChainCache, FakeCascade, Clock]:
    cascade = cascade or FakeCascade()
    clock = clock or Clock(MORNING)
    return OptionsChainCache(cascade, CacheConfig(), clock=clock), cascade, clock


class TestRefreshPolicy:
    def test_missing_entry(self):
        cache, _, _ = _cache()
        assert cache.should_refresh("AAPL")

    def test_fresh_entry(self):
        cache, _, clock = _cache()
        asyncio.run(cache.get("AAPL"))
        assert not cache.should_refresh("AAPL")

    def test_approaching_scheduled_time(self):
        cache, _, clock = _cache()
        asyncio.run(cache.get("AAPL"))
        clock.advance(hours=1, minutes=35)  # 11:35, noon refresh is 25 minutes away
        assert cache.should_refresh("AAPL")

    def test_max_age(self):
        # 16:30 New York
        cache, _, clock = _cache(clock=Clock(datetime(2025, 3, 10, 20, 30, tzinfo=UTC)))
        asyncio.run(cache.get("AAPL"))
        clock.advance(hours=3, minutes=30)
        assert not cache.should_refresh("AAPL")
        clock.advance(hours=5)
        assert cache.should_refresh("AAPL")

    def test_hours_until_next_wraps_past_midnight(self):
        cache, _, _ = _cache()
        late = datetime(2025, 3, 11, 3, 0, tzinfo=UTC)  # 23:00 New York
        assert abs(cache.hours_until_next_refresh(late) - 10.5) < 1e-9
        early = datetime(2025, 3, 10, 13, 10, tzinfo=UTC)  # 09:10 New York
        assert abs(cache.hours_until_next_refresh(early) - 1 / 3) < 1e-9

    def test_empty_schedule(self):
        cache = OptionsChainCache(FakeCascade(), CacheConfig(refresh_hours=[]))
        assert cache.hours_until_next_refresh(MORNING) == float("inf")


class TestGet:
    def test_serves_cached(self):
        cache, cascade, _ = _cache()

        async def run():
            first = await cache.get("AAPL")
            second = await cache.get("aapl")
            return first, second

        first, second = asyncio.run(run())
        assert first is second
        assert cascade.calls == [("AAPL", False)]
        assert cache.state("AAPL") == SourceState.HEALTHY

    def test_refetches_when_stale(self):
        cache, cascade, clock = _cache()
        asyncio.run(cache.get("AAPL"))
        clock.advance(hours=9)
        asyncio.run(cache.get("AAPL"))
        assert len(cascade.calls) == 2

    def test_single_flight(self):
        cache, cascade, _ = _cache(FakeCascade(delay=0.05))

        async def run():
            return await asyncio.gather(cache.get("NVDA"), cache.get("NVDA"))

        a, b = asyncio.run(run())
        assert a is b
        assert cascade.calls == [("NVDA", False)]

    def test_synthetic_is_sticky(self):
        cache, cascade, clock = _cache(FakeCascade(synthetic=True))
        chain = asyncio.run(cache.get("ZZZZ"))
        assert chain.is_synthetic
        assert cache.state("ZZZZ") == SourceState.SYNTHETIC_ONLY

        clock.advance(hours=12)
        again = asyncio.run(cache.get("ZZZZ"))
        assert again is chain
        assert len(cascade.calls) == 1

    def test_force_refresh(self):
        cascade = FakeCascade(synthetic=True)
        cache, _, _ = _cache(cascade)
        asyncio.run(cache.get("AAPL"))

        cascade.synthetic = False
        chain = asyncio.run(cache.get("AAPL", force_refresh=True))
        assert not chain.is_synthetic
        assert cascade.calls[-1] == ("AAPL", True)
        assert cache.state("AAPL") == SourceState.HEALTHY

    def test_alias_shares_entry(self):
        cache, cascade, _ = _cache()
        asyncio.run(cache.get("tesla"))
        assert cascade.calls == [("TSLA", False)]
        assert cache.info("TSLA") is not None


class TestInfo:
    def test_age(self):
        cache, _, clock = _cache()
        asyncio.run(cache.get("AAPL"))
        clock.advance(minutes=7)
        assert cache.info("AAPL").age == "7m ago"
        clock.advance(hours=2, minutes=-2)
        info = cache.info("AAPL")
        assert info.age == "2h 5m ago"
        assert info.timestamp == MORNING

    def test_unknown(self):
        cache, _, _ = _cache()
        assert cache.info("AAPL") is None

    def test_clear(self):
        cache, _, _ = _cache()

        async def run():
            await cache.get("AAPL")
            await cache.get("MSFT")

        asyncio.run(run())
        cache.clear("aapl")
        assert cache.info("AAPL") is None
        assert cache.info("MSFT") is not None
        cache.clear_all()
        assert cache.info("MSFT") is None
        assert cache.state("MSFT") == SourceState.UNKNOWN

    def test_clear_all_drops_fetch_bookkeeping(self):
        cache, cascade, _ = _cache()
        asyncio.run(cache.get("AAPL"))
        cache.clear_all()
        assert cache._locks == {}
        assert cache._generations == {}

        asyncio.run(cache.get("AAPL"))
        assert len(cascade.calls) == 2


class TestFormatAge:
    def test_minutes(self):
        assert format_age(timedelta(minutes=59, seconds=59)) == "59m ago"

    def test_hours(self):
        assert format_age(timedelta(hours=1)) == "1h 0m ago"

    def test_negative_clamped(self):
        assert format_age(timedelta(seconds=-5)) == "0m ago"
