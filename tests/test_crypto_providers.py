import asyncio
from datetime import UTC, date, datetime

import httpx
import pytest

from hedgeflow.data.errors import ProviderNotFoundError, ProviderTransportError
from hedgeflow.data.providers.bybit import BybitProvider
from hedgeflow.data.providers.deribit import DeribitProvider, parse_deribit_expiry
from hedgeflow.data.providers.okx import OKXProvider, parse_okx_expiry

NOW = datetime(2025, 3, 10, 15, 0, tzinfo=UTC)


def _fetch(make_provider, handler, ticker="BTC"):
    async def go():
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as client:
            return await make_provider(client).fetch(ticker, now=NOW)

    return asyncio.run(go())


def _json(payload, status=200):
    return httpx.Response(status, json=payload)


def _no_requests(request):
    raise AssertionError(f"unexpected request to {request.url}")


# --- Deribit ---

DERIBIT_INSTRUMENTS = [
    {"instrument_name": "BTC-21MAR25-50000-C", "strike": 50000.0},
    {"instrument_name": "BTC-21MAR25-50000-P", "strike": 50000.0},
    {"instrument_name": "BTC-28MAR25-40000-P", "strike": 40000.0},
    {"instrument_name": "BTC-14MAR25-50000-C", "strike": 50000.0},
    {"instrument_name": "BTC-SOON-1-C"},
]
DERIBIT_BOOKS = [
    {
        "instrument_name": "BTC-21MAR25-50000-C",
        "open_interest": 120.5,
        "volume": 10.0,
        "mark_iv": 55.0,
        "underlying_price": 45010.0,
    },
    {"instrument_name": "BTC-21MAR25-50000-P", "open_interest": 80.0, "mark_iv": 60.0},
]


def deribit_handler(ticker_ok=True, index_ok=True, books=None):
    def handler(request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        if method == "ticker":
            if not ticker_ok:
                return _json({"error": {"message": "down"}}, status=503)
            return _json(
                {
                    "result": {
                        "last_price": 45000.0,
                        "index_price": 44990.0,
                        "stats": {"price_change": 2.5},
                    }
                }
            )
        if method == "get_index_price":
            if not index_ok:
                return _json({}, status=503)
            return _json({"result": {"index_price": 44000.0}})
        if method == "get_instruments":
            assert request.url.params["kind"] == "option"
            return _json({"result": DERIBIT_INSTRUMENTS})
        if method == "get_book_summary_by_currency":
            return _json({"result": DERIBIT_BOOKS if books is None else books})
        return _json({}, status=404)

    return handler


class TestDeribitProvider:
    def test_fetch(self):
        chain = _fetch(lambda c: DeribitProvider(client=c), deribit_handler())
        assert chain.ticker == "BTC"
        assert chain.company_name == "Bitcoin"
        assert chain.spot_price == 45000.0
        assert chain.change_24h_percent == 2.5
        assert chain.sources == ["Deribit"]
        assert len(chain.calls) == 1
        assert len(chain.puts) == 2

        call = chain.calls[0]
        assert call.strike == 50000.0
        assert call.open_interest == 120
        assert call.volume == 10
        assert abs(call.implied_volatility - 0.55) < 1e-12
        assert call.expiration_days == 11

        quarterly = [p for p in chain.puts if p.strike == 40000.0][0]
        assert quarterly.open_interest == 0
        assert quarterly.expiration_days == 18

    def test_index_price_fallback(self):
        chain = _fetch(
            lambda c: DeribitProvider(client=c), deribit_handler(ticker_ok=False)
        )
        assert chain.spot_price == 44000.0

    def test_book_summary_fallback(self):
        chain = _fetch(
            lambda c: DeribitProvider(client=c),
            deribit_handler(ticker_ok=False, index_ok=False),
        )
        assert chain.spot_price == 45010.0

    def test_fractional_open_interest_rounds(self):
        books = [
            {"instrument_name": "BTC-21MAR25-50000-C", "open_interest": 0.6},
            {"instrument_name": "BTC-21MAR25-50000-P", "open_interest": 0.4},
        ]
        chain = _fetch(
            lambda c: DeribitProvider(client=c), deribit_handler(books=books)
        )
        assert chain.calls[0].open_interest == 1
        assert [p.open_interest for p in chain.puts if p.strike == 50000.0] == [0]

    def test_unsupported_currency(self):
        with pytest.raises(ProviderNotFoundError):
            _fetch(lambda c: DeribitProvider(client=c), _no_requests, ticker="SOL")

    def test_parse_expiry(self):
        assert parse_deribit_expiry("29DEC23") == date(2023, 12, 29)
        assert parse_deribit_expiry("5JAN24") == date(2024, 1, 5)
        assert parse_deribit_expiry("31FEB24") is None
        assert parse_deribit_expiry("PERPETUAL") is None


# --- OKX ---

def okx_handler(instruments_code="0"):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v5/")
        if path == "market/ticker":
            return _json({"code": "0", "data": [{"last": "45000", "open24h": "44000"}]})
        if path == "public/instruments":
            assert request.url.params["uly"] == "BTC-USD"
            if instruments_code != "0":
                return _json(
                    {"code": instruments_code, "msg": "Instrument ID does not exist", "data": []}
                )
            return _json(
                {
                    "code": "0",
                    "data": [
                        {"instId": "BTC-USD-250321-50000-C", "stk": "50000"},
                        {"instId": "BTC-USD-20250328-40000-P"},
                        {"instId": "BTC-USD-250314-50000-C", "stk": "50000"},
                        {"instId": "BTC-USD-SWAP"},
                    ],
                }
            )
        if path == "public/open-interest":
            return _json(
                {
                    "code": "0",
                    "data": [
                        {"instId": "BTC-USD-250321-50000-C", "oi": "300"},
                        {"instId": "BTC-USD-20250328-40000-P", "oi": "150"},
                    ],
                }
            )
        if path == "public/opt-summary":
            return _json(
                {"code": "0", "data": [{"instId": "BTC-USD-250321-50000-C", "markVol": "0.6"}]}
            )
        return _json({}, status=404)

    return handler


class TestOKXProvider:
    def test_fetch(self):
        chain = _fetch(lambda c: OKXProvider(client=c), okx_handler())
        assert chain.spot_price == 45000.0
        assert chain.change_24h == 1000.0
        assert chain.sources == ["OKX"]

        [call] = chain.calls
        assert call.strike == 50000.0
        assert call.open_interest == 300
        assert call.implied_volatility == 0.6

        [put] = chain.puts
        assert put.strike == 40000.0
        assert put.open_interest == 150
        assert put.expiration_days == 18
        assert put.implied_volatility is None

    def test_error_code(self):
        with pytest.raises(ProviderTransportError):
            _fetch(lambda c: OKXProvider(client=c), okx_handler(instruments_code="51001"))

    def test_unsupported_currency(self):
        with pytest.raises(ProviderNotFoundError):
            _fetch(lambda c: OKXProvider(client=c), _no_requests, ticker="DOGE")

    def test_parse_expiry(self):
        assert parse_okx_expiry("250329") == date(2025, 3, 29)
        assert parse_okx_expiry("20240329") == date(2024, 3, 29)
        assert parse_okx_expiry("2403") is None
        assert parse_okx_expiry("25133") is None


# --- Bybit ---

BYBIT_OPTIONS = [
    {
        "symbol": "BTC-21MAR25-50000-C",
        "openInterest": "12.5",
        "volume24h": "3",
        "markIv": "0.52",
        "underlyingPrice": "45020",
    },
    {
        "symbol": "BTC-28MAR25-40000-P-USDT",
        "openInterest": "8",
        "volume24h": "1",
        "markIv": "0.61",
    },
    {"symbol": "BTC-14MAR25-50000-C", "openInterest": "99"},
    {"symbol": "junk"},
]


def bybit_handler(spot_rows=None, option_code=0):
    def handler(request: httpx.Request) -> httpx.Response:
        category = request.url.params["category"]
        if category == "spot":
            assert request.url.params["symbol"] == "BTCUSDT"
            rows = (
                [{"lastPrice": "45000", "prevPrice24h": "45500"}]
                if spot_rows is None
                else spot_rows
            )
            return _json({"retCode": 0, "result": {"list": rows}})
        if option_code:
            return _json({"retCode": option_code, "retMsg": "params error", "result": {}})
        assert request.url.params["baseCoin"] == "BTC"
        return _json({"retCode": 0, "result": {"list": BYBIT_OPTIONS}})

    return handler


class TestBybitProvider:
    def test_fetch(self):
        chain = _fetch(lambda c: BybitProvider(client=c), bybit_handler())
        assert chain.spot_price == 45000.0
        assert chain.change_24h == -500.0
        assert chain.sources == ["Bybit"]

        [call] = chain.calls
        assert call.open_interest == 12
        assert call.volume == 3
        assert call.implied_volatility == 0.52

        [put] = chain.puts
        assert put.strike == 40000.0
        assert put.expiration_days == 18

    def test_spot_from_option_ticker(self):
        chain = _fetch(lambda c: BybitProvider(client=c), bybit_handler(spot_rows=[]))
        assert chain.spot_price == 45020.0
        assert chain.change_24h is None

    def test_error_code(self):
        with pytest.raises(ProviderTransportError):
            _fetch(lambda c: BybitProvider(client=c), bybit_handler(option_code=10001))

    def test_unsupported_currency(self):
        with pytest.raises(ProviderNotFoundError):
            _fetch(lambda c: BybitProvider(client=c), _no_requests, ticker="XRP")
