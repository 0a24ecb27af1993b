"""Tests for the Binance REST client (HTTP mocked with httpx.MockTransport)."""

import asyncio

import httpx
import pytest

from engine.errors import MarketDataError
from scanner.clients.binance_rest import BinanceRestClient, RateLimiter

KLINE_ROW = [1704067200000, "100.0", "102.0", "99.0", "101.0", "1500.5", 1704070799999]


def make_client(handler, max_retries: int = 3) -> BinanceRestClient:
    return BinanceRestClient(
        request_interval=0,
        max_retries=max_retries,
        retry_base_delay=0,
        retry_max_delay=0,
        transport=httpx.MockTransport(handler),
    )


class TestBinanceRestClient:
    """Tests for BinanceRestClient."""

    @pytest.mark.asyncio
    async def test_get_candles(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            second = [KLINE_ROW[0] + 3_600_000, "101.0", "103.0", "100.0", "102.5", "900"]
            # Out of order on purpose
            return httpx.Response(200, json=[second, KLINE_ROW])

        client = make_client(handler)
        candles = await client.get_candles("BTCUSDT", "1h", 2)
        await client.close()

        assert seen == {"symbol": "BTCUSDT", "interval": "1h", "limit": "2"}
        assert [c.close for c in candles] == [101.0, 102.5]
        assert candles[0].volume == 1500.5
        assert candles[0].timestamp < candles[1].timestamp

    @pytest.mark.asyncio
    async def test_get_all_tickers_skips_malformed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/fapi/v1/ticker/24hr"
            return httpx.Response(200, json=[
                {
                    "symbol": "BTCUSDT",
                    "lastPrice": "42000.5",
                    "priceChangePercent": "12.5",
                    "quoteVolume": "1500000000",
                    "volume": "35000",
                    "closeTime": 1704067200000,
                },
                {"symbol": "BROKEN"},
            ])

        client = make_client(handler)
        summaries = await client.get_all_tickers()
        await client.close()

        assert len(summaries) == 1
        assert summaries[0].symbol == "BTCUSDT"
        assert summaries[0].price_change_percent == 12.5
        assert summaries[0].quote_volume == 1_500_000_000
        assert summaries[0].close_time is not None

    @pytest.mark.asyncio
    async def test_retries_rate_limit(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json=[KLINE_ROW])

        client = make_client(handler)
        candles = await client.get_candles("BTCUSDT")
        await client.close()

        assert len(calls) == 2
        assert len(candles) == 1

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_gives_up(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        client = make_client(handler, max_retries=3)
        with pytest.raises(MarketDataError):
            await client.get_candles("BTCUSDT")
        await client.close()

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[KLINE_ROW])

        client = make_client(handler, max_retries=3)
        candles = await client.get_candles("BTCUSDT")
        await client.close()

        assert len(calls) == 3
        assert len(candles) == 1

    @pytest.mark.asyncio
    async def test_client_error_fails_fast(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})

        client = make_client(handler)
        with pytest.raises(MarketDataError):
            await client.get_candles("NOPE")
        await client.close()

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_malformed_kline_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        client = make_client(handler)
        with pytest.raises(MarketDataError):
            await client.get_candles("BTCUSDT")
        await client.close()

    def test_backoff_is_capped(self):
        client = BinanceRestClient(retry_base_delay=2.0, retry_max_delay=60.0)

        assert client._backoff(0) == 2.0
        assert client._backoff(2) == 8.0
        assert client._backoff(10) == 60.0

    @pytest.mark.asyncio
    async def test_get_open_interest(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen.update(request.url.params)
            return httpx.Response(
                200,
                json=[{
                    "symbol": "BTCUSDT",
                    "sumOpenInterest": "81000.5",
                    "sumOpenInterestValue": "5400000000.25",
                    "timestamp": 1704067200000,
                }],
            )

        client = make_client(handler)
        value = await client.get_open_interest("BTCUSDT")
        await client.close()

        assert value == pytest.approx(5_400_000_000.25)
        assert seen == {
            "path": "/futures/data/openInterestHist",
            "symbol": "BTCUSDT",
            "period": "1d",
            "limit": "1",
        }

    @pytest.mark.asyncio
    async def test_open_interest_without_statistics(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))

        assert await client.get_open_interest("NEWUSDT") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_open_interest_row(self):
        client = make_client(
            lambda request: httpx.Response(200, json=[{"symbol": "BTCUSDT"}])
        )

        with pytest.raises(MarketDataError):
            await client.get_open_interest("BTCUSDT")
        await client.close()


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_spacing(self):
        limiter = RateLimiter(min_interval=0.05)
        loop = asyncio.get_running_loop()

        start = loop.time()
        for _ in range(3):
            await limiter.acquire()

        assert loop.time() - start >= 0.09
