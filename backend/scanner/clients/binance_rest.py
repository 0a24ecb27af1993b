"""Binance Futures REST API client for 24h tickers, candles and open interest."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from engine.errors import MarketDataError
from engine.models import Candle, MarketSummary

logger = logging.getLogger(__name__)

# Statuses Binance uses for request-weight limits (418 = temporary IP ban)
RATE_LIMIT_STATUSES = (418, 429)


class RateLimiter:
    """Enforce a minimum spacing between API calls."""

    def __init__(self, min_interval: float = 0.5):
        self.interval = min_interval
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect the spacing."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait_time = self.last_call + self.interval - loop.time()
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = loop.time()


class BinanceRestClient:
    """Binance Futures REST API client with rate limiting and retry/backoff."""

    BASE_URL = "https://fapi.binance.com"

    def __init__(
        self,
        api_key: str = "",
        base_url: str | None = None,
        request_interval: float = 0.5,
        max_retries: int = 3,
        retry_base_delay: float = 2.0,
        retry_max_delay: float = 60.0,
        open_interest_period: str = "1d",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url or self.BASE_URL
        self.rate_limiter = RateLimiter(request_interval)
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.open_interest_period = open_interest_period
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings) -> "BinanceRestClient":
        return cls(
            api_key=settings.binance_api_key,
            base_url=settings.binance_base_url,
            request_interval=settings.request_interval,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
            retry_max_delay=settings.retry_max_delay,
            open_interest_period=settings.open_interest_period,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.api_key:
                headers["X-MBX-APIKEY"] = self.api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=30.0,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _backoff(self, attempt: int) -> float:
        return min(self.retry_base_delay * (2 ** attempt), self.retry_max_delay)

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        """Delay before retrying a rate-limited request."""
        header = response.headers.get("Retry-After")
        if header:
            try:
                return min(float(header), self.retry_max_delay)
            except ValueError:
                logger.debug(f"Ignoring malformed Retry-After header: {header!r}")
        return self._backoff(attempt)

    async def _request(
        self, method: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any:
        """
        Make an API request with rate limiting and retries.

        Rate-limit responses (429/418), server errors and transport errors are
        retried with exponential backoff. Other client errors fail immediately.

        Raises:
            MarketDataError: If the request did not succeed within max_retries
        """
        client = await self._get_client()
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            await self.rate_limiter.acquire()
            try:
                response = await client.request(method, endpoint, params=params)
            except httpx.TransportError as e:
                last_error = e
                delay = self._backoff(attempt)
                logger.warning(
                    f"{endpoint} request failed ({e!r}), "
                    f"attempt {attempt + 1}/{self.max_retries}, retrying in {delay:.1f}s"
                )
            else:
                if response.status_code in RATE_LIMIT_STATUSES:
                    last_error = MarketDataError(f"HTTP {response.status_code} on {endpoint}")
                    delay = self._retry_after(response, attempt)
                    logger.warning(
                        f"Rate limited ({response.status_code}) on {endpoint}, "
                        f"attempt {attempt + 1}/{self.max_retries}, waiting {delay:.1f}s"
                    )
                elif response.status_code >= 500:
                    last_error = MarketDataError(f"HTTP {response.status_code} on {endpoint}")
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Server error {response.status_code} on {endpoint}, "
                        f"attempt {attempt + 1}/{self.max_retries}, retrying in {delay:.1f}s"
                    )
                elif response.is_error:
                    raise MarketDataError(
                        f"HTTP {response.status_code} on {endpoint}: {response.text[:200]}"
                    )
                else:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise MarketDataError(f"Malformed JSON from {endpoint}") from e

            if attempt < self.max_retries - 1:
                await asyncio.sleep(delay)

        raise MarketDataError(
            f"{endpoint} failed after {self.max_retries} attempts: {last_error}"
        ) from last_error

    async def get_all_tickers(self) -> list[MarketSummary]:
        """Fetch the 24h ticker for every futures symbol."""
        data = await self._request("GET", "/fapi/v1/ticker/24hr")
        if not isinstance(data, list):
            raise MarketDataError("Unexpected 24hr ticker payload")

        summaries = []
        for item in data:
            try:
                summaries.append(
                    MarketSummary(
                        symbol=item["symbol"],
                        last_price=float(item["lastPrice"]),
                        price_change_percent=float(item["priceChangePercent"]),
                        quote_volume=float(item["quoteVolume"]),
                        volume=float(item.get("volume", 0.0)),
                        close_time=datetime.fromtimestamp(
                            item["closeTime"] / 1000, tz=timezone.utc
                        ) if item.get("closeTime") else None,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed ticker {item!r}: {e}")

        logger.info(f"Fetched {len(summaries)} 24h tickers")
        return summaries

    async def get_candles(
        self, symbol: str, interval: str = "1h", limit: int = 100
    ) -> list[Candle]:
        """
        Fetch recent candles from Binance.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: Candle interval (e.g., "15m", "1h")
            limit: Number of candles (max 1500)

        Returns:
            Candles ordered oldest to newest
        """
        params = {
            "symbol": symbol,
            "interval": interval,
            "limit": min(limit, 1500),
        }
        data = await self._request("GET", "/fapi/v1/klines", params)
        if not isinstance(data, list):
            raise MarketDataError(f"Invalid kline payload for {symbol}")

        try:
            candles = [
                Candle(
                    timestamp=datetime.fromtimestamp(item[0] / 1000, tz=timezone.utc),
                    open=float(item[1]),
                    high=float(item[2]),
                    low=float(item[3]),
                    close=float(item[4]),
                    volume=float(item[5]),
                )
                for item in data
            ]
        except (IndexError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed kline row for {symbol}: {e}") from e

        candles.sort(key=lambda c: c.timestamp)
        return candles

    async def get_open_interest(
        self, symbol: str, period: str | None = None
    ) -> float | None:
        """
        Fetch the latest aggregated open interest value for a symbol.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            period: Statistics period ("5m" ... "1d"), defaults to open_interest_period

        Returns:
            sumOpenInterestValue in USDT, or None if Binance has no statistics
        """
        params = {
            "symbol": symbol,
            "period": period or self.open_interest_period,
            "limit": 1,
        }
        data = await self._request("GET", "/futures/data/openInterestHist", params)
        if not isinstance(data, list):
            raise MarketDataError(f"Invalid open interest payload for {symbol}")
        if not data:
            return None

        try:
            return float(data[-1]["sumOpenInterestValue"])
        except (KeyError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed open interest row for {symbol}: {e}") from e
