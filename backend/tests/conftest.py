"""Shared test fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from engine.models import Candle, MarketSummary

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_candles(
    closes: list[float],
    volumes: list[float] | None = None,
    spread: float = 0.01,
) -> list[Candle]:
    """Candles whose open is the previous close and whose range brackets the body."""
    if volumes is None:
        volumes = [1000.0] * len(closes)

    candles = []
    for i, close in enumerate(closes):
        open_price = closes[i - 1] if i > 0 else close
        top = max(open_price, close)
        bottom = min(open_price, close)
        candles.append(
            Candle(
                timestamp=BASE_TIME + timedelta(hours=i),
                open=open_price,
                high=top * (1 + spread),
                low=bottom * (1 - spread),
                close=close,
                volume=volumes[i],
            )
        )
    return candles


class FakeCandleSource:
    """In-memory candle source with per-symbol delays and failures."""

    def __init__(self, delays=None, failures=None, empty=()):
        self.delays = delays or {}
        self.failures = failures or {}
        self.empty = set(empty)
        self.active = 0
        self.max_active = 0

    async def get_candles(self, symbol, interval, limit):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(symbol, 0.01))
            if symbol in self.failures:
                raise self.failures[symbol]
            if symbol in self.empty:
                return []
            return build_candles([100 + i * 0.5 for i in range(30)])
        finally:
            self.active -= 1


@pytest.fixture
def candle_factory():
    """Factory building a candle series from closes (and optional volumes)."""
    return build_candles


@pytest.fixture
def summary_factory():
    """Factory for 24h market summaries."""

    def _make(
        symbol: str = "BTCUSDT",
        change: float = 12.0,
        quote_volume: float = 250_000_000,
        price: float = 100.0,
    ) -> MarketSummary:
        return MarketSummary(
            symbol=symbol,
            last_price=price,
            price_change_percent=change,
            quote_volume=quote_volume,
        )

    return _make


@pytest.fixture
def uptrend_candles():
    """15 exponentially rising closes on exponentially rising volume."""
    closes = [100 * 1.03**t for t in range(15)]
    volumes = [100 * 1.1**t for t in range(15)]
    return build_candles(closes, volumes)
