"""Candle (OHLCV) and 24h market summary models."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict


class Candle(BaseModel):
    """One OHLCV observation. Series are ordered oldest to newest."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_bullish(self) -> bool:
        """Check if this is a bullish (green) candle."""
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        """Check if this is a bearish (red) candle."""
        return self.close < self.open

    @property
    def body_size(self) -> float:
        """Get the absolute size of the candle body."""
        return abs(self.close - self.open)

    @property
    def range_size(self) -> float:
        """Get the full range (high - low) of the candle."""
        return self.high - self.low

    @property
    def upper_shadow(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_shadow(self) -> float:
        return min(self.open, self.close) - self.low


class MarketSummary(BaseModel):
    """24h ticker statistics for one instrument."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    last_price: float
    price_change_percent: float
    quote_volume: float  # 24h turnover in quote currency (USDT)
    volume: float = 0.0
    close_time: datetime | None = None
    open_interest_value: float | None = None  # USDT, set by the open-interest gate


def closes_of(candles: list[Candle]) -> list[float]:
    """Get list of close prices."""
    return [c.close for c in candles]


def highs_of(candles: list[Candle]) -> list[float]:
    """Get list of high prices."""
    return [c.high for c in candles]


def lows_of(candles: list[Candle]) -> list[float]:
    """Get list of low prices."""
    return [c.low for c in candles]


def volumes_of(candles: list[Candle]) -> list[float]:
    """Get list of volumes."""
    return [c.volume for c in candles]
