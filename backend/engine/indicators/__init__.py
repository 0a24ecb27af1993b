"""Technical indicators (pure math, no I/O)."""

from engine.indicators.indicators import (
    ema,
    rolling_mean,
    linear_slope,
    price_trend,
    macd,
    rsi,
    rsi_series,
    bollinger_bands,
    moving_averages,
    on_balance_volume,
    vwap,
    volume_profile,
    kdj,
    williams_r,
)
from engine.indicators.patterns import detect_patterns
from engine.indicators.calculator import IndicatorCalculator, validate_snapshot

__all__ = [
    "ema",
    "rolling_mean",
    "linear_slope",
    "price_trend",
    "macd",
    "rsi",
    "rsi_series",
    "bollinger_bands",
    "moving_averages",
    "on_balance_volume",
    "vwap",
    "volume_profile",
    "kdj",
    "williams_r",
    "detect_patterns",
    "IndicatorCalculator",
    "validate_snapshot",
]
