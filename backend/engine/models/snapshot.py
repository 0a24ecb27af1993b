"""Indicator snapshot models.

A snapshot is derived once per analysis run and never mutated. Histories
are stored as tuples so a frozen snapshot cannot be altered through them.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict


class BandPosition(str, Enum):
    """Where the latest close sits relative to the Bollinger bands."""

    OVERBOUGHT = "OVERBOUGHT"
    OVERSOLD = "OVERSOLD"
    NORMAL = "NORMAL"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class MacdPoint(_Frozen):
    """MACD values at one index.

    value is DIF (fast EMA - slow EMA), signal_line is DEA (EMA of DIF),
    histogram is 2 * (DIF - DEA).
    """

    value: float
    signal_line: float
    histogram: float
    momentum_delta: float  # histogram[t] - histogram[t-1]
    trend_strength: float  # |DIF|


class MovingAverages(_Frozen):
    ma5: float
    ma10: float
    ma20: float
    ma50: float | None = None  # only with at least 50 candles


class BollingerBands(_Frozen):
    upper: float
    middle: float
    lower: float
    bandwidth_percent: float
    position: BandPosition = BandPosition.NORMAL


class VolumeProfile(_Frozen):
    current_volume: float
    average_volume: float
    volume_ratio: float
    volume_trend_slope: float
    obv: float
    obv_trend: float
    vwap: float
    vwap_deviation_ratio: float
    volume_price_confirmation: float  # one of -1, -0.5, 0, 1


class Kdj(_Frozen):
    k: float
    d: float
    j: float


class WilliamsR(_Frozen):
    value: float  # [-100, 0]


class PatternMatch(_Frozen):
    """A candlestick pattern found on the latest 1-3 candles."""

    name: str
    confidence: float  # [0, 1]
    directional_signal: float  # [-2, 2], positive is bullish


class PriceData(_Frozen):
    """Raw price arrays kept for downstream consumers."""

    highs: tuple[float, ...]
    lows: tuple[float, ...]
    closes: tuple[float, ...]


class IndicatorSnapshot(_Frozen):
    """All indicators computed from one candle series."""

    current_price: float
    macd: MacdPoint
    macd_history: tuple[MacdPoint, ...]
    rsi: float
    rsi_history: tuple[float, ...]  # aligned with the newest closes
    moving_averages: MovingAverages
    bollinger: BollingerBands
    volume_profile: VolumeProfile
    kdj: Kdj | None = None
    williams_r: WilliamsR | None = None
    patterns: tuple[PatternMatch, ...] = ()
    price_data: PriceData
    price_trend: float = 0.0  # least-squares slope of the last 5 closes
