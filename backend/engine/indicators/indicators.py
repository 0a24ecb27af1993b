"""Technical indicators over candle series (pure math, no I/O).

All functions accept plain float sequences ordered oldest to newest and
degrade gracefully on short input: instead of failing they fall back to a
shorter in-sample average or a neutral constant. Every value returned is
finite; divisions that would hit zero resolve to a neutral value.
"""

import math
from typing import Sequence

import numpy as np

from engine.models import (
    BandPosition,
    BollingerBands,
    Kdj,
    MacdPoint,
    MovingAverages,
    VolumeProfile,
)

NEUTRAL_RSI = 50.0
NEUTRAL_STOCHASTIC = 50.0
NEUTRAL_WILLIAMS_R = -50.0


def _finite(value: float, default: float = 0.0) -> float:
    """Return value as float, or default if it is NaN/inf."""
    value = float(value)
    return value if math.isfinite(value) else default


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


# =============================================================================
# Averages and regression
# =============================================================================

def ema(values: Sequence[float], period: int) -> list[float]:
    """
    Calculate Exponential Moving Average seeded with the first sample.

    k = 2 / (period + 1); ema[0] = values[0];
    ema[i] = values[i] * k + ema[i - 1] * (1 - k)

    Args:
        values: Sequence of values
        period: EMA period

    Returns:
        List of EMA values (same length as input, no warm-up NaNs)
    """
    if len(values) == 0:
        return []

    arr = _as_array(values)
    k = 2.0 / (period + 1)

    result = np.empty_like(arr)
    result[0] = arr[0]
    for i in range(1, len(arr)):
        result[i] = arr[i] * k + result[i - 1] * (1 - k)

    return result.tolist()


def rolling_mean(values: Sequence[float], period: int, fill: float) -> list[float]:
    """Simple moving average; indices without a full window get ``fill``."""
    arr = _as_array(values)
    result = np.full(len(arr), fill, dtype=np.float64)

    for i in range(period - 1, len(arr)):
        result[i] = np.mean(arr[i - period + 1 : i + 1])

    return result.tolist()


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index (0 if undefined)."""
    n = len(values)
    if n < 2:
        return 0.0

    y = _as_array(values)
    x = np.arange(n, dtype=np.float64)
    denominator = n * np.sum(x * x) - np.sum(x) ** 2
    if denominator == 0:
        return 0.0

    slope = (n * np.sum(x * y) - np.sum(x) * np.sum(y)) / denominator
    return _finite(slope)


def price_trend(closes: Sequence[float], window: int = 5) -> float:
    """Slope of the last ``window`` closes; 0 with fewer samples."""
    if len(closes) < window:
        return 0.0
    return linear_slope(closes[-window:])


# =============================================================================
# MACD
# =============================================================================

def macd(
    closes: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> list[MacdPoint]:
    """
    Calculate the full MACD series.

    DIF = EMA(fast) - EMA(slow); DEA = EMA(DIF, signal);
    histogram = 2 * (DIF - DEA).

    Args:
        closes: Close prices
        fast_period: Fast EMA period
        slow_period: Slow EMA period
        signal_period: Signal line (DEA) period

    Returns:
        One MacdPoint per close. momentum_delta of the first point is 0.
    """
    if len(closes) == 0:
        return []

    fast = _as_array(ema(closes, fast_period))
    slow = _as_array(ema(closes, slow_period))
    dif = fast - slow
    dea = _as_array(ema(dif, signal_period))
    histogram = 2.0 * (dif - dea)

    points = []
    for i in range(len(dif)):
        prev_histogram = histogram[i - 1] if i > 0 else histogram[i]
        points.append(
            MacdPoint(
                value=_finite(dif[i]),
                signal_line=_finite(dea[i]),
                histogram=_finite(histogram[i]),
                momentum_delta=_finite(histogram[i] - prev_histogram),
                trend_strength=_finite(abs(dif[i])),
            )
        )
    return points


# =============================================================================
# RSI (Wilder smoothing)
# =============================================================================

def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Only gains -> 100; no movement at all -> neutral
        return 100.0 if avg_gain > 0 else NEUTRAL_RSI
    rs = avg_gain / avg_loss
    return _finite(100.0 - 100.0 / (1.0 + rs), NEUTRAL_RSI)


def rsi_series(closes: Sequence[float], period: int = 14) -> list[float]:
    """
    Calculate RSI with Wilder smoothing.

    The initial averages cover the first ``period`` deltas, then
    avg = (avg * (period - 1) + current) / period.

    Args:
        closes: Close prices
        period: RSI period

    Returns:
        RSI values for indices period..len(closes)-1 (so the last value is
        aligned with the last close). Empty when len(closes) < period + 1.
    """
    if len(closes) < period + 1:
        return []

    deltas = np.diff(_as_array(closes))
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    result = [_rsi_value(avg_gain, avg_loss)]

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result.append(_rsi_value(avg_gain, avg_loss))

    return result


def rsi(closes: Sequence[float], period: int = 14) -> float:
    """Latest RSI, or 50 when there is not enough data."""
    series = rsi_series(closes, period)
    return series[-1] if series else NEUTRAL_RSI


# =============================================================================
# Bollinger Bands and moving averages
# =============================================================================

def bollinger_bands(
    closes: Sequence[float],
    period: int = 20,
    multiplier: float = 2.0,
) -> BollingerBands:
    """
    Calculate Bollinger Bands over the last ``period`` closes.

    middle = SMA, upper/lower = middle +/- multiplier * population stddev,
    bandwidth = (upper - lower) / middle * 100.

    With fewer than ``period`` closes all bands collapse to the last close,
    bandwidth is 0 and position is NORMAL.
    """
    current = float(closes[-1])
    if len(closes) < period:
        return BollingerBands(
            upper=current,
            middle=current,
            lower=current,
            bandwidth_percent=0.0,
            position=BandPosition.NORMAL,
        )

    recent = _as_array(closes[-period:])
    if np.ptp(recent) == 0:
        # Flat window: no dispersion, bands coincide with the price
        middle = float(recent[0])
        std = 0.0
    else:
        middle = float(np.mean(recent))
        std = float(np.std(recent))

    upper = middle + multiplier * std
    lower = middle - multiplier * std
    bandwidth = (upper - lower) / middle * 100 if middle != 0 else 0.0

    position = BandPosition.NORMAL
    if current > upper:
        position = BandPosition.OVERBOUGHT
    elif current < lower:
        position = BandPosition.OVERSOLD

    return BollingerBands(
        upper=_finite(upper, current),
        middle=_finite(middle, current),
        lower=_finite(lower, current),
        bandwidth_percent=_finite(bandwidth),
        position=position,
    )


def moving_averages(closes: Sequence[float]) -> MovingAverages:
    """
    Calculate MA5/MA10/MA20 (and MA50 with at least 50 closes).

    Short history falls back to the average of everything available, and
    a longer average that has no more data than the next-shorter one
    reuses that shorter average.
    """
    arr = _as_array(closes)
    n = len(arr)

    ma5 = float(np.mean(arr[-5:])) if n >= 5 else float(np.mean(arr))

    if n >= 10:
        ma10 = float(np.mean(arr[-10:]))
    elif n > 5:
        ma10 = float(np.mean(arr))
    else:
        ma10 = ma5

    if n >= 20:
        ma20 = float(np.mean(arr[-20:]))
    elif n > 10:
        ma20 = float(np.mean(arr))
    else:
        ma20 = ma10

    ma50 = float(np.mean(arr[-50:])) if n >= 50 else None

    return MovingAverages(
        ma5=_finite(ma5),
        ma10=_finite(ma10),
        ma20=_finite(ma20),
        ma50=_finite(ma50) if ma50 is not None else None,
    )


# =============================================================================
# Volume
# =============================================================================

def on_balance_volume(closes: Sequence[float], volumes: Sequence[float]) -> list[float]:
    """Cumulative volume signed by close-over-close direction (starts at 0)."""
    if len(closes) == 0:
        return []

    result = [0.0]
    for i in range(1, len(closes)):
        if closes[i] > closes[i - 1]:
            result.append(result[-1] + volumes[i])
        elif closes[i] < closes[i - 1]:
            result.append(result[-1] - volumes[i])
        else:
            result.append(result[-1])
    return result


def vwap(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
) -> list[float]:
    """
    Calculate cumulative Volume Weighted Average Price of the typical price.

    While cumulative volume is still zero the close is used instead.
    """
    if len(closes) == 0:
        return []

    result = []
    cum_vol = 0.0
    cum_pv = 0.0

    for i in range(len(closes)):
        tp = (highs[i] + lows[i] + closes[i]) / 3
        cum_vol += volumes[i]
        cum_pv += tp * volumes[i]

        if cum_vol > 0:
            result.append(cum_pv / cum_vol)
        else:
            result.append(closes[i])

    return result


def volume_profile(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
    period: int = 20,
) -> VolumeProfile:
    """
    Summarise volume behaviour over the trailing ``period`` candles.

    volume_ratio is current / average volume (1.0 when the average is 0);
    volume and OBV trends are least-squares slopes over the same window.
    """
    window = list(volumes[-period:])
    current_volume = float(volumes[-1])
    average_volume = float(np.mean(window))
    volume_ratio = current_volume / average_volume if average_volume > 0 else 1.0

    obv_series = on_balance_volume(closes, volumes)
    vwap_series = vwap(highs, lows, closes, volumes)
    latest_vwap = vwap_series[-1]
    close = float(closes[-1])
    deviation = (close - latest_vwap) / latest_vwap if latest_vwap != 0 else 0.0

    return VolumeProfile(
        current_volume=_finite(current_volume),
        average_volume=_finite(average_volume),
        volume_ratio=_finite(volume_ratio, 1.0),
        volume_trend_slope=linear_slope(window),
        obv=_finite(obv_series[-1]),
        obv_trend=linear_slope(obv_series[-period:]),
        vwap=_finite(latest_vwap, close),
        vwap_deviation_ratio=_finite(deviation),
        volume_price_confirmation=_volume_price_confirmation(closes, volume_ratio),
    )


def _volume_price_confirmation(closes: Sequence[float], volume_ratio: float) -> float:
    """
    1 for a rise on above-average volume, -1 for a fall on above-average
    volume, -0.5 for any move on below-average volume, 0 when flat.
    """
    if len(closes) < 2:
        return 0.0

    change = closes[-1] - closes[-2]
    if change == 0:
        return 0.0
    if volume_ratio >= 1.0:
        return 1.0 if change > 0 else -1.0
    return -0.5


# =============================================================================
# Stochastic family
# =============================================================================

def _window_extremes(
    highs: Sequence[float],
    lows: Sequence[float],
    end: int,
    period: int,
) -> tuple[float, float]:
    start = end - period + 1
    return max(highs[start : end + 1]), min(lows[start : end + 1])


def kdj(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 9,
    smooth_k: int = 3,
    smooth_d: int = 3,
) -> list[Kdj]:
    """
    Calculate the KDJ series.

    raw K = 100 * (close - lowest low) / (highest high - lowest low) over
    ``period``; K = SMA(raw K, smooth_k); D = SMA(K, smooth_d);
    J = 3K - 2D. Missing windows and flat ranges use 50.
    """
    raw_k = []
    for i in range(len(closes)):
        if i < period - 1:
            raw_k.append(NEUTRAL_STOCHASTIC)
            continue

        period_high, period_low = _window_extremes(highs, lows, i, period)
        if period_high == period_low:
            raw_k.append(NEUTRAL_STOCHASTIC)
        else:
            value = 100 * (closes[i] - period_low) / (period_high - period_low)
            raw_k.append(min(100.0, max(0.0, value)))

    k_values = rolling_mean(raw_k, smooth_k, NEUTRAL_STOCHASTIC)
    d_values = rolling_mean(k_values, smooth_d, NEUTRAL_STOCHASTIC)

    return [
        Kdj(k=_finite(k, 50.0), d=_finite(d, 50.0), j=_finite(3 * k - 2 * d, 50.0))
        for k, d in zip(k_values, d_values)
    ]


def williams_r(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> list[float]:
    """
    Williams %R = -100 * (highest high - close) / (highest high - lowest low).

    Range [-100, 0]. Missing windows and flat ranges use -50.
    """
    result = []
    for i in range(len(closes)):
        if i < period - 1:
            result.append(NEUTRAL_WILLIAMS_R)
            continue

        period_high, period_low = _window_extremes(highs, lows, i, period)
        if period_high == period_low:
            result.append(NEUTRAL_WILLIAMS_R)
        else:
            value = -100 * (period_high - closes[i]) / (period_high - period_low)
            result.append(min(0.0, max(-100.0, _finite(value, NEUTRAL_WILLIAMS_R))))
    return result
