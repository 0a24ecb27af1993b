"""IndicatorCalculator: turns a candle series into an IndicatorSnapshot."""

import logging
import math

from engine.errors import DataError
from engine.indicators.indicators import (
    bollinger_bands,
    kdj,
    macd,
    moving_averages,
    price_trend,
    rsi_series,
    volume_profile,
    williams_r,
    NEUTRAL_RSI,
)
from engine.indicators.patterns import detect_patterns
from engine.models import (
    Candle,
    IndicatorConfig,
    IndicatorSnapshot,
    PriceData,
    WilliamsR,
    closes_of,
    highs_of,
    lows_of,
    volumes_of,
)

logger = logging.getLogger(__name__)


class IndicatorCalculator:
    """Calculator for all technical indicators needed by the signal scorer."""

    def __init__(self, config: IndicatorConfig | None = None):
        self.config = config or IndicatorConfig()

    def calculate(self, candles: list[Candle]) -> IndicatorSnapshot:
        """
        Calculate every indicator for the given candles.

        Args:
            candles: Candle series ordered oldest to newest

        Returns:
            IndicatorSnapshot for the newest candle, with MACD and RSI histories

        Raises:
            DataError: If the series is empty or contains non-finite values
        """
        if not candles:
            raise DataError("Candle series is empty, cannot calculate indicators")

        for candle in candles:
            values = (candle.open, candle.high, candle.low, candle.close, candle.volume)
            if not all(math.isfinite(v) for v in values):
                raise DataError(f"Malformed candle at {candle.timestamp}: {values}")

        cfg = self.config
        closes = closes_of(candles)
        highs = highs_of(candles)
        lows = lows_of(candles)
        volumes = volumes_of(candles)

        macd_history = macd(
            closes,
            fast_period=cfg.macd_fast_period,
            slow_period=cfg.macd_slow_period,
            signal_period=cfg.macd_signal_period,
        )
        rsi_history = rsi_series(closes, cfg.rsi_period)
        kdj_series = kdj(
            highs,
            lows,
            closes,
            period=cfg.kdj_period,
            smooth_k=cfg.kdj_smooth_k,
            smooth_d=cfg.kdj_smooth_d,
        )
        williams = williams_r(highs, lows, closes, cfg.williams_period)

        return IndicatorSnapshot(
            current_price=closes[-1],
            macd=macd_history[-1],
            macd_history=tuple(macd_history),
            rsi=rsi_history[-1] if rsi_history else NEUTRAL_RSI,
            rsi_history=tuple(rsi_history),
            moving_averages=moving_averages(closes),
            bollinger=bollinger_bands(
                closes, cfg.bollinger_period, cfg.bollinger_multiplier
            ),
            volume_profile=volume_profile(
                highs, lows, closes, volumes, cfg.volume_period
            ),
            kdj=kdj_series[-1],
            williams_r=WilliamsR(value=williams[-1]),
            patterns=tuple(detect_patterns(candles)),
            price_data=PriceData(
                highs=tuple(highs),
                lows=tuple(lows),
                closes=tuple(closes),
            ),
            price_trend=price_trend(closes),
        )


def validate_snapshot(snapshot: IndicatorSnapshot) -> bool:
    """Check indicator completeness and sanity before it is used downstream."""
    if snapshot.current_price <= 0:
        logger.warning(f"Invalid current price: {snapshot.current_price}")
        return False

    if not 0 <= snapshot.rsi <= 100:
        logger.warning(f"Abnormal RSI value: {snapshot.rsi}")
        return False

    numbers = [
        snapshot.macd.value,
        snapshot.macd.signal_line,
        snapshot.macd.histogram,
        snapshot.bollinger.upper,
        snapshot.bollinger.lower,
        snapshot.bollinger.bandwidth_percent,
        snapshot.moving_averages.ma5,
        snapshot.moving_averages.ma10,
        snapshot.moving_averages.ma20,
        snapshot.volume_profile.volume_ratio,
        snapshot.volume_profile.vwap,
    ]
    if not all(math.isfinite(n) for n in numbers):
        logger.warning("Indicator snapshot contains non-finite values")
        return False

    return True
