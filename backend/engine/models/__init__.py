"""Data models."""

from engine.models.candle import (
    Candle,
    MarketSummary,
    closes_of,
    highs_of,
    lows_of,
    volumes_of,
)
from engine.models.snapshot import (
    BandPosition,
    BollingerBands,
    IndicatorSnapshot,
    Kdj,
    MacdPoint,
    MovingAverages,
    PatternMatch,
    PriceData,
    VolumeProfile,
    WilliamsR,
)
from engine.models.prediction import (
    Prediction,
    PredictedSymbol,
    ScoreBreakdown,
    ScoreFactor,
    ScoreResult,
    sort_predictions,
)
from engine.models.config import FilterConfig, IndicatorConfig

__all__ = [
    # Market data
    "Candle",
    "MarketSummary",
    "closes_of",
    "highs_of",
    "lows_of",
    "volumes_of",
    # Snapshot
    "BandPosition",
    "BollingerBands",
    "IndicatorSnapshot",
    "Kdj",
    "MacdPoint",
    "MovingAverages",
    "PatternMatch",
    "PriceData",
    "VolumeProfile",
    "WilliamsR",
    # Signals
    "Prediction",
    "PredictedSymbol",
    "ScoreBreakdown",
    "ScoreFactor",
    "ScoreResult",
    "sort_predictions",
    # Config
    "FilterConfig",
    "IndicatorConfig",
]
