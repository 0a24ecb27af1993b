"""Signal fusion: weighted multi-factor scoring of an IndicatorSnapshot.

Each factor adds non-negative points to either the bullish or the bearish
total. The totals are then mapped to a categorical Prediction with a
confidence in [0, 100]. The thresholds and their evaluation order define the
classification boundaries; changing either is a behavior change.
"""

import logging
import math

from engine.models import (
    BandPosition,
    IndicatorSnapshot,
    Prediction,
    ScoreBreakdown,
    ScoreResult,
)

logger = logging.getLogger(__name__)


def round_confidence(value: float) -> int:
    """Round half-up and clamp to [0, 100]."""
    return int(min(100, max(0, math.floor(value + 0.5))))


class SignalScorer:
    """Fuses indicator readings into a Prediction and confidence.

    Scoring is a pure function of the snapshot: identical snapshots always
    produce identical results.
    """

    # Trailing samples compared for RSI divergence (newest vs the previous N-1)
    DIVERGENCE_WINDOW = 5

    # Volume trend slope dead band
    VOLUME_SLOPE_THRESHOLD = 0.001

    def score(self, snapshot: IndicatorSnapshot) -> ScoreResult:
        """
        Score a snapshot.

        Args:
            snapshot: Indicator snapshot including MACD and RSI histories

        Returns:
            ScoreResult with prediction, confidence and the factor breakdown
        """
        breakdown = ScoreBreakdown()

        self._score_macd(snapshot, breakdown)
        self._score_rsi(snapshot, breakdown)
        self._score_bollinger(snapshot, breakdown)
        self._score_moving_averages(snapshot, breakdown)
        self._score_volume(snapshot, breakdown)

        prediction, confidence = self.classify(
            breakdown.bullish_score, breakdown.bearish_score
        )

        logger.debug(
            f"{breakdown.describe()} -> bullish={breakdown.bullish_score:.1f} "
            f"bearish={breakdown.bearish_score:.1f} net={breakdown.net_score:.1f} "
            f"=> {prediction.value} ({confidence}%)"
        )

        return ScoreResult(
            prediction=prediction,
            confidence=confidence,
            breakdown=breakdown,
        )

    @staticmethod
    def classify(bullish: float, bearish: float) -> tuple[Prediction, int]:
        """Map bullish/bearish totals to a prediction. First match wins."""
        if bullish >= 5:
            return Prediction.STRONG_BUY, round_confidence(min(95, 75 + bullish))
        if bullish >= 3.5:
            return Prediction.BUY, round_confidence(min(90, 65 + bullish * 2))
        if bearish >= 5:
            return Prediction.STRONG_SELL, round_confidence(min(95, 75 + bearish))
        if bearish >= 3.5:
            return Prediction.SELL, round_confidence(min(90, 65 + bearish * 2))
        if bullish > bearish + 1:
            return Prediction.BUY, round_confidence(50 + bullish * 5)
        if bearish > bullish + 1:
            return Prediction.SELL, round_confidence(50 + bearish * 5)
        return Prediction.HOLD, round_confidence(50 + abs(bullish - bearish) * 2)

    # =========================================================================
    # MACD
    # =========================================================================

    def _score_macd(self, snapshot: IndicatorSnapshot, breakdown: ScoreBreakdown) -> None:
        point = snapshot.macd
        hist = point.histogram

        if hist > 0 and point.value > point.signal_line:
            breakdown.bullish("MACD golden cross", 2)
        elif hist < 0 and point.value < point.signal_line:
            breakdown.bearish("MACD death cross", 2)
        elif hist > 0:
            breakdown.bullish("MACD histogram positive", 1)
        elif hist < 0:
            breakdown.bearish("MACD histogram negative", 1)

        history = snapshot.macd_history
        if len(history) < 2:
            return

        prev = history[-2]

        if hist > 0 and hist > prev.histogram:
            breakdown.bullish("MACD momentum accelerating", 1.5)
        elif hist > 0 and hist < prev.histogram:
            breakdown.bearish("MACD momentum decelerating", 0.5)

        if prev.value <= 0 < point.value:
            breakdown.bullish("MACD crossed above zero", 1.5)
        elif prev.value >= 0 > point.value:
            breakdown.bearish("MACD crossed below zero", 1.5)

    # =========================================================================
    # RSI
    # =========================================================================

    def _score_rsi(self, snapshot: IndicatorSnapshot, breakdown: ScoreBreakdown) -> None:
        rsi = snapshot.rsi

        if rsi >= 70:
            breakdown.bearish(f"RSI overbought ({rsi:.1f})", 1.5)
        elif rsi >= 60:
            breakdown.bullish(f"RSI strong ({rsi:.1f})", 0.5)
        elif rsi > 50:
            breakdown.bullish(f"RSI mildly bullish ({rsi:.1f})", 1)
        elif rsi > 40:
            breakdown.bearish(f"RSI slightly weak ({rsi:.1f})", 0.5)
        elif rsi > 30:
            breakdown.bearish(f"RSI mildly bearish ({rsi:.1f})", 1)
        else:
            breakdown.bullish(f"RSI oversold ({rsi:.1f})", 1.5)

        self._score_divergence(snapshot, breakdown)

    def _score_divergence(
        self, snapshot: IndicatorSnapshot, breakdown: ScoreBreakdown
    ) -> None:
        window = self.DIVERGENCE_WINDOW
        rsi_values = snapshot.rsi_history[-window:]
        closes = snapshot.price_data.closes[-window:]
        if len(rsi_values) < window or len(closes) < window:
            return

        *prior_closes, last_close = closes
        *prior_rsi, last_rsi = rsi_values

        # Lower low in price, higher low in RSI
        if last_close < min(prior_closes) and last_rsi > min(prior_rsi):
            breakdown.bullish("RSI bullish divergence", 2)
        # Higher high in price, lower high in RSI
        elif last_close > max(prior_closes) and last_rsi < max(prior_rsi):
            breakdown.bearish("RSI bearish divergence", 2)

    # =========================================================================
    # Bollinger Bands
    # =========================================================================

    def _score_bollinger(
        self, snapshot: IndicatorSnapshot, breakdown: ScoreBreakdown
    ) -> None:
        position = snapshot.bollinger.position
        if position == BandPosition.OVERBOUGHT:
            breakdown.bearish("Price above upper band", 1)
        elif position == BandPosition.OVERSOLD:
            breakdown.bullish("Price below lower band", 1)

    # =========================================================================
    # Moving averages
    # =========================================================================

    def _score_moving_averages(
        self, snapshot: IndicatorSnapshot, breakdown: ScoreBreakdown
    ) -> None:
        ma = snapshot.moving_averages
        price = snapshot.current_price

        if price > ma.ma5 > ma.ma10 > ma.ma20:
            breakdown.bullish("MA bullish stacking", 2)
        elif price < ma.ma5 < ma.ma10 < ma.ma20:
            breakdown.bearish("MA bearish stacking", 2)
        elif price > ma.ma5 and price > ma.ma10 and price > ma.ma20:
            breakdown.bullish("Price above MA5/10/20", 1)
        elif price < ma.ma5 and price < ma.ma10 and price < ma.ma20:
            breakdown.bearish("Price below MA5/10/20", 1)

        if ma.ma50 is not None:
            if ma.ma20 > ma.ma50:
                breakdown.bullish("MA20 above MA50", 0.5)
            elif ma.ma20 < ma.ma50:
                breakdown.bearish("MA20 below MA50", 0.5)

    # =========================================================================
    # Volume
    # =========================================================================

    def _score_volume(self, snapshot: IndicatorSnapshot, breakdown: ScoreBreakdown) -> None:
        volume = snapshot.volume_profile
        ratio = volume.volume_ratio

        if ratio > 1.5:
            if snapshot.macd.histogram > 0:
                breakdown.bullish("Volume surge on rising momentum", 1.5)
            else:
                breakdown.bearish("Volume surge on falling momentum", 1.5)
        elif ratio > 1.2:
            breakdown.bullish("Volume moderately elevated", 0.5)
        elif ratio < 0.7:
            breakdown.bearish("Volume drying up", 0.5)

        slope = volume.volume_trend_slope
        if slope > self.VOLUME_SLOPE_THRESHOLD:
            breakdown.bullish("Volume trending up", 0.5)
        elif slope < -self.VOLUME_SLOPE_THRESHOLD:
            breakdown.bearish("Volume trending down", 0.5)
