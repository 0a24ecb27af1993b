"""Rule-based candlestick pattern detection on the latest 1-3 candles.

Recognised patterns:
- Morning Star: bullish three-candle bottom reversal
- Evening Star: bearish three-candle top reversal
- Bullish / Bearish Engulfing: two-candle reversal
- Hammer: bullish single-candle reversal (long lower shadow)
- Inverted Hammer: bearish single-candle reversal (long upper shadow)

Several patterns may match the same candles.
"""

from engine.models import Candle, PatternMatch


def _match(name: str, confidence: float, signal: float) -> PatternMatch:
    return PatternMatch(
        name=name,
        confidence=min(1.0, max(0.0, confidence)),
        directional_signal=min(2.0, max(-2.0, signal)),
    )


def detect_morning_star(candles: list[Candle]) -> PatternMatch | None:
    """
    1. First candle bearish
    2. Second candle has a body at most half of the first
    3. Third candle bullish and closes above the first candle's midpoint
    """
    if len(candles) < 3:
        return None

    first, second, third = candles[-3:]

    if not first.is_bearish:
        return None
    if second.body_size > first.body_size * 0.5:
        return None
    if not third.is_bullish:
        return None
    midpoint = (first.open + first.close) / 2
    if third.close < midpoint:
        return None

    recovery = (third.close - first.close) / (first.open - first.close)
    return _match("Morning Star", min(0.95, 0.7 + recovery * 0.25), 1.5)


def detect_evening_star(candles: list[Candle]) -> PatternMatch | None:
    """Mirror of the morning star at a top."""
    if len(candles) < 3:
        return None

    first, second, third = candles[-3:]

    if not first.is_bullish:
        return None
    if second.body_size > first.body_size * 0.5:
        return None
    if not third.is_bearish:
        return None
    midpoint = (first.open + first.close) / 2
    if third.close > midpoint:
        return None

    decline = (first.close - third.close) / (first.close - first.open)
    return _match("Evening Star", min(0.95, 0.7 + decline * 0.25), -1.5)


def detect_engulfing(candles: list[Candle]) -> PatternMatch | None:
    """Current body fully engulfs the previous, opposite-colored body."""
    if len(candles) < 2:
        return None

    prev, curr = candles[-2:]

    if prev.is_bearish and curr.is_bullish:
        if curr.open < prev.close and curr.close > prev.open:
            ratio = curr.body_size / prev.body_size
            return _match("Bullish Engulfing", min(0.9, 0.6 + ratio * 0.3), 1.2)

    if prev.is_bullish and curr.is_bearish:
        if curr.open > prev.close and curr.close < prev.open:
            ratio = curr.body_size / prev.body_size
            return _match("Bearish Engulfing", min(0.9, 0.6 + ratio * 0.3), -1.2)

    return None


def detect_hammer(candles: list[Candle]) -> PatternMatch | None:
    """
    1. Small body (at most a third of the range)
    2. Lower shadow at least twice the body
    3. Upper shadow at most half the body
    """
    if not candles:
        return None

    candle = candles[-1]
    total = candle.range_size
    if total <= 0:
        return None

    body = candle.body_size
    if body > total / 3:
        return None
    if candle.lower_shadow < body * 2:
        return None
    if candle.upper_shadow > body * 0.5:
        return None

    confidence = min(0.85, 0.6 + candle.lower_shadow / total * 0.25)
    return _match("Hammer", confidence, 1.0 if candle.is_bullish else 0.8)


def detect_inverted_hammer(candles: list[Candle]) -> PatternMatch | None:
    """Small body with a long upper shadow and almost no lower shadow."""
    if not candles:
        return None

    candle = candles[-1]
    total = candle.range_size
    if total <= 0:
        return None

    body = candle.body_size
    if body > total / 3:
        return None
    if candle.upper_shadow < body * 2:
        return None
    if candle.lower_shadow > body * 0.5:
        return None

    confidence = min(0.85, 0.6 + candle.upper_shadow / total * 0.25)
    return _match("Inverted Hammer", confidence, -0.8 if candle.is_bearish else -0.6)


_DETECTORS = (
    detect_morning_star,
    detect_evening_star,
    detect_engulfing,
    detect_hammer,
    detect_inverted_hammer,
)


def detect_patterns(candles: list[Candle]) -> list[PatternMatch]:
    """Run every detector against the tail of the series."""
    matches = []
    for detector in _DETECTORS:
        match = detector(candles)
        if match is not None:
            matches.append(match)
    return matches
