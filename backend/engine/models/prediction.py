"""Prediction and scoring models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from engine.models.snapshot import IndicatorSnapshot


class Prediction(str, Enum):
    """Categorical trading signal."""

    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


@dataclass(frozen=True)
class ScoreFactor:
    """One labeled contribution. Positive delta is bullish, negative bearish."""

    label: str
    delta: float


@dataclass
class ScoreBreakdown:
    """Accumulated scores for one scoring call (audit only, never persisted)."""

    bullish_score: float = 0.0
    bearish_score: float = 0.0
    factors: list[ScoreFactor] = field(default_factory=list)

    @property
    def net_score(self) -> float:
        return self.bullish_score - self.bearish_score

    def bullish(self, label: str, points: float) -> None:
        self.bullish_score += points
        self.factors.append(ScoreFactor(label, points))

    def bearish(self, label: str, points: float) -> None:
        self.bearish_score += points
        self.factors.append(ScoreFactor(label, -points))

    def describe(self) -> str:
        """Render factors as 'label (+x) | label (-y)'."""
        return " | ".join(f"{f.label} ({f.delta:+g})" for f in self.factors)


@dataclass(frozen=True)
class ScoreResult:
    """Result of fusing one snapshot into a signal."""

    prediction: Prediction
    confidence: int
    breakdown: ScoreBreakdown


class PredictedSymbol(BaseModel):
    """Engine output for one instrument in one cycle.

    Created once per successfully processed instrument and superseded by
    the next cycle's output.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    current_price: float
    volume_24h: float
    price_change_percent_24h: float
    indicators: IndicatorSnapshot
    prediction: Prediction
    confidence: int = Field(ge=0, le=100)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "local"  # "external" when the analyst override was applied
    open_interest_value: float | None = None


def sort_predictions(predictions: list[PredictedSymbol]) -> list[PredictedSymbol]:
    """Sort by 24h change descending, then 24h volume descending."""
    return sorted(
        predictions,
        key=lambda p: (-p.price_change_percent_24h, -p.volume_24h),
    )
