"""Indicator and filter configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class IndicatorConfig(BaseModel):
    """Indicator periods used by the IndicatorCalculator."""

    # MACD
    macd_fast_period: int = Field(default=12, ge=1)
    macd_slow_period: int = Field(default=26, ge=1)
    macd_signal_period: int = Field(default=9, ge=1)

    # RSI (Wilder)
    rsi_period: int = Field(default=14, ge=1)

    # Bollinger Bands
    bollinger_period: int = Field(default=20, ge=1)
    bollinger_multiplier: float = Field(default=2.0, gt=0)

    # Trailing window for volume ratio, volume slope and OBV slope
    volume_period: int = Field(default=20, ge=1)

    # Stochastic family
    kdj_period: int = Field(default=9, ge=1)
    kdj_smooth_k: int = Field(default=3, ge=1)
    kdj_smooth_d: int = Field(default=3, ge=1)
    williams_period: int = Field(default=14, ge=1)

    @model_validator(mode="after")
    def _validate(self):
        if self.macd_fast_period >= self.macd_slow_period:
            raise ValueError(
                f"macd_fast_period ({self.macd_fast_period}) must be shorter than "
                f"macd_slow_period ({self.macd_slow_period})"
            )
        return self


class FilterConfig(BaseModel):
    """Thresholds for the candidate filter."""

    min_quote_volume: float = Field(default=100_000_000, ge=0)
    min_price_change_percent: float = 10.0
    quote_asset: str | None = "USDT"
