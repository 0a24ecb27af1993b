"""Application configuration."""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from engine.models import FilterConfig, IndicatorConfig, Prediction

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Candidate filter
    min_volume_threshold: float = 100_000_000  # 24h quote volume (USDT)
    min_price_change_percent: float = 10.0
    quote_asset: str | None = "USDT"
    min_open_interest: float | None = 50_000_000  # USDT; None disables the gate
    open_interest_period: str = "1d"
    exclusion_file: str = "config/excluded_symbols.txt"

    # Candles
    candle_interval: str = "1h"
    candle_lookback: int = 100

    # Indicator periods
    rsi_period: int = 14
    macd_fast_period: int = 12
    macd_slow_period: int = 26
    macd_signal_period: int = 9
    bollinger_period: int = 20
    bollinger_multiplier: float = 2.0
    volume_period: int = 20
    kdj_period: int = 9
    williams_period: int = 14

    # Batch / cycle
    max_concurrent_workers: int = 5
    per_item_timeout: float = 30.0
    cycle_timeout: float = 600.0
    schedule_interval: float = 900.0  # 15 minutes

    # External analyst (OpenAI-compatible chat completions)
    external_analysis_enabled: bool = False
    analysis_timeout: float = 30.0
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"

    # Binance API
    binance_base_url: str = "https://fapi.binance.com"
    binance_api_key: str = ""
    request_interval: float = 0.5  # Minimum spacing between requests (seconds)
    max_retries: int = 3
    retry_base_delay: float = 2.0
    retry_max_delay: float = 60.0

    # Reports
    report_dir: str = "reports"
    output_dir: str = "output"
    report_signals: list[Prediction] = [Prediction.STRONG_BUY, Prediction.BUY]

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    def indicator_config(self) -> IndicatorConfig:
        """Indicator periods for the IndicatorCalculator."""
        return IndicatorConfig(
            macd_fast_period=self.macd_fast_period,
            macd_slow_period=self.macd_slow_period,
            macd_signal_period=self.macd_signal_period,
            rsi_period=self.rsi_period,
            bollinger_period=self.bollinger_period,
            bollinger_multiplier=self.bollinger_multiplier,
            volume_period=self.volume_period,
            kdj_period=self.kdj_period,
            williams_period=self.williams_period,
        )

    def filter_config(self) -> FilterConfig:
        """Thresholds for the CandidateFilter."""
        return FilterConfig(
            min_quote_volume=self.min_volume_threshold,
            min_price_change_percent=self.min_price_change_percent,
            quote_asset=self.quote_asset,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_exclusions(path: str | Path) -> frozenset[str]:
    """
    Load the exclusion list: one symbol per line, '#' starts a comment.

    A missing file is not an error and yields an empty set.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No exclusion file at {path}, excluding nothing")
        return frozenset()

    symbols = set()
    for line in path.read_text(encoding="utf-8").splitlines():
        symbol = line.split("#", 1)[0].strip().upper()
        if symbol:
            symbols.add(symbol)

    logger.info(f"Loaded {len(symbols)} excluded symbols from {path}")
    return frozenset(symbols)
