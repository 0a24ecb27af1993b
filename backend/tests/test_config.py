"""Tests for application settings."""

import pytest

from engine.models import Prediction
from scanner.config import Settings, load_exclusions


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.min_volume_threshold == 100_000_000
        assert settings.min_open_interest == 50_000_000
        assert settings.schedule_interval == 900
        assert settings.external_analysis_enabled is False
        assert settings.report_signals == [Prediction.STRONG_BUY, Prediction.BUY]

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MAX_CONCURRENT_WORKERS", "12")
        monkeypatch.setenv("RSI_PERIOD", "7")
        settings = Settings(_env_file=None)

        assert settings.max_concurrent_workers == 12
        assert settings.indicator_config().rsi_period == 7

    def test_indicator_config(self):
        config = Settings(_env_file=None, macd_fast_period=5, macd_slow_period=35).indicator_config()

        assert config.macd_fast_period == 5
        assert config.macd_slow_period == 35
        assert config.bollinger_multiplier == 2.0

    def test_invalid_macd_periods(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, macd_fast_period=30, macd_slow_period=26).indicator_config()

    def test_filter_config(self):
        config = Settings(_env_file=None, min_price_change_percent=3.5).filter_config()

        assert config.min_price_change_percent == 3.5
        assert config.quote_asset == "USDT"


class TestExclusions:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_exclusions(tmp_path / "nope.txt") == frozenset()

    def test_parses_symbols_and_comments(self, tmp_path):
        path = tmp_path / "excluded.txt"
        path.write_text("# delisted\nlunausdt\n\nUSTCUSDT  # depegged\n  BTCDOMUSDT\n")

        assert load_exclusions(path) == frozenset({"LUNAUSDT", "USTCUSDT", "BTCDOMUSDT"})
