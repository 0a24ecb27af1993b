"""Capabilities the pipeline needs from its external collaborators.

The batch orchestrator and predictor depend on these protocols rather than
on the HTTP client, so retry/backoff/rate-limit policy stays inside the
client and tests can supply in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from engine.models import Candle, IndicatorSnapshot, MarketSummary, ScoreResult


@runtime_checkable
class CandleSource(Protocol):
    """Anything that can deliver an ascending candle series for a symbol."""

    async def get_candles(
        self, symbol: str, interval: str, limit: int
    ) -> list[Candle]: ...


@runtime_checkable
class SummarySource(Protocol):
    """Anything that can deliver 24h summaries for the whole market."""

    async def get_all_tickers(self) -> list[MarketSummary]: ...


@runtime_checkable
class OpenInterestSource(Protocol):
    """Anything that can report a symbol's open interest value in USDT."""

    async def get_open_interest(self, symbol: str) -> float | None: ...


@runtime_checkable
class Analyst(Protocol):
    """Optional reviewer that may override a locally computed score.

    Implementations raise ExternalServiceError when they cannot answer.
    """

    async def analyze(
        self, symbol: str, snapshot: IndicatorSnapshot, local: ScoreResult
    ): ...
