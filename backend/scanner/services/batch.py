"""Batch orchestrator: bounded-concurrency processing of candidate symbols.

Each candidate runs end-to-end (candle fetch -> indicators -> scoring) in
its own worker. A failure or timeout drops only that candidate; the batch
itself never raises for per-item problems.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from engine.errors import DataError, ExternalServiceError
from engine.indicators import IndicatorCalculator, validate_snapshot
from engine.models import (
    IndicatorSnapshot,
    MarketSummary,
    PredictedSymbol,
    ScoreResult,
    sort_predictions,
)
from engine.scoring import SignalScorer
from scanner.clients.protocol import Analyst, CandleSource

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one batch run."""

    predictions: list[PredictedSymbol] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    timed_out: list[str] = field(default_factory=list)  # cut off by the batch deadline

    @property
    def deadline_exceeded(self) -> bool:
        return bool(self.timed_out)

    @property
    def dropped(self) -> list[str]:
        return self.failed + self.timed_out


class BatchOrchestrator:
    """Runs candidates through the indicator and scoring pipeline."""

    def __init__(
        self,
        candles: CandleSource,
        calculator: IndicatorCalculator | None = None,
        scorer: SignalScorer | None = None,
        candle_interval: str = "1h",
        candle_lookback: int = 100,
        max_concurrent_workers: int = 5,
        per_item_timeout: float = 30.0,
        analyst: Analyst | None = None,
        analysis_timeout: float = 30.0,
    ):
        self.candles = candles
        self.calculator = calculator or IndicatorCalculator()
        self.scorer = scorer or SignalScorer()
        self.candle_interval = candle_interval
        self.candle_lookback = candle_lookback
        self.max_concurrent_workers = max(1, max_concurrent_workers)
        self.per_item_timeout = per_item_timeout
        self.analyst = analyst
        self.analysis_timeout = analysis_timeout

    async def evaluate(
        self, summary: MarketSummary
    ) -> tuple[IndicatorSnapshot, ScoreResult]:
        """
        Fetch candles for one symbol, compute indicators and score them.

        Raises:
            DataError: If the candles are empty/malformed or the snapshot is invalid
            MarketDataError: If the candle source gave up
        """
        candles = await self.candles.get_candles(
            summary.symbol, self.candle_interval, self.candle_lookback
        )
        snapshot = self.calculator.calculate(candles)
        if not validate_snapshot(snapshot):
            raise DataError(f"{summary.symbol}: indicator snapshot failed validation")
        return snapshot, self.scorer.score(snapshot)

    async def _review(
        self, summary: MarketSummary, snapshot: IndicatorSnapshot, local: ScoreResult
    ) -> PredictedSymbol:
        """Apply the optional analyst override; fall back to the local score."""
        prediction, confidence, source = local.prediction, local.confidence, "local"

        if self.analyst is not None:
            try:
                verdict = await asyncio.wait_for(
                    self.analyst.analyze(summary.symbol, snapshot, local),
                    timeout=self.analysis_timeout,
                )
                prediction, confidence, source = (
                    verdict.prediction,
                    verdict.confidence,
                    "external",
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"{summary.symbol}: analyst timed out after "
                    f"{self.analysis_timeout}s, using local score"
                )
            except ExternalServiceError as e:
                logger.warning(f"{summary.symbol}: analyst unavailable ({e}), using local score")
            except Exception as e:
                logger.warning(
                    f"{summary.symbol}: analyst failed unexpectedly ({e!r}), using local score"
                )

        return PredictedSymbol(
            symbol=summary.symbol,
            current_price=snapshot.current_price,
            volume_24h=summary.quote_volume,
            price_change_percent_24h=summary.price_change_percent,
            open_interest_value=summary.open_interest_value,
            indicators=snapshot,
            prediction=prediction,
            confidence=confidence,
            source=source,
        )

    async def process(self, summary: MarketSummary) -> PredictedSymbol:
        """
        Process one candidate under the per-item timeout.

        Raises:
            TimeoutError: If fetch + computation exceeded per_item_timeout
            DataError / MarketDataError: From evaluate()
        """
        snapshot, local = await asyncio.wait_for(
            self.evaluate(summary), timeout=self.per_item_timeout
        )
        return await self._review(summary, snapshot, local)

    async def _worker(
        self, summary: MarketSummary, semaphore: asyncio.Semaphore
    ) -> PredictedSymbol | None:
        async with semaphore:
            try:
                predicted = await self.process(summary)
            except asyncio.TimeoutError:
                logger.warning(
                    f"{summary.symbol}: timed out after {self.per_item_timeout}s, dropped"
                )
                return None
            except Exception as e:
                logger.warning(f"{summary.symbol}: processing failed ({e}), dropped")
                return None

        logger.info(
            f"{summary.symbol}: {predicted.prediction.value} "
            f"({predicted.confidence}%, {predicted.source})"
        )
        return predicted

    async def run(
        self, candidates: list[MarketSummary], timeout: float | None = None
    ) -> BatchResult:
        """
        Process all candidates with bounded concurrency.

        Args:
            candidates: Filtered market summaries
            timeout: Batch-wide deadline in seconds; unfinished items are
                cancelled when it elapses and completed results are kept

        Returns:
            BatchResult with predictions sorted by 24h change desc, then volume desc
        """
        result = BatchResult()
        if not candidates:
            return result

        semaphore = asyncio.Semaphore(self.max_concurrent_workers)
        tasks = {
            asyncio.create_task(self._worker(summary, semaphore)): summary.symbol
            for summary in candidates
        }

        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        if pending:
            logger.warning(
                f"Batch deadline of {timeout}s exceeded, cancelling {len(pending)} "
                f"unfinished items ({len(done)} completed)"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task, symbol in tasks.items():
            if task in pending:
                result.timed_out.append(symbol)
                continue
            predicted = task.result()
            if predicted is None:
                result.failed.append(symbol)
            else:
                result.predictions.append(predicted)

        result.predictions = sort_predictions(result.predictions)
        logger.info(
            f"Batch complete: {len(result.predictions)}/{len(candidates)} processed, "
            f"{len(result.failed)} failed, {len(result.timed_out)} cut off"
        )
        return result
