"""Market predictor: one full prediction pass over the market."""

import asyncio
import logging
from dataclasses import dataclass, field

from engine.candidate_filter import CandidateFilter
from engine.models import MarketSummary
from scanner.clients.protocol import OpenInterestSource, SummarySource
from scanner.services.batch import BatchOrchestrator, BatchResult

logger = logging.getLogger(__name__)


@dataclass
class PredictionRun:
    """Candidates selected in one pass and the batch outcome for them."""

    candidates: list[MarketSummary] = field(default_factory=list)
    batch: BatchResult = field(default_factory=BatchResult)


class MarketPredictor:
    """Fetch 24h summaries, select candidates and run the batch, under one deadline."""

    def __init__(
        self,
        summaries: SummarySource,
        candidate_filter: CandidateFilter,
        orchestrator: BatchOrchestrator,
        open_interest: OpenInterestSource | None = None,
        min_open_interest: float | None = None,
    ):
        self.summaries = summaries
        self.candidate_filter = candidate_filter
        self.orchestrator = orchestrator
        self.open_interest = open_interest
        self.min_open_interest = min_open_interest

    async def _fetch_open_interest(self, summary: MarketSummary) -> MarketSummary | None:
        try:
            value = await self.open_interest.get_open_interest(summary.symbol)
        except Exception as e:
            logger.warning(f"{summary.symbol}: open interest unavailable ({e}), skipped")
            return None

        if value is None or value <= self.min_open_interest:
            logger.debug(f"{summary.symbol}: open interest {value} below threshold")
            return None
        return summary.model_copy(update={"open_interest_value": value})

    async def filter_open_interest(
        self, candidates: list[MarketSummary]
    ) -> list[MarketSummary]:
        """
        Keep candidates whose open interest value exceeds min_open_interest.

        A symbol whose open interest cannot be fetched is dropped. Kept
        summaries carry their open_interest_value; input order is preserved.
        """
        if self.open_interest is None or self.min_open_interest is None:
            return candidates

        results = await asyncio.gather(
            *(self._fetch_open_interest(summary) for summary in candidates)
        )
        kept = [summary for summary in results if summary is not None]

        logger.info(
            f"Open interest gate: {len(kept)}/{len(candidates)} above "
            f"{self.min_open_interest:,.0f} USDT"
        )
        return kept

    async def predict(self, timeout: float | None = None) -> PredictionRun:
        """
        Run one prediction pass.

        Args:
            timeout: Overall deadline in seconds covering the ticker fetch,
                the open interest gate and the batch. None means no deadline.

        Returns:
            PredictionRun; its batch holds the completed subset when the
            deadline cut the batch short

        Raises:
            TimeoutError: If the deadline elapsed before candidates were known
            MarketDataError: If the 24h summaries could not be fetched
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        def remaining() -> float | None:
            if deadline is None:
                return None
            return max(0.0, deadline - loop.time())

        summaries = await asyncio.wait_for(
            self.summaries.get_all_tickers(), timeout=remaining()
        )
        candidates = self.candidate_filter.select(summaries)
        if candidates:
            candidates = await asyncio.wait_for(
                self.filter_open_interest(candidates), timeout=remaining()
            )

        if not candidates:
            logger.info("No candidates met the filter thresholds")
            return PredictionRun()

        batch = await self.orchestrator.run(candidates, timeout=remaining())
        return PredictionRun(candidates=candidates, batch=batch)
