"""Candidate filter: reduce the full market to instruments worth analyzing."""

from __future__ import annotations

import logging
from typing import Iterable

from engine.models import FilterConfig, MarketSummary

logger = logging.getLogger(__name__)


class CandidateFilter:
    """Select instruments by 24h quote volume and 24h price change.

    The exclusion set is fixed at construction and never mutated.
    """

    def __init__(
        self,
        min_quote_volume: float,
        min_price_change_percent: float,
        excluded: frozenset[str] = frozenset(),
        quote_asset: str | None = "USDT",
    ):
        self.min_quote_volume = min_quote_volume
        self.min_price_change_percent = min_price_change_percent
        self.excluded = frozenset(excluded)
        self.quote_asset = quote_asset

    @classmethod
    def from_config(
        cls, config: FilterConfig, excluded: frozenset[str] = frozenset()
    ) -> CandidateFilter:
        return cls(
            min_quote_volume=config.min_quote_volume,
            min_price_change_percent=config.min_price_change_percent,
            excluded=excluded,
            quote_asset=config.quote_asset,
        )

    def accepts(self, summary: MarketSummary) -> bool:
        """Whether a single summary passes every threshold."""
        if self.quote_asset and not summary.symbol.endswith(self.quote_asset):
            return False
        if summary.symbol in self.excluded:
            return False
        if summary.quote_volume < self.min_quote_volume:
            return False
        return summary.price_change_percent >= self.min_price_change_percent

    def select(self, summaries: Iterable[MarketSummary]) -> list[MarketSummary]:
        """
        Filter the market to candidates.

        Args:
            summaries: 24h summaries for every instrument

        Returns:
            Summaries that meet the thresholds and are not excluded, in input order
        """
        summaries = list(summaries)
        candidates = [s for s in summaries if self.accepts(s)]

        skipped = sum(1 for s in summaries if s.symbol in self.excluded)
        logger.info(
            f"Candidate filter: {len(candidates)}/{len(summaries)} selected "
            f"(volume >= {self.min_quote_volume:,.0f}, "
            f"change >= {self.min_price_change_percent}%, {skipped} excluded)"
        )
        return candidates
