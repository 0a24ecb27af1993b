"""Exchange and analysis clients."""

from scanner.clients.analyst import AnalystVerdict, DeepSeekAnalyst, parse_verdict
from scanner.clients.binance_rest import BinanceRestClient, RateLimiter
from scanner.clients.protocol import (
    Analyst,
    CandleSource,
    OpenInterestSource,
    SummarySource,
)

__all__ = [
    "AnalystVerdict",
    "DeepSeekAnalyst",
    "parse_verdict",
    "BinanceRestClient",
    "RateLimiter",
    "Analyst",
    "CandleSource",
    "OpenInterestSource",
    "SummarySource",
]
