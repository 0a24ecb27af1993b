"""Tests for the market predictor and its open interest gate."""

import httpx
import pytest

from engine.candidate_filter import CandidateFilter
from engine.errors import MarketDataError
from scanner.clients.binance_rest import BinanceRestClient
from scanner.services.batch import BatchOrchestrator
from scanner.services.predictor import MarketPredictor

from conftest import FakeCandleSource


class FakeSummarySource:
    def __init__(self, summaries):
        self.summaries = summaries

    async def get_all_tickers(self):
        return self.summaries


class FakeOpenInterest:
    """Open interest per symbol; exceptions in the table are raised."""

    def __init__(self, values):
        self.values = values
        self.requested = []

    async def get_open_interest(self, symbol):
        self.requested.append(symbol)
        value = self.values.get(symbol)
        if isinstance(value, Exception):
            raise value
        return value


def make_predictor(summaries, open_interest=None, min_open_interest=None):
    return MarketPredictor(
        summaries=FakeSummarySource(summaries),
        candidate_filter=CandidateFilter(1e6, 10.0),
        orchestrator=BatchOrchestrator(FakeCandleSource()),
        open_interest=open_interest,
        min_open_interest=min_open_interest,
    )


class TestMarketPredictor:
    """Tests for MarketPredictor."""

    @pytest.mark.asyncio
    async def test_gate_disabled_keeps_all_candidates(self, summary_factory):
        summaries = [summary_factory("AUSDT", change=20.0), summary_factory("BUSDT")]
        predictor = make_predictor(summaries)

        run = await predictor.predict()

        assert [c.symbol for c in run.candidates] == ["AUSDT", "BUSDT"]
        assert all(p.open_interest_value is None for p in run.batch.predictions)

    @pytest.mark.asyncio
    async def test_open_interest_gate(self, summary_factory):
        summaries = [
            summary_factory("AUSDT", change=20.0),
            summary_factory("BUSDT", change=15.0),
            summary_factory("CUSDT", change=14.0),
            summary_factory("DUSDT", change=13.0),
            summary_factory("EUSDT", change=12.0),
        ]
        source = FakeOpenInterest({
            "AUSDT": 80_000_000.0,
            "BUSDT": 50_000_000.0,  # not strictly above
            "CUSDT": MarketDataError("HTTP 400"),
            "DUSDT": None,
            "EUSDT": 120_000_000.0,
        })
        predictor = make_predictor(summaries, source, min_open_interest=50_000_000)

        run = await predictor.predict()

        assert [c.symbol for c in run.candidates] == ["AUSDT", "EUSDT"]
        assert {p.symbol: p.open_interest_value for p in run.batch.predictions} == {
            "AUSDT": 80_000_000.0,
            "EUSDT": 120_000_000.0,
        }

    @pytest.mark.asyncio
    async def test_gate_only_queries_filtered_candidates(self, summary_factory):
        summaries = [
            summary_factory("AUSDT", change=20.0),
            summary_factory("QUIETUSDT", change=1.0),
        ]
        source = FakeOpenInterest({"AUSDT": 60_000_000.0})
        predictor = make_predictor(summaries, source, min_open_interest=50_000_000)

        await predictor.predict()

        assert source.requested == ["AUSDT"]

    @pytest.mark.asyncio
    async def test_nothing_passes_gate(self, summary_factory):
        source = FakeOpenInterest({"AUSDT": 1_000.0})
        predictor = make_predictor(
            [summary_factory("AUSDT", change=20.0)], source, min_open_interest=50_000_000
        )

        run = await predictor.predict()

        assert run.candidates == []
        assert run.batch.predictions == []

    @pytest.mark.asyncio
    async def test_gate_with_binance_client(self, summary_factory):
        values = {"AUSDT": "75000000.0", "BUSDT": "2000000.0"}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/futures/data/openInterestHist"
            symbol = request.url.params["symbol"]
            if symbol not in values:
                return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})
            return httpx.Response(
                200, json=[{"symbol": symbol, "sumOpenInterestValue": values[symbol]}]
            )

        client = BinanceRestClient(
            request_interval=0,
            retry_base_delay=0,
            retry_max_delay=0,
            transport=httpx.MockTransport(handler),
        )
        summaries = [
            summary_factory("AUSDT", change=20.0),
            summary_factory("BUSDT", change=15.0),
            summary_factory("DELISTEDUSDT", change=30.0),
        ]
        predictor = make_predictor(summaries, client, min_open_interest=50_000_000)

        kept = await predictor.filter_open_interest(summaries)
        await client.close()

        assert [s.symbol for s in kept] == ["AUSDT"]
        assert kept[0].open_interest_value == 75_000_000.0
