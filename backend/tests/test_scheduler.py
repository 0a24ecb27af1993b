"""Tests for the execution cycle controller."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from engine.candidate_filter import CandidateFilter
from engine.errors import MarketDataError, PersistenceError
from scanner.services.batch import BatchOrchestrator, BatchResult
from scanner.services.predictor import MarketPredictor, PredictionRun
from scanner.services.scheduler import (
    ControllerState,
    CycleController,
    CycleStatus,
)

from conftest import FakeCandleSource


class FakePredictor:
    """Predictor returning a canned run, optionally blocking on a gate."""

    def __init__(self, run=None, error=None, gate=None):
        self.run = run or PredictionRun()
        self.error = error
        self.gate = gate
        self.calls = 0

    async def predict(self, timeout=None):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.run


class FakeSummarySource:
    def __init__(self, summaries):
        self.summaries = summaries

    async def get_all_tickers(self):
        return self.summaries


async def make_predictions(summary_factory):
    """Two real predictions to put in canned runs."""
    orchestrator = BatchOrchestrator(FakeCandleSource())
    return [
        await orchestrator.process(summary_factory("AUSDT", change=20.0)),
        await orchestrator.process(summary_factory("BUSDT", change=15.0)),
    ]


class TestCycleController:
    """Tests for CycleController."""

    @pytest.mark.asyncio
    async def test_successful_cycle(self, summary_factory):
        predicted = await make_predictions(summary_factory)
        run = PredictionRun(
            candidates=[summary_factory("AUSDT"), summary_factory("BUSDT")],
            batch=BatchResult(predictions=predicted),
        )
        controller = CycleController(FakePredictor(run))

        report = await controller.trigger()

        assert report.status == CycleStatus.SUCCESS
        assert report.cycle_id == 1
        assert report.candidates == 2
        assert len(report.predictions) == 2
        assert report.finished_at >= report.started_at
        assert controller.execution_count == 1
        assert controller.state == ControllerState.IDLE
        assert controller.last_report is report

    @pytest.mark.asyncio
    async def test_trigger_while_running_is_dropped(self):
        """A second trigger during a running cycle is a no-op, not queued."""
        gate = asyncio.Event()
        predictor = FakePredictor(gate=gate)
        controller = CycleController(predictor)

        first = asyncio.create_task(controller.trigger())
        await asyncio.sleep(0)
        assert controller.state == ControllerState.RUNNING

        second = await controller.trigger()

        assert second is None
        assert controller.execution_count == 1

        gate.set()
        report = await first

        assert report.status == CycleStatus.SUCCESS
        assert controller.execution_count == 1
        assert predictor.calls == 1
        assert controller.state == ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_failure_returns_to_idle(self):
        predictor = FakePredictor(error=MarketDataError("exchange down"))
        controller = CycleController(predictor)

        report = await controller.trigger()

        assert report.status == CycleStatus.FAILED
        assert "exchange down" in report.error
        assert controller.state == ControllerState.IDLE

        # The next trigger still runs
        predictor.error = None
        report = await controller.trigger()

        assert report.status == CycleStatus.SUCCESS
        assert controller.execution_count == 2

    @pytest.mark.asyncio
    async def test_deadline_before_candidates(self):
        controller = CycleController(FakePredictor(error=asyncio.TimeoutError()))

        report = await controller.trigger()

        assert report.status == CycleStatus.FAILED
        assert "deadline" in report.error

    @pytest.mark.asyncio
    async def test_deadline_keeps_completed_subset(self, summary_factory):
        predicted = await make_predictions(summary_factory)
        run = PredictionRun(
            candidates=[summary_factory(s) for s in ("AUSDT", "BUSDT", "CUSDT")],
            batch=BatchResult(predictions=predicted, timed_out=["CUSDT"]),
        )
        controller = CycleController(FakePredictor(run))

        report = await controller.trigger()

        assert report.status == CycleStatus.FAILED
        assert len(report.predictions) == 2
        assert report.dropped == ["CUSDT"]

    @pytest.mark.asyncio
    async def test_consumers_are_isolated(self, summary_factory):
        predicted = await make_predictions(summary_factory)
        run = PredictionRun(batch=BatchResult(predictions=predicted))
        controller = CycleController(FakePredictor(run))
        received = []

        async def broken_writer(report):
            raise PersistenceError("disk full")

        def recorder(report):
            received.append(report.cycle_id)

        notifier = AsyncMock()
        controller.on_cycle_complete(broken_writer)
        controller.on_cycle_complete(recorder)
        controller.on_cycle_complete(notifier)

        report = await controller.trigger()

        assert received == [1]
        notifier.assert_awaited_once_with(report)
        assert report.status == CycleStatus.SUCCESS_WITH_WARNINGS
        assert report.warnings == ["broken_writer failed: disk full"]

    @pytest.mark.asyncio
    async def test_consumers_skipped_when_pipeline_fails(self):
        controller = CycleController(FakePredictor(error=MarketDataError("down")))
        received = []
        controller.on_cycle_complete(lambda report: received.append(report))

        await controller.trigger()

        assert received == []

    @pytest.mark.asyncio
    async def test_end_to_end_deadline(self, summary_factory):
        """Real predictor: slow items are cut off, completed ones survive."""
        summaries = [summary_factory(f"S{i}USDT", change=20.0 + i) for i in range(4)]
        source = FakeCandleSource(delays={"S3USDT": 10.0})
        predictor = MarketPredictor(
            summaries=FakeSummarySource(summaries),
            candidate_filter=CandidateFilter(1e6, 10.0),
            orchestrator=BatchOrchestrator(source, per_item_timeout=30.0),
        )
        controller = CycleController(predictor, cycle_timeout=0.5)

        report = await controller.trigger()

        assert report.status == CycleStatus.FAILED
        assert report.candidates == 4
        assert [p.symbol for p in report.predictions] == ["S2USDT", "S1USDT", "S0USDT"]
        assert report.dropped == ["S3USDT"]


class TestSchedule:
    """Tests for the periodic loop."""

    @pytest.mark.asyncio
    async def test_runs_immediately_and_on_interval(self):
        controller = CycleController(FakePredictor(), schedule_interval=0.1)

        controller.start()
        await asyncio.sleep(0.05)
        assert controller.execution_count >= 1
        assert controller.is_scheduled
        assert controller.next_run_time() is not None

        await asyncio.sleep(0.3)
        await controller.stop()

        assert controller.execution_count >= 3
        assert not controller.is_scheduled
        assert controller.next_run_time() is None

    @pytest.mark.asyncio
    async def test_overlapping_ticks_are_dropped(self):
        """Ticks that fire while a cycle is still running do not start cycles."""
        gate = asyncio.Event()
        predictor = FakePredictor(gate=gate)
        controller = CycleController(predictor, schedule_interval=0.05)

        controller.start()
        await asyncio.sleep(0.3)

        assert controller.execution_count == 1
        assert predictor.calls == 1

        await controller.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_running_cycle(self):
        controller = CycleController(FakePredictor(gate=asyncio.Event()))

        controller.start()
        await asyncio.sleep(0.05)
        assert controller.is_running

        await controller.stop()

        assert controller.state == ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_stats(self):
        controller = CycleController(FakePredictor(), schedule_interval=900)
        await controller.trigger()

        stats = controller.stats()

        assert stats["execution_count"] == 1
        assert stats["state"] == "IDLE"
        assert stats["is_scheduled"] is False
        assert stats["last_report"]["status"] == "SUCCESS"
