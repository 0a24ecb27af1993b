"""Execution cycle controller.

Fires the prediction pipeline on a fixed wall-clock cadence, enforces a
cycle-wide deadline and guarantees at most one cycle runs at a time.
A trigger that arrives while a cycle is running is dropped, not queued.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from engine.models import PredictedSymbol
from scanner.services.predictor import MarketPredictor

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"


class CycleStatus(str, Enum):
    SUCCESS = "SUCCESS"
    SUCCESS_WITH_WARNINGS = "SUCCESS_WITH_WARNINGS"
    FAILED = "FAILED"


@dataclass
class CycleReport:
    """Outcome of one execution cycle."""

    cycle_id: int
    started_at: datetime
    status: CycleStatus = CycleStatus.SUCCESS
    finished_at: datetime | None = None
    predictions: list[PredictedSymbol] = field(default_factory=list)
    candidates: int = 0
    dropped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> dict[str, Any]:
        """JSON-friendly summary without the indicator payloads."""
        return {
            "cycle_id": self.cycle_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration": self.duration,
            "candidates": self.candidates,
            "predictions": len(self.predictions),
            "dropped": self.dropped,
            "warnings": self.warnings,
            "error": self.error,
        }


# Downstream consumer of a finished cycle (report writer, notifier, ...)
CycleCallback = Callable[[CycleReport], Awaitable[None] | None]


class CycleController:
    """Single-flight, deadline-bounded periodic driver of the MarketPredictor."""

    def __init__(
        self,
        predictor: MarketPredictor,
        cycle_timeout: float = 600.0,
        schedule_interval: float = 900.0,
    ):
        self.predictor = predictor
        self.cycle_timeout = cycle_timeout
        self.schedule_interval = schedule_interval

        self._running = False
        self._execution_count = 0
        self._last_report: CycleReport | None = None
        self._callbacks: list[CycleCallback] = []
        self._loop_task: asyncio.Task | None = None
        self._cycle_tasks: set[asyncio.Task] = set()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> ControllerState:
        return ControllerState.RUNNING if self._running else ControllerState.IDLE

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_scheduled(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def execution_count(self) -> int:
        return self._execution_count

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    def on_cycle_complete(self, callback: CycleCallback) -> None:
        """Register a downstream consumer. Each one is isolated from the others."""
        self._callbacks.append(callback)

    def next_run_time(self) -> datetime | None:
        """Next wall-clock slot while the periodic loop is active."""
        if not self.is_scheduled:
            return None
        return datetime.fromtimestamp(
            time.time() + self._seconds_until_next_slot(), tz=timezone.utc
        )

    def stats(self) -> dict[str, Any]:
        next_run = self.next_run_time()
        return {
            "state": self.state.value,
            "is_running": self._running,
            "is_scheduled": self.is_scheduled,
            "execution_count": self._execution_count,
            "schedule_interval": self.schedule_interval,
            "cycle_timeout": self.cycle_timeout,
            "next_run_time": next_run.isoformat() if next_run else None,
            "last_report": self._last_report.summary() if self._last_report else None,
        }

    # =========================================================================
    # Cycle
    # =========================================================================

    async def trigger(self) -> CycleReport | None:
        """
        Run one cycle unless one is already running.

        Returns:
            The CycleReport, or None if the trigger was dropped
        """
        # Test-and-set with no await in between
        if self._running:
            logger.warning(
                f"Cycle #{self._execution_count} still running, trigger dropped"
            )
            return None

        self._running = True
        self._execution_count += 1
        cycle_id = self._execution_count

        try:
            report = await self._run_cycle(cycle_id)
        finally:
            self._running = False

        self._last_report = report
        return report

    async def _run_cycle(self, cycle_id: int) -> CycleReport:
        report = CycleReport(cycle_id=cycle_id, started_at=datetime.now(timezone.utc))
        logger.info(f"Cycle #{cycle_id} started")

        try:
            run = await self.predictor.predict(timeout=self.cycle_timeout)
        except asyncio.TimeoutError:
            report.status = CycleStatus.FAILED
            report.error = f"Cycle deadline of {self.cycle_timeout}s exceeded"
            logger.error(f"Cycle #{cycle_id}: {report.error}")
        except Exception as e:
            report.status = CycleStatus.FAILED
            report.error = f"{type(e).__name__}: {e}"
            logger.error(f"Cycle #{cycle_id} failed: {report.error}")
        else:
            report.candidates = len(run.candidates)
            report.predictions = run.batch.predictions
            report.dropped = run.batch.dropped
            if run.batch.deadline_exceeded:
                report.status = CycleStatus.FAILED
                report.error = (
                    f"Cycle deadline of {self.cycle_timeout}s exceeded, "
                    f"{len(run.batch.timed_out)} items unprocessed"
                )
                logger.error(f"Cycle #{cycle_id}: {report.error}")
            await self._notify(report)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Cycle #{cycle_id} finished: {report.status.value}, "
            f"{len(report.predictions)}/{report.candidates} predictions "
            f"in {report.duration:.1f}s"
        )
        return report

    async def _notify(self, report: CycleReport) -> None:
        """Run every consumer; a failing consumer only adds a warning."""
        for callback in self._callbacks:
            name = getattr(callback, "__name__", type(callback).__name__)
            try:
                result = callback(report)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                message = f"{name} failed: {e}"
                report.warnings.append(message)
                logger.warning(f"Cycle #{report.cycle_id}: {message}")

        if report.warnings and report.status == CycleStatus.SUCCESS:
            report.status = CycleStatus.SUCCESS_WITH_WARNINGS

    # =========================================================================
    # Schedule
    # =========================================================================

    def _seconds_until_next_slot(self) -> float:
        """Seconds until the next wall-clock multiple of schedule_interval."""
        now = time.time()
        return self.schedule_interval - (now % self.schedule_interval)

    def _spawn_cycle(self) -> None:
        task = asyncio.create_task(self.trigger())
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)

    async def _schedule_loop(self) -> None:
        """Fire immediately, then on every interval boundary."""
        self._spawn_cycle()
        while True:
            await asyncio.sleep(self._seconds_until_next_slot())
            self._spawn_cycle()

    def start(self) -> None:
        """Start the periodic loop (runs one cycle immediately)."""
        if self.is_scheduled:
            logger.warning("Scheduler already started")
            return
        self._loop_task = asyncio.create_task(self._schedule_loop())
        logger.info(
            f"Scheduler started: every {self.schedule_interval:.0f}s, "
            f"cycle deadline {self.cycle_timeout:.0f}s"
        )

    async def stop(self) -> None:
        """Stop the loop and cancel any in-flight cycle."""
        tasks = list(self._cycle_tasks)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
            self._loop_task = None

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Scheduler stopped")
