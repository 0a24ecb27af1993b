"""Business services."""

from scanner.services.batch import BatchOrchestrator, BatchResult
from scanner.services.predictor import MarketPredictor, PredictionRun
from scanner.services.scheduler import (
    CycleCallback,
    CycleController,
    CycleReport,
    CycleStatus,
    ControllerState,
)

__all__ = [
    "BatchOrchestrator",
    "BatchResult",
    "MarketPredictor",
    "PredictionRun",
    "CycleCallback",
    "CycleController",
    "CycleReport",
    "CycleStatus",
    "ControllerState",
]
