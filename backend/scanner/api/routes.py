"""REST API routes."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from pydantic import BaseModel

from engine.models import Prediction
from scanner import __version__
from scanner.services import CycleController

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class PredictionResponse(BaseModel):
    """Prediction response model."""

    symbol: str
    current_price: float
    volume_24h: float
    price_change_percent_24h: float
    open_interest_value: Optional[float] = None
    prediction: str
    confidence: int
    source: str
    rsi: float
    macd_histogram: float
    volume_ratio: float
    generated_at: datetime


class SystemStatus(BaseModel):
    """System status response."""

    status: str
    version: str
    state: str
    is_scheduled: bool
    execution_count: int
    next_run_time: Optional[datetime] = None
    last_cycle_status: Optional[str] = None


class TriggerResponse(BaseModel):
    accepted: bool
    message: str


def get_controller(request: Request) -> CycleController:
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Scanner not initialized")
    return controller


@router.get("/status", response_model=SystemStatus)
async def get_status(request: Request):
    """Get scheduler status."""
    controller = get_controller(request)
    last = controller.last_report

    return SystemStatus(
        status="running",
        version=__version__,
        state=controller.state.value,
        is_scheduled=controller.is_scheduled,
        execution_count=controller.execution_count,
        next_run_time=controller.next_run_time(),
        last_cycle_status=last.status.value if last else None,
    )


@router.get("/predictions", response_model=list[PredictionResponse])
async def get_predictions(
    request: Request,
    signal: Optional[Prediction] = Query(None, description="Filter by signal"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum predictions to return"),
):
    """Get predictions from the most recent cycle."""
    controller = get_controller(request)
    report = controller.last_report
    if report is None:
        return []

    predictions = report.predictions
    if signal is not None:
        predictions = [p for p in predictions if p.prediction == signal]

    return [
        PredictionResponse(
            symbol=p.symbol,
            current_price=p.current_price,
            volume_24h=p.volume_24h,
            price_change_percent_24h=p.price_change_percent_24h,
            open_interest_value=p.open_interest_value,
            prediction=p.prediction.value,
            confidence=p.confidence,
            source=p.source,
            rsi=p.indicators.rsi,
            macd_histogram=p.indicators.macd.histogram,
            volume_ratio=p.indicators.volume_profile.volume_ratio,
            generated_at=p.generated_at,
        )
        for p in predictions[:limit]
    ]


@router.get("/cycles/last")
async def get_last_cycle(request: Request):
    """Get the summary of the most recent cycle."""
    controller = get_controller(request)
    report = controller.last_report
    if report is None:
        raise HTTPException(status_code=404, detail="No cycle has completed yet")
    return report.summary()


@router.post("/cycles/trigger", response_model=TriggerResponse, status_code=202)
async def trigger_cycle(request: Request, background_tasks: BackgroundTasks):
    """Start a cycle now unless one is already running."""
    controller = get_controller(request)
    if controller.is_running:
        raise HTTPException(status_code=409, detail="A cycle is already running")

    background_tasks.add_task(controller.trigger)
    logger.info("Manual cycle trigger accepted")
    return TriggerResponse(accepted=True, message="Cycle started")
