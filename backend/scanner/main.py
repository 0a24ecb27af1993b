"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from engine.candidate_filter import CandidateFilter
from engine.indicators import IndicatorCalculator
from engine.scoring import SignalScorer
from scanner import __version__
from scanner.api import router
from scanner.clients import BinanceRestClient, DeepSeekAnalyst
from scanner.config import Settings, get_settings, load_exclusions
from scanner.reports import default_reports
from scanner.services import BatchOrchestrator, CycleController, MarketPredictor

logger = logging.getLogger(__name__)


def build_controller(
    settings: Settings,
) -> tuple[CycleController, list[Callable[[], Awaitable[None]]]]:
    """
    Wire the pipeline from settings.

    Returns:
        The controller and the close() coroutines of the clients it owns
    """
    client = BinanceRestClient.from_settings(settings)
    closers = [client.close]

    analyst = None
    if settings.external_analysis_enabled:
        if settings.deepseek_api_key:
            analyst = DeepSeekAnalyst.from_settings(settings)
            closers.append(analyst.close)
            logger.info(f"External analysis enabled ({settings.deepseek_model})")
        else:
            logger.warning("External analysis enabled but no API key set, using local scoring only")

    excluded = load_exclusions(settings.exclusion_file)

    orchestrator = BatchOrchestrator(
        candles=client,
        calculator=IndicatorCalculator(settings.indicator_config()),
        scorer=SignalScorer(),
        candle_interval=settings.candle_interval,
        candle_lookback=settings.candle_lookback,
        max_concurrent_workers=settings.max_concurrent_workers,
        per_item_timeout=settings.per_item_timeout,
        analyst=analyst,
        analysis_timeout=settings.analysis_timeout,
    )
    predictor = MarketPredictor(
        summaries=client,
        candidate_filter=CandidateFilter.from_config(settings.filter_config(), excluded),
        orchestrator=orchestrator,
        open_interest=client,
        min_open_interest=settings.min_open_interest,
    )
    controller = CycleController(
        predictor,
        cycle_timeout=settings.cycle_timeout,
        schedule_interval=settings.schedule_interval,
    )
    for report in default_reports(settings):
        controller.on_cycle_complete(report)

    return controller, closers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting futures momentum scanner...")

    settings = get_settings()
    controller, closers = build_controller(settings)
    app.state.controller = controller
    controller.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.controller = None
    await controller.stop()

    for close in closers:
        try:
            await close()
        except Exception as e:
            logger.warning(f"Error closing client: {e}")

    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="Futures Momentum Scanner",
    description="Technical-indicator signal scanner for crypto futures",
    version=__version__,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Futures Momentum Scanner",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "scanner.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
