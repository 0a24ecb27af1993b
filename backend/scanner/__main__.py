"""Command-line entry point.

Usage:
    python -m scanner            # serve the API and run cycles on schedule
    python -m scanner --once     # run a single cycle and exit
"""

import argparse
import asyncio
import logging
import sys

from scanner.config import get_settings
from scanner.main import build_controller, main as serve
from scanner.services import CycleStatus

logger = logging.getLogger(__name__)


async def run_once() -> int:
    """Run one cycle and return a process exit code."""
    settings = get_settings()
    controller, closers = build_controller(settings)
    try:
        report = await controller.trigger()
    finally:
        for close in closers:
            await close()

    if report is None or report.status == CycleStatus.FAILED:
        logger.error(f"Cycle failed: {report.error if report else 'not started'}")
        return 1
    for warning in report.warnings:
        logger.warning(warning)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="scanner",
        description="Futures momentum scanner",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single prediction cycle, print the signal table and exit",
    )
    args = parser.parse_args()

    if args.once:
        sys.exit(asyncio.run(run_once()))
    serve()


if __name__ == "__main__":
    main()
