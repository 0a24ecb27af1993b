"""Report writers consuming finished cycles.

Each writer is registered separately with the CycleController, so a failure
in one (FormattingError / PersistenceError) does not stop the others.
"""

import asyncio
import csv
import io
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Iterable, TextIO

import orjson

from engine.errors import FormattingError, PersistenceError
from engine.models import PredictedSymbol, Prediction
from scanner.services.scheduler import CycleReport

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Symbol",
    "Current Price",
    "Volume 24h (USDT)",
    "Price Change 24h (%)",
    "Open Interest (USDT)",
    "MACD",
    "MACD Signal",
    "MACD Histogram",
    "RSI",
    "MA5",
    "MA10",
    "MA20",
    "MA50",
    "Bollinger Upper",
    "Bollinger Middle",
    "Bollinger Lower",
    "Bollinger Position",
    "Volume Ratio",
    "Volume Trend",
    "Prediction",
    "Confidence (%)",
    "Source",
    "Timestamp",
]


def select_signals(
    predictions: Iterable[PredictedSymbol], signals: Iterable[Prediction] | None
) -> list[PredictedSymbol]:
    """Keep only the configured signals (None keeps everything)."""
    if signals is None:
        return list(predictions)
    wanted = set(signals)
    return [p for p in predictions if p.prediction in wanted]


def _fmt(value: float | None, digits: int) -> str:
    return "N/A" if value is None else f"{value:.{digits}f}"


# =============================================================================
# Rendering
# =============================================================================


def render_console_table(predictions: list[PredictedSymbol]) -> str:
    """Fixed-width table for terminal output."""
    if not predictions:
        return "No predictions available"

    header = (
        f"{'#':>3}  {'Symbol':<14} {'Price':>14} {'24h %':>8} "
        f"{'Volume (M)':>11} {'RSI':>6} {'Signal':<12} {'Conf':>5}"
    )
    lines = [header, "-" * len(header)]
    for i, p in enumerate(predictions, 1):
        lines.append(
            f"{i:>3}  {p.symbol:<14} {p.current_price:>14.6g} "
            f"{p.price_change_percent_24h:>+8.2f} {p.volume_24h / 1e6:>11.1f} "
            f"{p.indicators.rsi:>6.1f} {p.prediction.value:<12} {p.confidence:>4}%"
        )
    return "\n".join(lines)


def render_csv(predictions: list[PredictedSymbol]) -> str:
    """One row per prediction with the main indicator values."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for p in predictions:
        ind = p.indicators
        ma = ind.moving_averages
        bb = ind.bollinger
        writer.writerow([
            p.symbol,
            _fmt(p.current_price, 8),
            _fmt(p.volume_24h, 2),
            _fmt(p.price_change_percent_24h, 2),
            _fmt(p.open_interest_value, 2),
            _fmt(ind.macd.value, 8),
            _fmt(ind.macd.signal_line, 8),
            _fmt(ind.macd.histogram, 8),
            _fmt(ind.rsi, 2),
            _fmt(ma.ma5, 8),
            _fmt(ma.ma10, 8),
            _fmt(ma.ma20, 8),
            _fmt(ma.ma50, 8),
            _fmt(bb.upper, 8),
            _fmt(bb.middle, 8),
            _fmt(bb.lower, 8),
            bb.position.value,
            _fmt(ind.volume_profile.volume_ratio, 4),
            _fmt(ind.volume_profile.volume_trend_slope, 6),
            p.prediction.value,
            p.confidence,
            p.source,
            p.generated_at.isoformat(),
        ])

    return buffer.getvalue()


def render_markdown(report: CycleReport, predictions: list[PredictedSymbol]) -> str:
    lines = [
        f"# Signal report - cycle #{report.cycle_id}",
        "",
        f"**Generated**: {report.started_at:%Y-%m-%d %H:%M:%S} UTC",
        f"**Candidates**: {report.candidates}",
        f"**Signals**: {len(predictions)}",
        "",
        "| # | Symbol | Price | 24h % | Signal | Confidence |",
        "|---|--------|-------|-------|--------|------------|",
    ]
    for i, p in enumerate(predictions, 1):
        lines.append(
            f"| {i} | {p.symbol} | {p.current_price:.8f} | "
            f"{p.price_change_percent_24h:+.2f}% | {p.prediction.value} | "
            f"{p.confidence}% |"
        )

    counts = Counter(p.prediction.value for p in predictions)
    if counts:
        lines += ["", "## Signal distribution", ""]
        lines += [f"- {signal}: {count}" for signal, count in sorted(counts.items())]

    if report.dropped:
        lines += ["", f"_Dropped: {', '.join(report.dropped)}_"]

    return "\n".join(lines) + "\n"


def render_json(report: CycleReport, predictions: list[PredictedSymbol]) -> bytes:
    payload = {
        "cycle": report.summary(),
        "count": len(predictions),
        "statistics": dict(Counter(p.prediction.value for p in predictions)),
        "symbols": [
            p.model_dump(mode="json", exclude={"indicators": {"price_data"}})
            for p in predictions
        ],
    }
    return orjson.dumps(payload, option=orjson.OPT_INDENT_2)


# =============================================================================
# Writers (cycle callbacks)
# =============================================================================


class ConsoleReport:
    """Print the signal table after every cycle."""

    def __init__(self, signals: Iterable[Prediction] | None = None, stream: TextIO | None = None):
        self.signals = list(signals) if signals is not None else None
        self.stream = stream

    async def __call__(self, report: CycleReport) -> None:
        predictions = select_signals(report.predictions, self.signals)
        try:
            table = render_console_table(predictions)
        except (TypeError, ValueError, AttributeError) as e:
            raise FormattingError(f"Console table: {e}") from e
        print(table, file=self.stream or sys.stdout)


class _FileReport:
    """Render a cycle and write it to a timestamped file."""

    prefix = "report"
    suffix = ".txt"

    def __init__(self, directory: str | Path, signals: Iterable[Prediction] | None = None):
        self.directory = Path(directory)
        self.signals = list(signals) if signals is not None else None

    def render(self, report: CycleReport, predictions: list[PredictedSymbol]) -> str | bytes:
        raise NotImplementedError

    def path_for(self, report: CycleReport) -> Path:
        stamp = report.started_at.strftime("%Y-%m-%d_%H-%M-%S")
        return self.directory / f"{self.prefix}_{stamp}{self.suffix}"

    @staticmethod
    def _write(path: Path, content: str | bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")

    async def __call__(self, report: CycleReport) -> Path:
        predictions = select_signals(report.predictions, self.signals)
        try:
            content = self.render(report, predictions)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise FormattingError(f"{type(self).__name__}: {e}") from e

        path = self.path_for(report)
        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e

        logger.info(f"Wrote {len(predictions)} signals to {path}")
        return path


class CsvReport(_FileReport):
    prefix = "predictions"
    suffix = ".csv"

    def render(self, report, predictions):
        return render_csv(predictions)


class MarkdownReport(_FileReport):
    suffix = ".md"

    def render(self, report, predictions):
        return render_markdown(report, predictions)


class JsonReport(_FileReport):
    suffix = ".json"

    def render(self, report, predictions):
        return render_json(report, predictions)


def default_reports(settings) -> list:
    """Writers configured from settings, in registration order."""
    signals = settings.report_signals
    return [
        ConsoleReport(signals),
        CsvReport(settings.output_dir, signals),
        MarkdownReport(settings.report_dir, signals),
        JsonReport(settings.report_dir, signals),
    ]
