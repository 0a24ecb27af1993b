"""Optional LLM analyst (OpenAI-compatible chat completions, e.g. DeepSeek).

The analyst may override a locally computed prediction. It is never
load-bearing: callers fall back to the local result on any
ExternalServiceError or timeout.
"""

import logging
import re
from dataclasses import dataclass

import httpx

from engine.errors import ExternalServiceError
from engine.models import IndicatorSnapshot, Prediction, ScoreResult

logger = logging.getLogger(__name__)

_KEYWORDS = r"STRONG_BUY|STRONG_SELL|BUY|SELL|HOLD"
_SIGNAL_LINE_RE = re.compile(
    rf"^\W*signal\W*[:=]\W*({_KEYWORDS})\b", re.IGNORECASE | re.MULTILINE
)
# Bare keywords are upper-case only, so prose like "not a buy yet" is ignored
_SIGNAL_RE = re.compile(rf"\b({_KEYWORDS})\b")
_CONFIDENCE_RE = re.compile(r"confidence[:\s]+(\d{1,3})\s*%?", re.IGNORECASE)


@dataclass(frozen=True)
class AnalystVerdict:
    """Parsed analyst answer."""

    prediction: Prediction
    confidence: int
    analysis: str


def parse_verdict(text: str, default_confidence: int) -> AnalystVerdict:
    """
    Extract the signal keyword and confidence from free-form analysis text.

    A "SIGNAL: <KEYWORD>" line wins. Otherwise the first upper-case keyword
    anywhere in the text is used.

    Args:
        text: Model output
        default_confidence: Used when no "confidence: NN%" is present

    Raises:
        ExternalServiceError: If no signal keyword is found
    """
    match = _SIGNAL_LINE_RE.search(text) or _SIGNAL_RE.search(text)
    if match is None:
        raise ExternalServiceError("Analyst response contains no signal keyword")

    confidence = default_confidence
    conf_match = _CONFIDENCE_RE.search(text)
    if conf_match:
        confidence = min(100, max(0, int(conf_match.group(1))))

    return AnalystVerdict(
        prediction=Prediction(match.group(1).upper()),
        confidence=confidence,
        analysis=text,
    )


def build_prompt(symbol: str, snapshot: IndicatorSnapshot, local: ScoreResult) -> str:
    """Render the indicator snapshot as a compact prompt."""
    macd = snapshot.macd
    ma = snapshot.moving_averages
    bb = snapshot.bollinger
    vol = snapshot.volume_profile
    ma50 = f"{ma.ma50:.6g}" if ma.ma50 is not None else "n/a"
    patterns = ", ".join(p.name for p in snapshot.patterns) or "none"

    return (
        f"You are a crypto futures technical analyst. Assess {symbol}.\n"
        f"Price: {snapshot.current_price:.6g}\n"
        f"MACD: dif={macd.value:.6g} dea={macd.signal_line:.6g} "
        f"hist={macd.histogram:.6g} momentum={macd.momentum_delta:.6g}\n"
        f"RSI: {snapshot.rsi:.1f}\n"
        f"MA: ma5={ma.ma5:.6g} ma10={ma.ma10:.6g} ma20={ma.ma20:.6g} ma50={ma50}\n"
        f"Bollinger: upper={bb.upper:.6g} middle={bb.middle:.6g} lower={bb.lower:.6g} "
        f"bandwidth={bb.bandwidth_percent:.2f}% position={bb.position.value}\n"
        f"Volume: ratio={vol.volume_ratio:.2f} trend={vol.volume_trend_slope:.4g} "
        f"vwap={vol.vwap:.6g}\n"
        f"Patterns: {patterns}\n"
        f"Local model: {local.prediction.value} ({local.confidence}%)\n\n"
        "Start your answer with a line 'SIGNAL: <KEYWORD>' where KEYWORD is one of "
        "STRONG_BUY, BUY, HOLD, SELL, STRONG_SELL, then a line "
        "'confidence: NN%', then a short justification."
    )


class DeepSeekAnalyst:
    """Chat-completions client for the optional external analysis."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.deepseek.com",
        model: str = "deepseek-chat",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings) -> "DeepSeekAnalyst":
        return cls(
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            model=settings.deepseek_model,
            timeout=settings.analysis_timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def analyze(
        self, symbol: str, snapshot: IndicatorSnapshot, local: ScoreResult
    ) -> AnalystVerdict:
        """
        Ask the model for a verdict on one symbol.

        Raises:
            ExternalServiceError: On HTTP failure or an unparseable response
        """
        client = await self._get_client()
        payload = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": build_prompt(symbol, snapshot, local)},
            ],
            "temperature": 0.7,
            "max_tokens": 1500,
        }

        try:
            response = await client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Analyst request failed for {symbol}: {e}") from e
        except ValueError as e:
            raise ExternalServiceError(f"Analyst returned malformed JSON for {symbol}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"Unexpected analyst payload for {symbol}") from e

        if not isinstance(content, str) or not content.strip():
            raise ExternalServiceError(f"Empty analyst response for {symbol}")

        verdict = parse_verdict(content, default_confidence=local.confidence)
        logger.info(
            f"{symbol} analyst verdict: {verdict.prediction.value} ({verdict.confidence}%)"
        )
        return verdict
