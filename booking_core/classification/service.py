"""
Classification orchestration: remote classifier with retry, circuit breaker
and keyword fallback.

The remote classifier is any async callable returning a
``ServiceClassification``, a dict, or JSON text. ``classify`` never raises:
when the remote path is down, slow or returns garbage, the keyword
fallback answers, and if that fails too a low-confidence default is
returned.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from booking_core.classification.circuit_breaker import (
    BreakerStatus,
    CircuitState,
    allow_request,
    record_failure,
    record_success,
)
from booking_core.classification.fallback import (
    FallbackClassifier,
    has_strong_fallback_signal,
    meets_confidence_threshold,
)
from booking_core.classification.normalizer import parse_llm_classification
from booking_core.config import ClassifierConfig, settings
from booking_core.exceptions import ClassificationError
from booking_core.schemas.classification_schema import (
    ServiceClassification,
    ServiceType,
    UrgencyLevel,
)

logger = logging.getLogger(__name__)

LLMResult = Union[ServiceClassification, dict[str, Any], str]
LLMClassifier = Callable[[str], Awaitable[LLMResult]]

SAFE_DEFAULT = ServiceClassification(
    service_type=ServiceType.GENERAL_MAINTENANCE,
    urgency=UrgencyLevel.LOW,
    confidence=0.1,
    reasoning="Both LLM and fallback failed, using safe default",
    estimated_duration_minutes=90,
)

# Ordered: first matching rule wins
_ERROR_RULES: list[tuple[tuple[str, ...], str, str, bool]] = [
    (("401", "unauthorized"), "LLM_API_ERROR", "Invalid API credentials", False),
    (("429", "rate limit"), "RATE_LIMITED", "Rate limit exceeded", True),
    (("timeout", "timed out"), "TIMEOUT", "Request timeout", True),
    (("json", "parse"), "JSON_PARSE_ERROR", "Invalid JSON in response", True),
    (("validation", "schema"), "VALIDATION_ERROR", "Response validation failed", True),
    (("network", "econnrefused"), "LLM_API_ERROR", "Network error connecting to LLM API", True),
]


@dataclass
class ClassificationOutcome:
    classification: ServiceClassification
    source: str  # "llm" | "fallback" | "default"
    error: Optional[ClassificationError] = None

    @property
    def from_fallback(self) -> bool:
        return self.source != "llm"


def categorize_error(exc: BaseException) -> ClassificationError:
    """Map an arbitrary failure onto a ``ClassificationError`` code."""
    if isinstance(exc, ClassificationError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ClassificationError("TIMEOUT", "Request timeout")
    message = str(exc).lower()
    for needles, code, text, retryable in _ERROR_RULES:
        if any(needle in message for needle in needles):
            return ClassificationError(code, text, retryable=retryable)
    return ClassificationError("UNKNOWN", str(exc) or type(exc).__name__)


def backoff_delay(
    attempt: int,
    initial_delay_ms: int = 100,
    multiplier: float = 2.0,
    max_delay_ms: int = 5000,
) -> float:
    """Exponential backoff in milliseconds, capped at ``max_delay_ms``."""
    return min(initial_delay_ms * multiplier ** attempt, max_delay_ms)


def add_jitter(delay_ms: float, jitter_percent: float = 10.0) -> float:
    """Spread retries by +/- half of ``jitter_percent`` of the delay."""
    jitter = delay_ms * jitter_percent / 100
    return delay_ms + random.random() * jitter - jitter / 2


class ClassificationService:
    """Remote classifier wrapped with retries, a circuit breaker and a fallback."""

    def __init__(
        self,
        llm_classify: Optional[LLMClassifier] = None,
        fallback: Optional[Callable[[str], ServiceClassification]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        config: Optional[ClassifierConfig] = None,
        jitter: bool = True,
    ) -> None:
        self._llm_classify = llm_classify
        self._fallback = fallback or FallbackClassifier()
        self._clock = clock
        self._sleep = sleep
        self.config = config or settings.classifier
        self._jitter = jitter
        self.state = CircuitState()

    @property
    def circuit_status(self) -> BreakerStatus:
        return self.state.status

    def reset(self) -> None:
        self.state = CircuitState()

    async def classify(self, text: str) -> ClassificationOutcome:
        if self._llm_classify is None:
            return self._use_fallback(text, error=None)

        allowed, self.state = allow_request(
            self.state, self._clock(), self.config.reset_timeout_sec
        )
        if not allowed:
            logger.warning("LLM circuit breaker is open, using fallback")
            return self._use_fallback(
                text,
                ClassificationError("LLM_API_ERROR", "Circuit breaker open", retryable=False),
            )

        try:
            result = await self._call_with_retries(text)
        except ClassificationError as err:
            self.state = record_failure(
                self.state, self._clock(), self.config.failure_threshold
            )
            logger.warning("LLM classification failed, using fallback: %s", err.message)
            return self._use_fallback(text, err)

        self.state = record_success(self.state)
        return self._prefer_stronger(text, result)

    async def _call_with_retries(self, text: str) -> ServiceClassification:
        cfg = self.config
        for attempt in range(cfg.max_retries + 1):
            try:
                raw = await self._llm_classify(text)
                if isinstance(raw, ServiceClassification):
                    return raw
                return parse_llm_classification(raw)
            except Exception as exc:
                err = categorize_error(exc)
                if not err.retryable or attempt == cfg.max_retries:
                    logger.error(
                        "Classification failed (%s) after %d attempt(s): %s",
                        err.code, attempt + 1, err.message,
                    )
                    if err is exc:
                        raise
                    raise err from exc
                delay = backoff_delay(
                    attempt, cfg.initial_delay_ms, cfg.backoff_multiplier, cfg.max_delay_ms
                )
                if self._jitter:
                    delay = add_jitter(delay)
                logger.warning(
                    "Attempt %d failed, retrying in %.0fms: %s", attempt + 1, delay, err.message
                )
                await self._sleep(delay / 1000)
        raise ClassificationError("UNKNOWN", "Classification failed after all retries")

    def _prefer_stronger(
        self, text: str, result: ServiceClassification
    ) -> ClassificationOutcome:
        """Keep the LLM answer unless it is weak and the keywords are clearly stronger."""
        threshold = self.config.confidence_threshold
        if meets_confidence_threshold(result.confidence, threshold):
            return ClassificationOutcome(classification=result, source="llm")
        if has_strong_fallback_signal(text):
            candidate = self._fallback(text)
            if candidate.confidence > result.confidence:
                logger.info(
                    "LLM confidence %.2f below %.2f; keyword fallback preferred",
                    result.confidence, threshold,
                )
                return ClassificationOutcome(classification=candidate, source="fallback")
        return ClassificationOutcome(classification=result, source="llm")

    def _use_fallback(
        self, text: str, error: Optional[ClassificationError]
    ) -> ClassificationOutcome:
        try:
            classification = self._fallback(text)
        except Exception:
            logger.exception("Fallback classification also failed")
            return ClassificationOutcome(classification=SAFE_DEFAULT, source="default", error=error)
        return ClassificationOutcome(classification=classification, source="fallback", error=error)
