"""Service classification: keyword fallback, LLM output normalization and orchestration."""

from booking_core.classification.fallback import (
    FallbackClassifier,
    classify_with_fallback,
    has_strong_fallback_signal,
    meets_confidence_threshold,
)
from booking_core.classification.normalizer import (
    normalize_service_type,
    normalize_urgency,
    parse_llm_classification,
)
from booking_core.classification.service import (
    ClassificationOutcome,
    ClassificationService,
    backoff_delay,
    categorize_error,
)

__all__ = [
    "ClassificationOutcome",
    "ClassificationService",
    "FallbackClassifier",
    "backoff_delay",
    "categorize_error",
    "classify_with_fallback",
    "has_strong_fallback_signal",
    "meets_confidence_threshold",
    "normalize_service_type",
    "normalize_urgency",
    "parse_llm_classification",
]
