"""
Keyword-based service classifier used when the LLM path is unavailable.

Pure and deterministic: the same text always yields the same
classification. No network, no clock, no shared state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from booking_core.schemas.classification_schema import (
    ServiceClassification,
    ServiceType,
    UrgencyLevel,
)

logger = logging.getLogger(__name__)

AMBIGUITY_PENALTY = 0.85
NO_MATCH_CONFIDENCE = 0.3
NO_MATCH_DURATION = 90
DEFAULT_CONFIDENCE_THRESHOLD = 0.5


@dataclass(frozen=True)
class ServicePattern:
    keywords: tuple[str, ...]
    emergency: tuple[str, ...] = ()
    high: tuple[str, ...] = ()
    medium: tuple[str, ...] = ()
    low: tuple[str, ...] = ()
    min_duration: int = 60
    max_duration: int = 120

    def urgency_for(self, text: str) -> UrgencyLevel:
        """Most severe bucket with a hit wins; medium when none hit."""
        for level, words in (
            (UrgencyLevel.EMERGENCY, self.emergency),
            (UrgencyLevel.HIGH, self.high),
            (UrgencyLevel.MEDIUM, self.medium),
            (UrgencyLevel.LOW, self.low),
        ):
            if any(word in text for word in words):
                return level
        return UrgencyLevel.MEDIUM

    @property
    def typical_duration(self) -> int:
        return round((self.min_duration + self.max_duration) / 2)


SERVICE_PATTERNS: dict[ServiceType, ServicePattern] = {
    ServiceType.PLUMBING: ServicePattern(
        keywords=("leak", "drain", "pipe", "water", "toilet", "sink", "clog", "faucet", "plumb"),
        emergency=("burst", "flooding", "gushing", "pouring"),
        high=("overflow", "backup", "broken"),
        medium=("slow", "clogged"),
        low=("drip", "minor"),
        min_duration=45, max_duration=120,
    ),
    ServiceType.ELECTRICAL: ServicePattern(
        keywords=("electric", "power", "light", "switch", "outlet", "breaker", "wiring"),
        emergency=("sparking", "fire", "burning", "smoke", "shock"),
        high=("no power", "tripped"),
        medium=("flickering", "buzzing"),
        low=("install", "replace"),
        min_duration=30, max_duration=120,
    ),
    ServiceType.HVAC: ServicePattern(
        keywords=("heat", "ac", "air", "hvac", "furnace", "thermostat", "cool"),
        emergency=("no heat", "freezing"),
        high=("not working", "broken"),
        medium=("weak", "inefficient"),
        low=("maintenance", "check"),
        min_duration=60, max_duration=180,
    ),
    ServiceType.PAINTING: ServicePattern(
        keywords=("paint", "wall", "color", "ceiling", "trim"),
        medium=("peeling", "chipping"),
        low=("cosmetic", "refresh"),
        min_duration=120, max_duration=480,
    ),
    ServiceType.LOCKSMITH: ServicePattern(
        keywords=("lock", "key", "door", "deadbolt", "security"),
        emergency=("locked out", "stuck"),
        high=("broken", "security"),
        medium=("sticky",),
        low=("rekey", "duplicate"),
        min_duration=30, max_duration=90,
    ),
    ServiceType.ROOFING: ServicePattern(
        keywords=("roof", "shingle", "gutter", "leak", "ceiling"),
        emergency=("major leak", "hole"),
        high=("leaking", "water damage"),
        medium=("missing", "damaged"),
        low=("inspection", "maintenance"),
        min_duration=120, max_duration=360,
    ),
    ServiceType.PEST_CONTROL: ServicePattern(
        keywords=("pest", "bug", "rat", "mouse", "termite", "ant", "infestation"),
        emergency=("infestation", "swarm"),
        high=("termites", "rats"),
        medium=("ants", "spiders"),
        low=("prevention",),
        min_duration=60, max_duration=180,
    ),
    ServiceType.APPLIANCE_REPAIR: ServicePattern(
        keywords=("appliance", "dishwasher", "washer", "dryer", "oven", "refrigerator"),
        emergency=("leaking", "smoking"),
        high=("not working", "stopped"),
        medium=("noisy", "error"),
        low=("maintenance",),
        min_duration=45, max_duration=150,
    ),
    ServiceType.GARAGE_DOOR: ServicePattern(
        keywords=("garage", "door", "opener", "spring"),
        emergency=("stuck", "trapped"),
        high=("broken", "off track"),
        medium=("noisy", "slow"),
        low=("maintenance",),
        min_duration=45, max_duration=120,
    ),
    ServiceType.CLEANING: ServicePattern(
        keywords=("clean", "carpet", "stain", "steam"),
        high=("mold", "odor"),
        low=("regular",),
        min_duration=60, max_duration=240,
    ),
    ServiceType.GLAZIER: ServicePattern(
        keywords=("window", "glass", "pane", "broken", "cracked"),
        emergency=("shattered", "smashed"),
        high=("cracked",),
        medium=("foggy",),
        low=("upgrade",),
        min_duration=60, max_duration=180,
    ),
    ServiceType.HANDYMAN: ServicePattern(
        keywords=("handyman", "fix", "repair", "drywall", "patch"),
        high=("damage",),
        medium=("repair",),
        low=("patch", "touch up"),
        min_duration=30, max_duration=120,
    ),
}


@dataclass(frozen=True)
class PatternMatch:
    service_type: ServiceType
    match_count: int
    urgency: UrgencyLevel
    pattern: ServicePattern


def score_patterns(text: str) -> list[PatternMatch]:
    """All categories with at least one keyword hit, best first.

    Ordered by match count, then urgency score. The sort is stable so equal
    candidates keep table order.
    """
    lowered = text.lower()
    matches: list[PatternMatch] = []
    for service_type, pattern in SERVICE_PATTERNS.items():
        count = sum(1 for keyword in pattern.keywords if keyword in lowered)
        if count == 0:
            continue
        matches.append(
            PatternMatch(service_type, count, pattern.urgency_for(lowered), pattern)
        )
    matches.sort(key=lambda m: (m.match_count, m.urgency.score), reverse=True)
    return matches


def _confidence(match_count: int, ambiguous: bool) -> float:
    if match_count >= 3:
        confidence = 0.85
    elif match_count == 1:
        confidence = 0.65
    else:
        confidence = 0.75
    if ambiguous:
        confidence *= AMBIGUITY_PENALTY
    return round(confidence, 4)


def classify_with_fallback(text: str) -> ServiceClassification:
    """Classify free text by keyword matching."""
    matches = score_patterns(text)

    if not matches:
        return ServiceClassification(
            service_type=ServiceType.GENERAL_MAINTENANCE,
            urgency=UrgencyLevel.LOW,
            confidence=NO_MATCH_CONFIDENCE,
            reasoning="Fallback: Could not classify from description keywords",
            estimated_duration_minutes=NO_MATCH_DURATION,
        )

    best = matches[0]
    runner_up: Optional[PatternMatch] = matches[1] if len(matches) > 1 else None
    ambiguous = runner_up is not None and runner_up.match_count == best.match_count

    reasoning = f"Fallback match: {best.service_type.value}"
    if ambiguous:
        reasoning += f" (also possible: {runner_up.service_type.value})"
    plural = "" if best.match_count == 1 else "s"
    reasoning += f" based on {best.match_count} keyword{plural}"

    return ServiceClassification(
        service_type=best.service_type,
        urgency=best.urgency,
        confidence=_confidence(best.match_count, ambiguous),
        reasoning=reasoning,
        estimated_duration_minutes=best.pattern.typical_duration,
    )


def has_strong_fallback_signal(text: str) -> bool:
    """True when the text carries at least two keyword hits across all categories."""
    return sum(m.match_count for m in score_patterns(text)) >= 2


def meets_confidence_threshold(
    confidence: float, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
) -> bool:
    return confidence >= threshold


class FallbackClassifier:
    """Callable wrapper so the fallback can be injected like any classifier."""

    def classify(self, text: str) -> ServiceClassification:
        result = classify_with_fallback(text)
        logger.debug(
            "Fallback classified %r as %s/%s (%.2f)",
            text[:60], result.service_type.value, result.urgency.value, result.confidence,
        )
        return result

    __call__ = classify
