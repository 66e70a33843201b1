"""
Normalization of LLM classifier output onto the fixed enums.

The remote classifier is free to answer "Plumbing Services" or "electrican";
these helpers map such strings onto ``ServiceType`` with rapidfuzz and
report how far the match was, falling back to general maintenance when
nothing is close enough.
"""

import json
import logging
from typing import Any, Optional, Union

from pydantic import ValidationError
from rapidfuzz import fuzz, process, utils

from booking_core.config import settings
from booking_core.exceptions import ClassificationError
from booking_core.schemas.classification_schema import (
    ServiceClassification,
    ServiceType,
    UrgencyLevel,
)
from booking_core.tools.services import SERVICE_ALIASES, get_service_duration

logger = logging.getLogger(__name__)

MAX_DISTANCE = 100


def _build_choices() -> dict[str, ServiceType]:
    choices: dict[str, ServiceType] = {}
    for service_type in ServiceType:
        choices[service_type.value] = service_type
        choices[service_type.value.replace("_", " ")] = service_type
    for alias, service_type in SERVICE_ALIASES.items():
        choices.setdefault(alias, service_type)
    return choices


_SERVICE_CHOICES = _build_choices()

URGENCY_SYNONYMS: dict[str, UrgencyLevel] = {
    "critical": UrgencyLevel.EMERGENCY,
    "immediate": UrgencyLevel.EMERGENCY,
    "urgent": UrgencyLevel.HIGH,
    "asap": UrgencyLevel.HIGH,
    "normal": UrgencyLevel.MEDIUM,
    "standard": UrgencyLevel.MEDIUM,
    "moderate": UrgencyLevel.MEDIUM,
    "routine": UrgencyLevel.LOW,
    "flexible": UrgencyLevel.LOW,
}


def normalize_service_type(
    raw: Optional[str], max_distance: Optional[int] = None
) -> tuple[ServiceType, int]:
    """Nearest ``ServiceType`` for ``raw`` and its distance (0 = exact, 100 = nothing).

    Anything farther than ``max_distance`` maps to general maintenance.
    """
    limit = settings.classifier.fuzzy_max_distance if max_distance is None else max_distance
    if not raw or not raw.strip():
        return ServiceType.GENERAL_MAINTENANCE, MAX_DISTANCE

    match = process.extractOne(
        raw, list(_SERVICE_CHOICES), scorer=fuzz.WRatio, processor=utils.default_process
    )
    if match is None:
        return ServiceType.GENERAL_MAINTENANCE, MAX_DISTANCE

    choice, score, _ = match
    distance = MAX_DISTANCE - int(round(score))
    if distance > limit:
        logger.info(
            "Service type %r not recognized (closest %r, distance %d)", raw, choice, distance
        )
        return ServiceType.GENERAL_MAINTENANCE, distance
    return _SERVICE_CHOICES[choice], distance


def normalize_urgency(raw: Optional[str]) -> UrgencyLevel:
    """Map an urgency string onto ``UrgencyLevel``; unknown values become medium."""
    if not raw:
        return UrgencyLevel.MEDIUM
    key = raw.strip().lower()
    try:
        return UrgencyLevel(key)
    except ValueError:
        return URGENCY_SYNONYMS.get(key, UrgencyLevel.MEDIUM)


def parse_llm_classification(payload: Union[str, dict[str, Any]]) -> ServiceClassification:
    """Validate raw classifier output (JSON text or dict) into a ``ServiceClassification``.

    Raises:
        ClassificationError: JSON_PARSE_ERROR for unparseable text,
            VALIDATION_ERROR when fields are missing or out of range.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ClassificationError("JSON_PARSE_ERROR", f"Invalid JSON from classifier: {exc}") from exc
    if not isinstance(payload, dict):
        raise ClassificationError("VALIDATION_ERROR", "Classifier output must be an object")

    service_type, distance = normalize_service_type(payload.get("service_type"))
    reasoning = str(payload.get("reasoning") or "").strip() or "Classified by language model"
    if distance > 0 and payload.get("service_type"):
        reasoning += f" (service type normalized from {payload['service_type']!r})"

    try:
        return ServiceClassification(
            service_type=service_type,
            urgency=normalize_urgency(payload.get("urgency")),
            confidence=payload.get("confidence", 0.0),
            reasoning=reasoning,
            estimated_duration_minutes=payload.get("estimated_duration_minutes")
            or get_service_duration(service_type),
        )
    except ValidationError as exc:
        raise ClassificationError(
            "VALIDATION_ERROR", f"Classifier output failed schema validation: {exc}"
        ) from exc
