"""
Tracks the customer details a booking conversation must collect.

Each detail goes through Collect -> Validate, with correction history and
attempt counts kept for later review. Returning customers can be
prefilled from their record so the conversation skips straight past
detail gathering.

Usage:
    tracker = DetailTracker()
    ok, msg = tracker.set_detail("customer_phone", "(555) 123-4567")
    tracker.missing()  # ["customer_name", "location", "service_type"]
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from booking_core.scheduling.validators import MIN_ADDRESS_LENGTH, MIN_NAME_LENGTH, validate_phone
from booking_core.tools.customer import CustomerRecord
from booking_core.tools.services import match_service
from booking_core.utils import normalize_phone

logger = logging.getLogger(__name__)

MAX_DETAIL_ATTEMPTS = 3


class DetailStatus(str, Enum):
    EMPTY = "empty"
    COLLECTED = "collected"  # received but failed validation
    VALIDATED = "validated"
    CORRECTED = "corrected"
    PREFILLED = "prefilled"  # loaded from a customer record


@dataclass(frozen=True)
class DetailDefinition:
    name: str
    display_name: str
    validator: Optional[Callable[[str], bool]] = None
    prompt_hint: str = ""


@dataclass
class DetailValue:
    raw_value: Optional[str] = None
    normalized_value: Optional[str] = None
    status: DetailStatus = DetailStatus.EMPTY
    attempts: int = 0
    correction_history: list[str] = field(default_factory=list)


_FILLED = {DetailStatus.VALIDATED, DetailStatus.CORRECTED, DetailStatus.PREFILLED}


def _normalize(name: str, value: str) -> str:
    value = value.strip()
    if name == "customer_phone":
        return normalize_phone(value)
    if name == "service_type":
        matched = match_service(value)
        return matched.value if matched else value.lower()
    if name == "customer_name":
        return value.title()
    return value


class DetailTracker:
    """Collects name, phone, location and service type for one conversation."""

    DEFINITIONS: list[DetailDefinition] = [
        DetailDefinition(
            name="customer_name",
            display_name="name",
            validator=lambda v: len(v.strip()) >= MIN_NAME_LENGTH,
            prompt_hint="Ask for their full name",
        ),
        DetailDefinition(
            name="customer_phone",
            display_name="phone number",
            validator=validate_phone,
            prompt_hint="Ask for a callback number",
        ),
        DetailDefinition(
            name="location",
            display_name="service address",
            validator=lambda v: len(v.strip()) >= MIN_ADDRESS_LENGTH,
            prompt_hint="Ask for the address where the service is needed",
        ),
        DetailDefinition(
            name="service_type",
            display_name="type of service",
            validator=lambda v: match_service(v) is not None,
            prompt_hint="Ask what service they need",
        ),
    ]

    def __init__(self) -> None:
        self.details: dict[str, DetailValue] = {d.name: DetailValue() for d in self.DEFINITIONS}

    def _definition(self, name: str) -> DetailDefinition:
        for defn in self.DEFINITIONS:
            if defn.name == name:
                return defn
        raise ValueError(f"Unknown detail: {name}")

    def set_detail(self, name: str, raw_value: str) -> tuple[bool, str]:
        """Record a value; returns (accepted, message for the agent)."""
        defn = self._definition(name)
        detail = self.details[name]
        detail.raw_value = raw_value
        detail.attempts += 1

        if defn.validator and not defn.validator(raw_value):
            detail.status = DetailStatus.COLLECTED
            logger.debug("Detail '%s' rejected: %r", name, raw_value)
            return False, f"The {defn.display_name} '{raw_value}' doesn't look right."

        detail.normalized_value = _normalize(name, raw_value)
        detail.status = (
            DetailStatus.CORRECTED if detail.correction_history else DetailStatus.VALIDATED
        )
        return True, f"Got {defn.display_name}: {detail.normalized_value}"

    def correct_detail(self, name: str, new_value: str) -> tuple[bool, str]:
        detail = self.details[name]
        if detail.raw_value is not None:
            detail.correction_history.append(detail.raw_value)
        return self.set_detail(name, new_value)

    def prefill_from_customer(self, record: CustomerRecord) -> None:
        """Load name, phone and address from an existing customer record."""
        for name, value in (
            ("customer_name", record["name"]),
            ("customer_phone", record["phone"]),
            ("location", record["address"]),
        ):
            if not value:
                continue
            detail = self.details[name]
            detail.raw_value = value
            detail.normalized_value = _normalize(name, value)
            detail.status = DetailStatus.PREFILLED
        logger.info("Details prefilled for returning customer %s", record["name"])

    def has(self, name: str) -> bool:
        return self.details[name].status in _FILLED

    def get(self, name: str) -> Optional[str]:
        return self.details[name].normalized_value if self.has(name) else None

    def missing(self) -> list[str]:
        return [d.name for d in self.DEFINITIONS if not self.has(d.name)]

    def next_missing(self) -> Optional[DetailDefinition]:
        for defn in self.DEFINITIONS:
            if not self.has(defn.name):
                return defn
        return None

    def has_exceeded_attempts(self, name: str) -> bool:
        return self.details[name].attempts >= MAX_DETAIL_ATTEMPTS

    def to_dict(self) -> dict[str, Any]:
        return {name: self.get(name) for name in self.details if self.has(name)}
