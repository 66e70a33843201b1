"""Service classification models shared by the LLM adapter and the fallback classifier."""

from enum import Enum

from pydantic import BaseModel, Field


class ServiceType(str, Enum):
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    HVAC = "hvac"
    PAINTING = "painting"
    LOCKSMITH = "locksmith"
    GLAZIER = "glazier"
    ROOFING = "roofing"
    CLEANING = "cleaning"
    PEST_CONTROL = "pest_control"
    APPLIANCE_REPAIR = "appliance_repair"
    GARAGE_DOOR = "garage_door"
    HANDYMAN = "handyman"
    GENERAL_MAINTENANCE = "general_maintenance"


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"

    @property
    def score(self) -> int:
        """Numeric severity for sorting: low=1 ... emergency=4."""
        return _URGENCY_SCORES[self]


_URGENCY_SCORES = {
    UrgencyLevel.LOW: 1,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.HIGH: 3,
    UrgencyLevel.EMERGENCY: 4,
}

# Target response window per urgency, in hours (min, max)
URGENCY_RESPONSE_WINDOWS: dict[UrgencyLevel, tuple[int, int]] = {
    UrgencyLevel.LOW: (24, 72),
    UrgencyLevel.MEDIUM: (4, 24),
    UrgencyLevel.HIGH: (1, 8),
    UrgencyLevel.EMERGENCY: (0, 2),
}


class ServiceClassification(BaseModel):
    """Structured result of classifying a customer's free-text request."""

    service_type: ServiceType
    urgency: UrgencyLevel
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = Field(min_length=1)
    estimated_duration_minutes: int = Field(ge=1)
