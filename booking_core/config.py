"""
Centralized configuration with environment variable overrides.

Business hours, booking rules, classifier thresholds and conversation
pacing are configurable here. Components read these as defaults but
accept explicit values so tests never depend on the process environment.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessHoursConfig:
    """Operating window of the business, in its own timezone."""

    timezone: str = os.getenv("BUSINESS_TIMEZONE", "UTC")
    open_hour: int = _safe_int("BUSINESS_OPEN_HOUR", "9")
    close_hour: int = _safe_int("BUSINESS_CLOSE_HOUR", "17")
    # Python weekday() numbering: Monday=0 ... Sunday=6
    closed_weekday: int = _safe_int("BUSINESS_CLOSED_WEEKDAY", "6")
    slot_minutes: int = _safe_int("SLOT_MINUTES", "60")


@dataclass(frozen=True)
class BookingRulesConfig:
    """Business rules applied when creating or modifying bookings."""

    min_lead_minutes: int = _safe_int("BOOKING_MIN_LEAD_MINUTES", "30")
    modification_cutoff_hours: int = _safe_int("MODIFICATION_CUTOFF_HOURS", "24")
    search_days_ahead: int = _safe_int("SEARCH_DAYS_AHEAD", "7")
    far_future_warning_days: int = _safe_int("FAR_FUTURE_WARNING_DAYS", "60")
    max_notes_length: int = _safe_int("MAX_NOTES_LENGTH", "500")


@dataclass(frozen=True)
class ClassifierConfig:
    """Retry, circuit-breaker and normalization settings for classification."""

    failure_threshold: int = _safe_int("CIRCUIT_FAILURE_THRESHOLD", "5")
    reset_timeout_sec: float = _safe_float("CIRCUIT_RESET_TIMEOUT", "60.0")
    max_retries: int = _safe_int("CLASSIFIER_MAX_RETRIES", "3")
    initial_delay_ms: int = _safe_int("CLASSIFIER_INITIAL_DELAY_MS", "100")
    max_delay_ms: int = _safe_int("CLASSIFIER_MAX_DELAY_MS", "5000")
    backoff_multiplier: float = _safe_float("CLASSIFIER_BACKOFF_MULTIPLIER", "2.0")
    confidence_threshold: float = _safe_float("CLASSIFIER_CONFIDENCE_THRESHOLD", "0.5")
    fuzzy_max_distance: int = _safe_int("FUZZY_MAX_DISTANCE", "25")


@dataclass(frozen=True)
class ConversationConfig:
    """Pacing thresholds for the booking conversation."""

    max_availability_retries: int = _safe_int("MAX_AVAILABILITY_RETRIES", "2")
    min_service_confidence: float = _safe_float("MIN_SERVICE_CONFIDENCE", "0.5")
    escalation_confidence: float = _safe_float("ESCALATION_CONFIDENCE", "0.3")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    hours: BusinessHoursConfig = field(default_factory=BusinessHoursConfig)
    rules: BookingRulesConfig = field(default_factory=BookingRulesConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///bookings.db")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    hours = config.hours
    if not 0 <= hours.open_hour < hours.close_hour <= 24:
        raise ValueError(
            "BUSINESS_OPEN_HOUR/BUSINESS_CLOSE_HOUR must satisfy 0 <= open < close <= 24, "
            f"got {hours.open_hour}-{hours.close_hour}"
        )
    if not 0 <= hours.closed_weekday <= 6:
        raise ValueError(
            f"BUSINESS_CLOSED_WEEKDAY must be between 0 and 6, got {hours.closed_weekday}"
        )
    if hours.slot_minutes < 1:
        raise ValueError(f"SLOT_MINUTES must be >= 1, got {hours.slot_minutes}")

    rules = config.rules
    if rules.min_lead_minutes < 0:
        raise ValueError(
            f"BOOKING_MIN_LEAD_MINUTES must be >= 0, got {rules.min_lead_minutes}"
        )
    if rules.modification_cutoff_hours < 0:
        raise ValueError(
            f"MODIFICATION_CUTOFF_HOURS must be >= 0, got {rules.modification_cutoff_hours}"
        )
    if rules.search_days_ahead < 1:
        raise ValueError(f"SEARCH_DAYS_AHEAD must be >= 1, got {rules.search_days_ahead}")

    classifier = config.classifier
    if classifier.failure_threshold < 1:
        raise ValueError(
            f"CIRCUIT_FAILURE_THRESHOLD must be >= 1, got {classifier.failure_threshold}"
        )
    if classifier.reset_timeout_sec <= 0:
        raise ValueError(
            f"CIRCUIT_RESET_TIMEOUT must be > 0, got {classifier.reset_timeout_sec}"
        )
    if classifier.max_retries < 0:
        raise ValueError(f"CLASSIFIER_MAX_RETRIES must be >= 0, got {classifier.max_retries}")
    if classifier.backoff_multiplier < 1.0:
        raise ValueError(
            "CLASSIFIER_BACKOFF_MULTIPLIER must be >= 1.0, "
            f"got {classifier.backoff_multiplier}"
        )
    if not 0 <= classifier.fuzzy_max_distance <= 100:
        raise ValueError(
            f"FUZZY_MAX_DISTANCE must be between 0 and 100, got {classifier.fuzzy_max_distance}"
        )

    for name, value in [
        ("CLASSIFIER_CONFIDENCE_THRESHOLD", classifier.confidence_threshold),
        ("MIN_SERVICE_CONFIDENCE", config.conversation.min_service_confidence),
        ("ESCALATION_CONFIDENCE", config.conversation.escalation_confidence),
    ]:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")

    if config.conversation.max_availability_retries < 0:
        raise ValueError(
            "MAX_AVAILABILITY_RETRIES must be >= 0, "
            f"got {config.conversation.max_availability_retries}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded: hours %02d:00-%02d:00 %s",
        config.hours.open_hour, config.hours.close_hour, config.hours.timezone,
    )
    return config


# Singleton instance
settings = load_config()
