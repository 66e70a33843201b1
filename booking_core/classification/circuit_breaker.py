"""
Circuit breaker for the remote classifier, as a value plus pure transitions.

    closed --(failures >= threshold)--> open
    open --(reset timeout elapsed)--> half_open
    half_open --(success)--> closed
    half_open --(failure)--> open

Every function takes ``now`` (seconds, any monotonic origin) so behaviour
can be tested without sleeping.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class BreakerStatus(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitState:
    status: BreakerStatus = BreakerStatus.CLOSED
    failure_count: int = 0
    opened_at: Optional[float] = None
    last_failure_at: Optional[float] = None


def current_status(state: CircuitState, now: float, reset_timeout: float) -> CircuitState:
    """Apply the timed open -> half_open transition, if due."""
    if (
        state.status is BreakerStatus.OPEN
        and state.opened_at is not None
        and now - state.opened_at >= reset_timeout
    ):
        logger.info("Circuit breaker half-open after %.1fs", now - state.opened_at)
        return replace(state, status=BreakerStatus.HALF_OPEN)
    return state


def allow_request(
    state: CircuitState, now: float, reset_timeout: float
) -> tuple[bool, CircuitState]:
    """Whether a call may go through, and the state to carry forward."""
    state = current_status(state, now, reset_timeout)
    return state.status is not BreakerStatus.OPEN, state


def record_success(state: CircuitState) -> CircuitState:
    if state.status is not BreakerStatus.CLOSED:
        logger.info("Circuit breaker closed")
    return CircuitState()


def record_failure(state: CircuitState, now: float, failure_threshold: int) -> CircuitState:
    failures = state.failure_count + 1
    if state.status is BreakerStatus.HALF_OPEN or failures >= failure_threshold:
        if state.status is not BreakerStatus.OPEN:
            logger.error("Circuit breaker opened after %d failure(s)", failures)
        return CircuitState(
            status=BreakerStatus.OPEN,
            failure_count=failures,
            opened_at=now,
            last_failure_at=now,
        )
    return replace(state, failure_count=failures, last_failure_at=now)
