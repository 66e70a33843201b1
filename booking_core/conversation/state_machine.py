"""
Finite state machine for the booking conversation.

    greeting -> service_identified -> availability_checking -> scheduling -> confirmed
                        |                                        ^
                        +------------- emergency ----------------+

Any non-terminal state can exit to ``escalated`` (human handoff).

The machine decides *when* the caller should check availability or create
a booking; it never calls the availability engine or the booking store
itself. ``advance`` applies the transitions a customer message allows and
returns a ``TurnDecision`` telling the caller what to do next.

Usage:
    conv = BookingConversation()
    decision = advance(conv, "My pipe burst!", classification=result)
    if decision.next_action == "check_expert_availability":
        record_availability(conv, experts_from_engine)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional

from booking_core.config import ConversationConfig, settings
from booking_core.conversation.details import DetailTracker
from booking_core.exceptions import InvalidTransitionError
from booking_core.schemas.classification_schema import ServiceClassification, UrgencyLevel
from booking_core.tools.customer import CustomerDirectory, CustomerRecord
from booking_core.utils import utcnow

logger = logging.getLogger(__name__)

GREETING_TIMEOUT = timedelta(hours=1)


class ConversationState(str, Enum):
    GREETING = "greeting"
    SERVICE_IDENTIFIED = "service_identified"
    AVAILABILITY_CHECKING = "availability_checking"
    SCHEDULING = "scheduling"
    CONFIRMED = "confirmed"
    ESCALATED = "escalated"


class TransitionTrigger(str, Enum):
    SERVICE_CLASSIFIED = "service_classified"
    EMERGENCY_LOCATED = "emergency_located"
    DETAILS_COMPLETE = "details_complete"
    RETURNING_CUSTOMER = "returning_customer"
    EXPERTS_FOUND = "experts_found"
    SLOT_SELECTED = "slot_selected"
    CHANGE_REQUESTED = "change_requested"
    ESCALATE = "escalate"


@dataclass
class Transition:
    from_state: ConversationState
    to_state: ConversationState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    state: ConversationState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class BookingStateMachine:
    """Explicit transition table; anything not listed is rejected."""

    TRANSITIONS: list[Transition] = [
        Transition(ConversationState.GREETING, ConversationState.SERVICE_IDENTIFIED,
                   TransitionTrigger.SERVICE_CLASSIFIED),

        # --- Detail gathering / shortcuts ---
        Transition(ConversationState.SERVICE_IDENTIFIED, ConversationState.SCHEDULING,
                   TransitionTrigger.EMERGENCY_LOCATED),
        Transition(ConversationState.SERVICE_IDENTIFIED, ConversationState.AVAILABILITY_CHECKING,
                   TransitionTrigger.DETAILS_COMPLETE),
        Transition(ConversationState.SERVICE_IDENTIFIED, ConversationState.AVAILABILITY_CHECKING,
                   TransitionTrigger.RETURNING_CUSTOMER),

        # --- Scheduling ---
        Transition(ConversationState.AVAILABILITY_CHECKING, ConversationState.SCHEDULING,
                   TransitionTrigger.EXPERTS_FOUND),
        Transition(ConversationState.SCHEDULING, ConversationState.CONFIRMED,
                   TransitionTrigger.SLOT_SELECTED),
        Transition(ConversationState.CONFIRMED, ConversationState.SCHEDULING,
                   TransitionTrigger.CHANGE_REQUESTED),

        # --- Human handoff ---
        Transition(ConversationState.GREETING, ConversationState.ESCALATED,
                   TransitionTrigger.ESCALATE),
        Transition(ConversationState.SERVICE_IDENTIFIED, ConversationState.ESCALATED,
                   TransitionTrigger.ESCALATE),
        Transition(ConversationState.AVAILABILITY_CHECKING, ConversationState.ESCALATED,
                   TransitionTrigger.ESCALATE),
        Transition(ConversationState.SCHEDULING, ConversationState.ESCALATED,
                   TransitionTrigger.ESCALATE),
        Transition(ConversationState.CONFIRMED, ConversationState.ESCALATED,
                   TransitionTrigger.ESCALATE),
    ]

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._current_state = ConversationState.GREETING
        self._history: list[StateEntry] = [
            StateEntry(state=ConversationState.GREETING, entered_at=clock())
        ]

    @property
    def current_state(self) -> ConversationState:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> ConversationState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no transition exists for ``trigger``
                from the current state.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(
                    StateEntry(state=t.to_state, entered_at=self._clock(), trigger=trigger)
                )
                logger.debug(
                    "State transition: %s -> %s (trigger: %s)",
                    old_state.value, t.to_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        return [entry.state.value for entry in self._history]

    def entered_current_at(self) -> datetime:
        return self._history[-1].entered_at

    def is_terminal(self) -> bool:
        """Confirmed and escalated end the flow; a change request can reopen a confirmed one."""
        return self._current_state in (ConversationState.CONFIRMED, ConversationState.ESCALATED)


# --------------------------------------------------------------------------- #
# Conversation context
# --------------------------------------------------------------------------- #


@dataclass
class SlotSelection:
    """What the customer picked from the offered times."""

    option_index: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    weekday: Optional[int] = None  # Monday=0


@dataclass
class BookingConversation:
    machine: BookingStateMachine = field(default_factory=BookingStateMachine)
    details: DetailTracker = field(default_factory=DetailTracker)
    classification: Optional[ServiceClassification] = None
    available_experts: list[str] = field(default_factory=list)
    selected_slot: Optional[SlotSelection] = None
    retry_count: int = 0
    returning_customer: bool = False
    human_requested: bool = False
    messages: list[str] = field(default_factory=list)

    @property
    def state(self) -> ConversationState:
        return self.machine.current_state

    @property
    def is_emergency(self) -> bool:
        return (
            self.classification is not None
            and self.classification.urgency == UrgencyLevel.EMERGENCY
        )

    def load_customer(self, record: CustomerRecord) -> None:
        """Returning-customer shortcut: contact details come from the record."""
        self.details.prefill_from_customer(record)
        self.returning_customer = True

    def recognize_caller(self, customers: CustomerDirectory, phone: str) -> bool:
        """Take the shortcut only when name, phone and address are all on file."""
        if not customers.has_contact_on_file(phone):
            return False
        self.load_customer(customers.lookup_customer(phone))
        return True


@dataclass
class TurnDecision:
    state: ConversationState
    next_action: str
    should_gather_more_info: bool
    transitions: list[TransitionTrigger] = field(default_factory=list)
    missing_details: list[str] = field(default_factory=list)
    should_escalate: bool = False

    @property
    def transition(self) -> Optional[TransitionTrigger]:
        return self.transitions[-1] if self.transitions else None


# --------------------------------------------------------------------------- #
# Message parsing
# --------------------------------------------------------------------------- #

_FIRST_RE = re.compile(r"\b(first|earliest|asap|immediately|soonest|1st)\b")
_SECOND_RE = re.compile(r"\b(second|2nd)\b")
_THIRD_RE = re.compile(r"\b(third|3rd)\b")
_TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b|\b(\d{1,2}):(\d{2})\b")
_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_CHANGE_RE = re.compile(r"\b(change|cancel|different|reschedule|another time)\b")
_HUMAN_RE = re.compile(
    r"\b(human|agent|representative|real person|operator)\b|speak (with|to)|talk to someone"
)


def _parse_time(text: str) -> Optional[tuple[int, int]]:
    match = _TIME_RE.search(text)
    if match is None:
        return None
    if match.group(3):
        hour, minute = int(match.group(1)), int(match.group(2) or 0)
        if not 1 <= hour <= 12:
            return None
        if match.group(3) == "pm" and hour < 12:
            hour += 12
        elif match.group(3) == "am" and hour == 12:
            hour = 0
    else:
        hour, minute = int(match.group(4)), int(match.group(5))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def parse_slot_selection(message: str) -> Optional[SlotSelection]:
    """Recognize ordinal picks, clock times and weekday names. None if nothing matched."""
    text = message.lower().strip()
    selection = SlotSelection()

    if _FIRST_RE.search(text) or text == "1":
        selection.option_index = 0
    elif _SECOND_RE.search(text) or text == "2":
        selection.option_index = 1
    elif _THIRD_RE.search(text) or text == "3":
        selection.option_index = 2

    parsed = _parse_time(text)
    if parsed is not None:
        selection.hour, selection.minute = parsed

    for index, name in enumerate(_WEEKDAYS):
        if re.search(rf"\b{name}\b", text):
            selection.weekday = index
            break

    if selection == SlotSelection():
        return None
    return selection


def requests_human(message: str) -> bool:
    return bool(_HUMAN_RE.search(message.lower()))


# --------------------------------------------------------------------------- #
# Decisions
# --------------------------------------------------------------------------- #


def should_escalate_to_human(
    conversation: BookingConversation,
    now: Optional[datetime] = None,
    config: Optional[ConversationConfig] = None,
) -> bool:
    """True when the caller should hand the conversation to a person."""
    cfg = config or settings.conversation
    state = conversation.state
    if state == ConversationState.ESCALATED:
        return False
    if conversation.human_requested:
        return True
    if (
        state == ConversationState.AVAILABILITY_CHECKING
        and not conversation.available_experts
        and conversation.retry_count >= cfg.max_availability_retries
    ):
        return True
    if (
        conversation.classification is not None
        and conversation.classification.confidence < cfg.escalation_confidence
    ):
        return True
    if state == ConversationState.GREETING:
        now = now or utcnow()
        if now - conversation.machine.entered_current_at() > GREETING_TIMEOUT:
            return True
    return False


def record_availability(conversation: BookingConversation, experts: Iterable[str]) -> None:
    """Store the availability result the caller obtained; an empty result counts as a retry."""
    conversation.available_experts = list(experts)
    if not conversation.available_experts:
        conversation.retry_count += 1
        logger.info("No experts available (retry %d)", conversation.retry_count)


def escalate(conversation: BookingConversation) -> ConversationState:
    logger.warning("Conversation escalated to a human from %s", conversation.state.value)
    return conversation.machine.transition(TransitionTrigger.ESCALATE)


def _decide(
    conversation: BookingConversation,
    message: str,
    cfg: ConversationConfig,
    fired: list[TransitionTrigger],
) -> tuple[str, bool]:
    """Apply at most one transition for the current state; returns (next_action, gather)."""
    machine = conversation.machine
    details = conversation.details
    state = machine.current_state
    classification = conversation.classification

    if state == ConversationState.GREETING:
        if classification is not None and classification.confidence > cfg.min_service_confidence:
            machine.transition(TransitionTrigger.SERVICE_CLASSIFIED)
            fired.append(TransitionTrigger.SERVICE_CLASSIFIED)
            return "", False
        if classification is not None:
            return "clarify_service_type", True
        return "ask_for_service_need", True

    if state == ConversationState.SERVICE_IDENTIFIED:
        if conversation.is_emergency:
            if details.has("location"):
                machine.transition(TransitionTrigger.EMERGENCY_LOCATED)
                fired.append(TransitionTrigger.EMERGENCY_LOCATED)
                return "find_emergency_experts_and_schedule", False
            return "get_location_for_emergency", True
        if details.has("customer_phone") and details.has("location"):
            trigger = (
                TransitionTrigger.RETURNING_CUSTOMER
                if conversation.returning_customer
                else TransitionTrigger.DETAILS_COMPLETE
            )
            machine.transition(trigger)
            fired.append(trigger)
            return "check_expert_availability", False
        return "continue_gathering_details", True

    if state == ConversationState.AVAILABILITY_CHECKING:
        if conversation.available_experts:
            machine.transition(TransitionTrigger.EXPERTS_FOUND)
            fired.append(TransitionTrigger.EXPERTS_FOUND)
            return "present_scheduling_options", False
        if conversation.retry_count >= cfg.max_availability_retries:
            return "add_to_waitlist", False
        if conversation.retry_count == 0:
            return "check_expert_availability", False
        return "ask_about_flexibility", True

    if state == ConversationState.SCHEDULING:
        selection = parse_slot_selection(message) if message else None
        if selection is not None:
            conversation.selected_slot = selection
            machine.transition(TransitionTrigger.SLOT_SELECTED)
            fired.append(TransitionTrigger.SLOT_SELECTED)
            return "create_booking_and_confirm", False
        return "help_select_time", True

    if state == ConversationState.CONFIRMED:
        if message and _CHANGE_RE.search(message.lower()):
            conversation.selected_slot = None
            machine.transition(TransitionTrigger.CHANGE_REQUESTED)
            fired.append(TransitionTrigger.CHANGE_REQUESTED)
            return "offer_alternative_times", False
        return "booking_complete", False

    return "transfer_to_human", False


def advance(
    conversation: BookingConversation,
    message: str = "",
    classification: Optional[ServiceClassification] = None,
    now: Optional[datetime] = None,
    config: Optional[ConversationConfig] = None,
) -> TurnDecision:
    """
    Process one customer turn.

    Transitions chain within a turn while the conversation keeps moving
    (a confident emergency with a known location goes from greeting to
    scheduling at once). The message that triggered a transition is not
    re-used as a slot selection in the same turn.
    """
    cfg = config or settings.conversation
    if message:
        conversation.messages.append(message)
        if requests_human(message):
            conversation.human_requested = True
    if classification is not None:
        conversation.classification = classification
        if not conversation.details.has("service_type"):
            conversation.details.set_detail("service_type", classification.service_type.value)

    fired: list[TransitionTrigger] = []
    turn_message = message
    while True:
        before = conversation.state
        next_action, gather = _decide(conversation, turn_message, cfg, fired)
        if conversation.state == before or next_action:
            break
        turn_message = ""

    return TurnDecision(
        state=conversation.state,
        next_action=next_action,
        should_gather_more_info=gather,
        transitions=fired,
        missing_details=conversation.details.missing(),
        should_escalate=should_escalate_to_human(conversation, now=now, config=cfg),
    )


# --------------------------------------------------------------------------- #
# Descriptions
# --------------------------------------------------------------------------- #

STATE_DESCRIPTIONS: dict[ConversationState, str] = {
    ConversationState.GREETING: "Understanding what the customer needs",
    ConversationState.SERVICE_IDENTIFIED: "Service identified, gathering details",
    ConversationState.AVAILABILITY_CHECKING: "Checking technician availability",
    ConversationState.SCHEDULING: "Choosing an appointment time",
    ConversationState.CONFIRMED: "Booking confirmed",
    ConversationState.ESCALATED: "Handed off to a human agent",
}


def state_description(state: ConversationState) -> str:
    return STATE_DESCRIPTIONS[state]


def suggested_action(conversation: BookingConversation) -> str:
    """Human-readable prompt for what the agent should say next."""
    state = conversation.state
    if state == ConversationState.GREETING:
        return "Ask the customer to describe the problem"
    if state == ConversationState.SERVICE_IDENTIFIED:
        if conversation.is_emergency and not conversation.details.has("location"):
            return "Get the service address so a technician can be dispatched"
        nxt = conversation.details.next_missing()
        if nxt is not None:
            return nxt.prompt_hint
        return "Check technician availability"
    if state == ConversationState.AVAILABILITY_CHECKING:
        if conversation.retry_count:
            return "Ask whether other days or times would work"
        return "Check technician availability"
    if state == ConversationState.SCHEDULING:
        return "Offer the available times and ask which one works"
    if state == ConversationState.CONFIRMED:
        return "Read back the confirmation code and appointment time"
    return "Transfer the customer to a human agent"
