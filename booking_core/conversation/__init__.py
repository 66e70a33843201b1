from booking_core.conversation.details import DetailStatus, DetailTracker
from booking_core.conversation.state_machine import (
    BookingConversation,
    BookingStateMachine,
    ConversationState,
    SlotSelection,
    TransitionTrigger,
    TurnDecision,
    advance,
    escalate,
    parse_slot_selection,
    record_availability,
    should_escalate_to_human,
)

__all__ = [
    "BookingConversation",
    "BookingStateMachine",
    "ConversationState",
    "DetailStatus",
    "DetailTracker",
    "SlotSelection",
    "TransitionTrigger",
    "TurnDecision",
    "advance",
    "escalate",
    "parse_slot_selection",
    "record_availability",
    "should_escalate_to_human",
]
