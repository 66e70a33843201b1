"""Tests for the booking conversation state machine."""

from datetime import timedelta

import pytest

from booking_core.conversation.state_machine import (
    BookingConversation,
    BookingStateMachine,
    ConversationState,
    TransitionTrigger,
    advance,
    escalate,
    parse_slot_selection,
    record_availability,
    requests_human,
    should_escalate_to_human,
    state_description,
    suggested_action,
)
from booking_core.exceptions import InvalidTransitionError
from booking_core.schemas.classification_schema import (
    ServiceClassification,
    ServiceType,
    UrgencyLevel,
)
from conftest import FIXED_NOW


def classified(
    service: ServiceType = ServiceType.PLUMBING,
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM,
    confidence: float = 0.9,
) -> ServiceClassification:
    return ServiceClassification(
        service_type=service,
        urgency=urgency,
        confidence=confidence,
        reasoning="test",
        estimated_duration_minutes=90,
    )


@pytest.fixture
def state_machine(clock):
    return BookingStateMachine(clock=clock)


@pytest.fixture
def conversation(clock):
    return BookingConversation(machine=BookingStateMachine(clock=clock))


@pytest.fixture
def turn(conversation, conversation_config):
    def _turn(message: str = "", classification=None):
        return advance(
            conversation,
            message,
            classification=classification,
            now=FIXED_NOW,
            config=conversation_config,
        )

    return _turn


def _to_availability_checking(conversation, turn):
    conversation.details.set_detail("customer_phone", "555-123-4567")
    conversation.details.set_detail("location", "12 Main Street")
    return turn("The kitchen tap drips", classified())


class TestStateMachine:
    def test_starts_in_greeting(self, state_machine):
        assert state_machine.current_state == ConversationState.GREETING
        assert state_machine.get_state_trace() == ["greeting"]
        assert not state_machine.is_terminal()

    def test_valid_triggers_from_greeting(self, state_machine):
        assert state_machine.get_valid_triggers() == [
            TransitionTrigger.SERVICE_CLASSIFIED,
            TransitionTrigger.ESCALATE,
        ]

    def test_invalid_trigger_raises(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(TransitionTrigger.SLOT_SELECTED)
        assert state_machine.current_state == ConversationState.GREETING

    def test_happy_path_trace(self, state_machine):
        for trigger in (
            TransitionTrigger.SERVICE_CLASSIFIED,
            TransitionTrigger.DETAILS_COMPLETE,
            TransitionTrigger.EXPERTS_FOUND,
            TransitionTrigger.SLOT_SELECTED,
        ):
            state_machine.transition(trigger)
        assert state_machine.get_state_trace() == [
            "greeting", "service_identified", "availability_checking", "scheduling", "confirmed",
        ]
        assert state_machine.get_history()[-1].trigger == TransitionTrigger.SLOT_SELECTED
        assert state_machine.entered_current_at() == FIXED_NOW

    def test_change_requested_returns_to_scheduling(self, state_machine):
        for trigger in (
            TransitionTrigger.SERVICE_CLASSIFIED,
            TransitionTrigger.EMERGENCY_LOCATED,
            TransitionTrigger.SLOT_SELECTED,
            TransitionTrigger.CHANGE_REQUESTED,
        ):
            state_machine.transition(trigger)
        assert state_machine.current_state == ConversationState.SCHEDULING

    def test_confirmed_is_terminal(self, state_machine):
        for trigger in (
            TransitionTrigger.SERVICE_CLASSIFIED,
            TransitionTrigger.EMERGENCY_LOCATED,
            TransitionTrigger.SLOT_SELECTED,
        ):
            state_machine.transition(trigger)
        assert state_machine.is_terminal()
        state_machine.transition(TransitionTrigger.CHANGE_REQUESTED)
        assert not state_machine.is_terminal()

    def test_escalated_is_terminal(self, state_machine):
        state_machine.transition(TransitionTrigger.ESCALATE)
        assert state_machine.is_terminal()
        assert state_machine.get_valid_triggers() == []
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(TransitionTrigger.ESCALATE)


class TestAdvanceFromGreeting:
    def test_no_classification_asks_for_need(self, turn):
        decision = turn("Hello")
        assert decision.state == ConversationState.GREETING
        assert decision.next_action == "ask_for_service_need"
        assert decision.should_gather_more_info
        assert decision.transition is None

    def test_unsure_classification_asks_to_clarify(self, turn):
        decision = turn("Something is wrong", classified(confidence=0.4))
        assert decision.state == ConversationState.GREETING
        assert decision.next_action == "clarify_service_type"
        assert not decision.should_escalate

    def test_threshold_is_exclusive(self, turn):
        decision = turn("Something is wrong", classified(confidence=0.5))
        assert decision.state == ConversationState.GREETING

    def test_very_low_confidence_escalates(self, turn):
        decision = turn("???", classified(confidence=0.2))
        assert decision.should_escalate

    def test_confident_classification_gathers_details(self, turn):
        decision = turn("My sink drips", classified())
        assert decision.state == ConversationState.SERVICE_IDENTIFIED
        assert decision.transitions == [TransitionTrigger.SERVICE_CLASSIFIED]
        assert decision.next_action == "continue_gathering_details"
        assert "service_type" not in decision.missing_details
        assert "customer_phone" in decision.missing_details


class TestEmergencyShortcut:
    def test_emergency_with_location_goes_straight_to_scheduling(self, conversation, turn):
        conversation.details.set_detail("location", "12 Main Street")
        decision = turn("My pipe burst!", classified(urgency=UrgencyLevel.EMERGENCY))
        assert decision.state == ConversationState.SCHEDULING
        assert decision.transitions == [
            TransitionTrigger.SERVICE_CLASSIFIED,
            TransitionTrigger.EMERGENCY_LOCATED,
        ]
        assert decision.next_action == "find_emergency_experts_and_schedule"
        assert conversation.selected_slot is None

    def test_emergency_without_location_asks_for_it(self, turn):
        decision = turn("My pipe burst!", classified(urgency=UrgencyLevel.EMERGENCY))
        assert decision.state == ConversationState.SERVICE_IDENTIFIED
        assert decision.next_action == "get_location_for_emergency"


class TestDetailsAndAvailability:
    def test_details_complete(self, conversation, turn):
        decision = _to_availability_checking(conversation, turn)
        assert decision.state == ConversationState.AVAILABILITY_CHECKING
        assert decision.transition == TransitionTrigger.DETAILS_COMPLETE
        assert decision.next_action == "check_expert_availability"

    def test_returning_customer_shortcut(self, conversation, customers, turn):
        assert conversation.recognize_caller(customers, "(555) 987-6543")
        decision = turn("Leaky tap again", classified())
        assert decision.state == ConversationState.AVAILABILITY_CHECKING
        assert decision.transition == TransitionTrigger.RETURNING_CUSTOMER

    def test_partial_record_not_recognized(self, conversation, customers):
        customers.create_customer("Sam Lee", "555-000-1111")
        assert not conversation.recognize_caller(customers, "555-000-1111")
        assert not conversation.returning_customer
        assert not conversation.details.has("customer_name")

    def test_experts_found(self, conversation, turn):
        _to_availability_checking(conversation, turn)
        record_availability(conversation, ["T1", "T2"])
        decision = turn()
        assert decision.state == ConversationState.SCHEDULING
        assert decision.next_action == "present_scheduling_options"

    def test_no_experts_retries_then_waitlist(self, conversation, turn):
        _to_availability_checking(conversation, turn)

        record_availability(conversation, [])
        decision = turn()
        assert conversation.retry_count == 1
        assert decision.next_action == "ask_about_flexibility"
        assert not decision.should_escalate

        record_availability(conversation, [])
        decision = turn()
        assert decision.state == ConversationState.AVAILABILITY_CHECKING
        assert decision.next_action == "add_to_waitlist"
        assert decision.should_escalate


class TestSchedulingAndConfirmation:
    @pytest.fixture
    def scheduling(self, conversation, turn):
        _to_availability_checking(conversation, turn)
        record_availability(conversation, ["T1"])
        turn()
        return conversation

    def test_slot_selection_confirms(self, scheduling, turn):
        decision = turn("The second one please")
        assert decision.state == ConversationState.CONFIRMED
        assert decision.next_action == "create_booking_and_confirm"
        assert scheduling.selected_slot.option_index == 1

    def test_unclear_reply_keeps_scheduling(self, scheduling, turn):
        decision = turn("Hmm, not sure")
        assert decision.state == ConversationState.SCHEDULING
        assert decision.next_action == "help_select_time"

    def test_change_request_reopens_scheduling(self, scheduling, turn):
        turn("first")
        assert turn("Thanks!").next_action == "booking_complete"
        decision = turn("Actually can I change the time?")
        assert decision.state == ConversationState.SCHEDULING
        assert decision.next_action == "offer_alternative_times"
        assert scheduling.selected_slot is None


class TestEscalation:
    def test_human_request_flags_escalation(self, conversation, turn):
        decision = turn("Can I speak to a real person?")
        assert decision.should_escalate
        escalate(conversation)
        decision = turn("hello?")
        assert decision.state == ConversationState.ESCALATED
        assert decision.next_action == "transfer_to_human"
        assert not decision.should_escalate

    def test_greeting_timeout(self, conversation, conversation_config):
        assert not should_escalate_to_human(
            conversation, now=FIXED_NOW + timedelta(minutes=30), config=conversation_config
        )
        assert should_escalate_to_human(
            conversation, now=FIXED_NOW + timedelta(hours=2), config=conversation_config
        )

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Can I talk to someone?", True),
            ("I want to speak with a manager", True),
            ("Get me an agent", True),
            ("My pipe burst", False),
        ],
    )
    def test_requests_human(self, message, expected):
        assert requests_human(message) is expected


class TestParseSlotSelection:
    @pytest.mark.parametrize(
        "message, index",
        [("first", 0), ("1", 0), ("ASAP", 0), ("the 2nd", 1), ("3rd please", 2), ("third", 2)],
    )
    def test_ordinals(self, message, index):
        assert parse_slot_selection(message).option_index == index

    @pytest.mark.parametrize(
        "message, hour, minute",
        [("2pm", 14, 0), ("10:30", 10, 30), ("12am", 0, 0), ("9 am", 9, 0), ("12pm", 12, 0)],
    )
    def test_times(self, message, hour, minute):
        selection = parse_slot_selection(message)
        assert (selection.hour, selection.minute) == (hour, minute)

    def test_combined(self):
        selection = parse_slot_selection("I'll take the 2nd, Friday at 3:15 pm")
        assert selection.option_index == 1
        assert selection.weekday == 4
        assert (selection.hour, selection.minute) == (15, 15)

    @pytest.mark.parametrize("message", ["hello", "13pm", "", "at 10"])
    def test_nothing_recognized(self, message):
        assert parse_slot_selection(message) is None


class TestDescriptions:
    def test_every_state_described(self):
        for state in ConversationState:
            assert state_description(state)

    def test_suggested_action_follows_missing_details(self, conversation, turn):
        assert suggested_action(conversation) == "Ask the customer to describe the problem"
        turn("My sink drips", classified())
        assert suggested_action(conversation) == "Ask for their full name"
