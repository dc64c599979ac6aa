"""
Turn pipeline

One user message goes through: extraction -> merge with the stored
specification -> passenger clamping -> validation -> completeness ->
booking link (when complete) -> step transition -> persistence.

A manual parameter edit takes the same path without the extractor, except
that a validation failure is raised to the caller instead of being reported
in the result.

Turns on the same conversation are serialised with a per-conversation lock
so each merge reads the specification written by the previous turn. The lock
is dropped once the conversation is closed.
"""

import threading
from typing import Callable, Dict, List, Optional

from flightlink.booking.codec import BookingLinkCodec
from flightlink.booking.formats import CHAT_UTM
from flightlink.config import settings
from flightlink.conversation.steps import ConversationStatus, StepController
from flightlink.errors import ConversationClosedError, ConversationNotFoundError, SpecValidationError
from flightlink.obs.context import conversation_id_var, user_id_var
from flightlink.obs.logger import log_event
from flightlink.obs.metrics import inc_counter
from flightlink.search.completeness import completion_percentage, missing_fields, refresh_completeness
from flightlink.search.merge import TripKindPolicy, merge_specification
from flightlink.search.validator import SpecificationValidator, clamp_passengers
from flightlink.session.store import SessionStore
from flightlink.types import (
    Conversation,
    ExtractedFlightInfo,
    SpecificationUpdate,
    TripSpecification,
    TurnResult,
)

Extractor = Callable[..., ExtractedFlightInfo]

HISTORY_TURNS = 3


class TurnProcessor:
    """Runs conversation turns against a record store."""

    def __init__(
        self,
        store: SessionStore,
        extractor: Extractor,
        codec: Optional[BookingLinkCodec] = None,
        validator: Optional[SpecificationValidator] = None,
        steps: Optional[StepController] = None,
        trip_kind_policy: Optional[TripKindPolicy] = None,
    ):
        self.store = store
        self.extractor = extractor
        self.codec = codec or BookingLinkCodec()
        self.validator = validator or SpecificationValidator(
            min_days_ahead=settings.MIN_DAYS_AHEAD,
            require_connected_legs=settings.REQUIRE_CONNECTED_LEGS,
        )
        self.steps = steps or StepController()
        self.trip_kind_policy = trip_kind_policy
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, conversation_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(conversation_id, threading.Lock())

    def _discard_lock(self, conversation_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(conversation_id, None)

    def _release_if_closed(self, conversation: Conversation) -> None:
        if conversation.status != ConversationStatus.ACTIVE.value:
            self._discard_lock(conversation.id)

    def start_conversation(self, user_id: str, initial_query: Optional[str] = None) -> Conversation:
        """Create a conversation with an empty specification."""
        conversation = self.store.create_conversation(self.steps.start_new(user_id))
        self.store.create_specification(TripSpecification(conversation_id=conversation.id))
        if initial_query:
            self.store.append_message(conversation.id, "user", initial_query)
        log_event("conversation_started", conversation_id=conversation.id, user_id=user_id)
        inc_counter("conversations_started_total")
        return conversation

    def handle_message(self, conversation_id: str, message: str,
                       location: Optional[str] = None) -> TurnResult:
        with self._lock_for(conversation_id):
            result = self._run_turn(conversation_id, message, location)
        self._release_if_closed(result.conversation)
        return result

    def update_parameters(self, conversation_id: str, update: SpecificationUpdate) -> TurnResult:
        """Apply a manual edit to the stored specification.

        Raises the first validation failure; nothing is stored in that case.
        A complete result finishes the conversation with a booking link.
        """
        with self._lock_for(conversation_id):
            conversation = self._open(conversation_id)
            current = self.store.get_specification(conversation_id)
            extracted = update.to_extracted()
            merged = self._merge(extracted, current, conversation_id)
            try:
                self.validator.validate(merged)
            except SpecValidationError as e:
                log_event("parameters_rejected", level="WARNING", **e.to_dict())
                inc_counter("parameter_edits_total", {"outcome": "rejected"})
                raise

            spec = refresh_completeness(merged)
            self._persist(spec, legs_replaced=bool(extracted.legs), exists=current is not None)
            inc_counter("parameter_edits_total", {"outcome": "accepted"})

            generated_url = self._booking_url(spec)
            if spec.is_complete:
                conversation = self.store.update_conversation(
                    self.steps.advance(conversation, True, generated_url=generated_url)
                )
            log_event("parameters_updated", complete=spec.is_complete, missing=missing_fields(spec))
        self._release_if_closed(conversation)
        return self._result(conversation, spec, extracted, generated_url)

    def _open(self, conversation_id: str) -> Conversation:
        """Load an active conversation and bind it to the logging context."""
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            self._discard_lock(conversation_id)
            raise ConversationNotFoundError(conversation_id)
        conversation_id_var.set(conversation_id)
        user_id_var.set(conversation.user_id)
        # Closed conversations are refused before anything is recorded
        try:
            self.steps.ensure_active(conversation)
        except ConversationClosedError:
            self._discard_lock(conversation_id)
            raise
        return conversation

    def _merge(self, extracted: ExtractedFlightInfo, current: Optional[TripSpecification],
               conversation_id: str) -> TripSpecification:
        return clamp_passengers(merge_specification(
            extracted, current,
            conversation_id=conversation_id,
            trip_kind_policy=self.trip_kind_policy,
        ))

    def _booking_url(self, spec: TripSpecification) -> Optional[str]:
        if not spec.is_complete:
            return None
        return self.codec.build_booking_url(spec, CHAT_UTM)

    def _run_turn(self, conversation_id: str, message: str, location: Optional[str]) -> TurnResult:
        conversation = self._open(conversation_id)

        history = self._recent_user_turns(conversation_id)
        self.store.append_message(conversation_id, "user", message)
        extracted = self.extractor(message, history=history, location=location)

        current = self.store.get_specification(conversation_id)
        merged = self._merge(extracted, current, conversation_id)

        rejected = None
        try:
            self.validator.validate(merged)
        except SpecValidationError as e:
            rejected = e.to_dict()
            log_event("merge_rejected", level="WARNING", **rejected)
            inc_counter("merges_total", {"outcome": "rejected"})
            spec = refresh_completeness(current or TripSpecification(conversation_id=conversation_id))
        else:
            spec = refresh_completeness(merged)
            self._persist(spec, legs_replaced=bool(extracted.legs), exists=current is not None)
            inc_counter("merges_total", {"outcome": "accepted"})

        generated_url = self._booking_url(spec)
        conversation = self.steps.advance(
            conversation, spec.is_complete,
            suggested_step=extracted.next_step,
            generated_url=generated_url,
        )
        self.store.update_conversation(conversation)

        log_event(
            "turn_processed",
            step=conversation.current_step,
            complete=spec.is_complete,
            missing=missing_fields(spec),
        )
        return self._result(conversation, spec, extracted, generated_url, rejected)

    @staticmethod
    def _result(conversation: Conversation, spec: TripSpecification, extracted: ExtractedFlightInfo,
                generated_url: Optional[str], rejected: Optional[dict] = None) -> TurnResult:
        return TurnResult(
            conversation=conversation,
            specification=spec,
            extracted=extracted,
            missing_fields=missing_fields(spec),
            completion_percentage=completion_percentage(spec),
            generated_url=generated_url,
            rejected=rejected,
        )

    def _persist(self, spec: TripSpecification, legs_replaced: bool, exists: bool) -> None:
        if exists:
            self.store.update_specification(spec)
        else:
            self.store.create_specification(spec)
        if legs_replaced:
            self.store.delete_legs(spec.conversation_id)
            self.store.create_legs(spec.conversation_id, spec.legs)

    def _recent_user_turns(self, conversation_id: str) -> List[str]:
        messages = self.store.get_messages(conversation_id)
        return [m["content"] for m in messages if m.get("role") == "user"][-HISTORY_TURNS:]

    def abandon(self, conversation_id: str) -> Conversation:
        with self._lock_for(conversation_id):
            conversation = self.store.get_conversation(conversation_id)
            if conversation is None:
                self._discard_lock(conversation_id)
                raise ConversationNotFoundError(conversation_id)
            try:
                abandoned = self.steps.abandon(conversation)
            except ConversationClosedError:
                self._discard_lock(conversation_id)
                raise
            conversation = self.store.update_conversation(abandoned)
        self._release_if_closed(conversation)
        return conversation
