"""Conversation step state machine.

    initial -> collecting <-> confirming -> complete (terminal)

Status runs alongside the step: active until the search is complete
(completed) or the user walks away (abandoned). A finished conversation is
never reopened in place; a new search starts a new conversation.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from flightlink.errors import ConversationClosedError
from flightlink.obs.logger import log_event
from flightlink.obs.metrics import inc_counter
from flightlink.types import Conversation


class ConversationStep(Enum):
    INITIAL = "initial"
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    COMPLETE = "complete"


class ConversationStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


# Steps an extraction may suggest for an incomplete specification
_SUGGESTIBLE = {ConversationStep.COLLECTING.value, ConversationStep.CONFIRMING.value}


class StepController:
    """Moves a conversation to its next step after each merge-and-evaluate cycle."""

    def start_new(self, user_id: str, conversation_id: Optional[str] = None) -> Conversation:
        return Conversation(id=conversation_id or str(uuid.uuid4()), user_id=user_id)

    def next_step(self, complete: bool, suggested_step: Optional[str] = None) -> ConversationStep:
        if complete:
            return ConversationStep.COMPLETE
        if suggested_step in _SUGGESTIBLE:
            return ConversationStep(suggested_step)
        return ConversationStep.COLLECTING

    def advance(
        self,
        conversation: Conversation,
        complete: bool,
        suggested_step: Optional[str] = None,
        generated_url: Optional[str] = None,
    ) -> Conversation:
        """Return the conversation moved to its next step.

        A complete specification finishes the conversation. Otherwise the
        extraction's suggestion (collecting or confirming) is followed, and
        anything else falls back to collecting.
        """
        self.ensure_active(conversation)
        step = self.next_step(complete, suggested_step)
        now = datetime.now(timezone.utc)
        update = {"current_step": step.value, "updated_at": now}
        if step is ConversationStep.COMPLETE:
            update.update({
                "status": ConversationStatus.COMPLETED.value,
                "completed_at": now,
                "generated_url": generated_url,
            })
            inc_counter("conversations_completed_total")

        if conversation.current_step != step.value:
            log_event("step_changed", conversation_id=conversation.id,
                      from_step=conversation.current_step, to_step=step.value)
        return conversation.model_copy(update=update)

    def abandon(self, conversation: Conversation) -> Conversation:
        self.ensure_active(conversation)
        log_event("conversation_abandoned", conversation_id=conversation.id,
                  step=conversation.current_step)
        return conversation.model_copy(update={
            "status": ConversationStatus.ABANDONED.value,
            "updated_at": datetime.now(timezone.utc),
        })

    @staticmethod
    def ensure_active(conversation: Conversation) -> None:
        if conversation.status != ConversationStatus.ACTIVE.value:
            raise ConversationClosedError(conversation.id, conversation.status)
