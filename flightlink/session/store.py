"""In-memory record store with TTL semantics.

Holds conversations, their trip specification, the specification's legs and
the message log. Keys are conversation ids; a specification's id is the id
of the conversation that owns it.
"""

from typing import Optional, Dict, Any, List
import time
import threading

from flightlink.types import Conversation, FlightLeg, TripSpecification


class SessionStore:
    """In-memory record dictionary with TTL semantics."""

    def __init__(self, ttl_seconds: int = 86400):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._data: Dict[str, Dict[str, Any]] = {}

    def _expired(self, rec: Dict[str, Any]) -> bool:
        return (time.time() - rec.get("updated_at", 0)) > self.ttl_seconds

    def _get(self, key: str) -> Optional[Any]:
        with self._lock:
            rec = self._data.get(key)
            if not rec:
                return None
            if self._expired(rec):
                self._data.pop(key, None)
                return None
            return rec["value"]

    def _set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = {"value": value, "updated_at": time.time()}

    def _delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    # Conversations
    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        data = self._get(f"conversation:{conversation_id}")
        return Conversation.model_validate(data) if data else None

    def create_conversation(self, conversation: Conversation) -> Conversation:
        self._set(f"conversation:{conversation.id}", conversation.model_dump(mode="json"))
        return conversation

    def update_conversation(self, conversation: Conversation) -> Conversation:
        return self.create_conversation(conversation)

    # Specifications (legs are stored separately and joined on read)
    def get_specification(self, conversation_id: str) -> Optional[TripSpecification]:
        data = self._get(f"spec:{conversation_id}")
        if not data:
            return None
        spec = TripSpecification.model_validate(data)
        return spec.model_copy(update={"legs": self.get_legs(conversation_id)})

    def create_specification(self, spec: TripSpecification) -> TripSpecification:
        self._set(f"spec:{spec.conversation_id}", spec.model_dump(mode="json", exclude={"legs"}))
        return spec

    def update_specification(self, spec: TripSpecification) -> TripSpecification:
        return self.create_specification(spec)

    # Legs
    def get_legs(self, spec_id: str) -> List[FlightLeg]:
        data = self._get(f"legs:{spec_id}") or []
        return [FlightLeg.model_validate(item) for item in data]

    def create_legs(self, spec_id: str, legs: List[FlightLeg]) -> List[FlightLeg]:
        self._set(f"legs:{spec_id}", [leg.model_dump(mode="json") for leg in legs])
        return list(legs)

    def delete_legs(self, spec_id: str) -> None:
        self._delete(f"legs:{spec_id}")

    # Messages
    def append_message(self, conversation_id: str, role: str, content: str) -> None:
        key = f"messages:{conversation_id}"
        with self._lock:
            rec = self._data.setdefault(key, {"value": [], "updated_at": time.time()})
            rec["value"].append({"role": role, "content": content, "ts": time.time()})
            rec["updated_at"] = time.time()

    def get_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        return list(self._get(f"messages:{conversation_id}") or [])

    def clear(self, conversation_id: str) -> None:
        """Delete every record belonging to a conversation."""
        for prefix in ("conversation", "spec", "legs", "messages"):
            self._delete(f"{prefix}:{conversation_id}")
