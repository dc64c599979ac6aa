"""Typed validation failures for trip specifications and booking links.

Every failure carries the field it is attributed to so callers can reject a
turn and tell the user exactly what to fix.
"""

from typing import Optional


class SpecValidationError(ValueError):
    """Base class for field-attributed validation failures."""

    kind = "ValidationError"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": str(self), "field": self.field, "kind": self.kind}


# Leg / itinerary failures
class LegValidationError(SpecValidationError):
    kind = "LegValidationError"


class InvalidSequence(LegValidationError):
    """Leg positions are not exactly 1..N."""

    kind = "InvalidSequence"


class OutOfOrderDates(LegValidationError):
    """Leg departure dates do not strictly increase."""

    kind = "OutOfOrderDates"


class DisconnectedItinerary(LegValidationError):
    """A leg does not start where the previous one ended."""

    kind = "DisconnectedItinerary"


# Specification failures
class SameOriginDestination(SpecValidationError):
    kind = "SameOriginDestination"


class InvalidPassengerCount(SpecValidationError):
    kind = "InvalidPassengerCount"


class InfantsExceedAdults(InvalidPassengerCount):
    kind = "InfantsExceedAdults"


class InvalidDateFormat(SpecValidationError):
    kind = "InvalidDateFormat"


class DateTooSoon(SpecValidationError):
    kind = "DateTooSoon"


class ReturnBeforeDeparture(SpecValidationError):
    kind = "ReturnBeforeDeparture"


# Booking link failures
class EncodingPreconditionError(SpecValidationError):
    """Raised before any URL is built when the specification cannot be encoded."""

    kind = "EncodingPreconditionError"


class UnsupportedDecodeError(Exception):
    """Raised when decoding is requested for a write-only link format."""

    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"Link format '{fmt}' cannot be decoded")


# Conversation failures
class ConversationNotFoundError(LookupError):
    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")


class ConversationClosedError(Exception):
    """Raised when a finished or abandoned conversation is advanced."""

    def __init__(self, conversation_id: str, status: str):
        self.conversation_id = conversation_id
        self.status = status
        super().__init__(f"Conversation {conversation_id} is {status}")
