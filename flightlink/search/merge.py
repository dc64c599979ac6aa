"""Merge helpers to accumulate extracted flight fields into a trip specification."""

from typing import Any, Callable, Optional

from flightlink.config import settings
from flightlink.types import ExtractedFlightInfo, TripKind, TripSpecification

TripKindPolicy = Callable[[Optional[str]], TripKind]

SCALAR_FIELDS = (
    "origin_code",
    "origin_name",
    "destination_code",
    "destination_name",
    "departure_date",
    "return_date",
    "cabin_class",
)

PASSENGER_DEFAULTS = {"adults": 1, "children": 0, "infants": 0}


def always_return(return_date: Optional[str]) -> TripKind:
    """Undeclared trips are round trips."""
    return "return"


def infer_from_return_date(return_date: Optional[str]) -> TripKind:
    """Undeclared trips are round trips only when a return date is known."""
    return "return" if return_date else "oneway"


POLICIES = {
    "always_return": always_return,
    "infer": infer_from_return_date,
}


def default_trip_kind_policy() -> TripKindPolicy:
    return POLICIES[settings.TRIP_KIND_POLICY]


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != []


def _pick(extracted: Any, current: Any, default: Any = None) -> Any:
    if _present(extracted):
        return extracted
    if _present(current):
        return current
    return default


def merge_specification(
    extracted: ExtractedFlightInfo,
    current: Optional[TripSpecification],
    conversation_id: Optional[str] = None,
    trip_kind_policy: Optional[TripKindPolicy] = None,
) -> TripSpecification:
    """Combine a partial extraction with the stored specification.

    - Each field takes the extracted value when present, else the current one
    - Passenger counts fall back to 1 adult, 0 children, 0 infants
    - A non-empty extracted leg list replaces the current legs wholesale
    - An explicit extracted trip kind wins; a declared current kind is kept;
      otherwise the policy decides and the kind stays undeclared
    - ``is_complete`` is always reset; the caller recomputes it
    """
    if current is None and not conversation_id:
        raise TypeError("merge_specification needs a current specification or a conversation_id")
    policy = trip_kind_policy or default_trip_kind_policy()

    merged = {"conversation_id": current.conversation_id if current else conversation_id}
    for field in SCALAR_FIELDS:
        merged[field] = _pick(getattr(extracted, field), getattr(current, field, None))
    for field, default in PASSENGER_DEFAULTS.items():
        merged[field] = _pick(getattr(extracted, field), getattr(current, field, None), default)

    merged["legs"] = [leg.model_copy() for leg in _pick(extracted.legs, current.legs if current else None, [])]

    if extracted.trip_kind:
        merged["trip_kind"] = extracted.trip_kind
        merged["trip_kind_declared"] = True
    elif current is not None and current.trip_kind_declared:
        merged["trip_kind"] = current.trip_kind
        merged["trip_kind_declared"] = True
    else:
        merged["trip_kind"] = policy(merged["return_date"])
        merged["trip_kind_declared"] = False

    merged["is_complete"] = False
    return TripSpecification(**merged)
