"""Completeness rules for a trip specification.

Always derived from the current field values; the ``is_complete`` flag stored
on a specification is a cache and is never read here.
"""

from typing import List

from flightlink.search.segments import MIN_MULTICITY_LEGS
from flightlink.types import TripSpecification, TripKind

BASE_REQUIRED = ["origin_code", "destination_code", "departure_date"]


def required_fields(trip_kind: TripKind) -> List[str]:
    """Required fields for a trip kind, in prompt priority order."""
    fields = list(BASE_REQUIRED)
    if trip_kind == "return":
        fields.append("return_date")
    elif trip_kind == "multicity":
        fields.append("legs")
    return fields


def _is_satisfied(spec: TripSpecification, field: str) -> bool:
    if field == "legs":
        return len(spec.legs) >= MIN_MULTICITY_LEGS
    return bool(getattr(spec, field))


def missing_fields(spec: TripSpecification) -> List[str]:
    return [f for f in required_fields(spec.trip_kind) if not _is_satisfied(spec, f)]


def is_complete(spec: TripSpecification) -> bool:
    return not missing_fields(spec)


def completion_percentage(spec: TripSpecification) -> int:
    """Share of required fields present, 0-100 rounded half up. UX only."""
    required = required_fields(spec.trip_kind)
    satisfied = sum(1 for f in required if _is_satisfied(spec, f))
    return int(satisfied * 100 / len(required) + 0.5)


def refresh_completeness(spec: TripSpecification) -> TripSpecification:
    """Copy of ``spec`` with the cached flag recomputed."""
    return spec.model_copy(update={"is_complete": is_complete(spec)})
