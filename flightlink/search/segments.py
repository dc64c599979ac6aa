"""Multi-city leg validation.

Three independent checks over an ordered set of legs. Each raises its own
failure type so callers can tell an ordering problem from a gap in the route.
Connectivity is advisory by default: booking only requires sequence and
chronology to pass (see ``is_bookable_itinerary``).
"""

from datetime import date
from typing import List, Sequence

from flightlink.errors import (
    DisconnectedItinerary,
    InvalidDateFormat,
    InvalidSequence,
    OutOfOrderDates,
    SameOriginDestination,
    SpecValidationError,
)
from flightlink.types import FlightLeg
from flightlink.utils.dates import parse_iso

MIN_MULTICITY_LEGS = 2


def sort_legs(legs: Sequence[FlightLeg]) -> List[FlightLeg]:
    return sorted(legs, key=lambda leg: leg.sequence)


def leg_departure(leg: FlightLeg) -> date:
    """Parsed departure date; an impossible calendar date is a typed failure."""
    try:
        return parse_iso(leg.departure_date)
    except ValueError:
        raise InvalidDateFormat(
            f"{leg.departure_date} is not a valid calendar date",
            field=f"legs[{leg.sequence}].departure_date",
        )


def validate_leg_routes(legs: Sequence[FlightLeg]) -> None:
    """Each leg must fly between two different airports."""
    for leg in legs:
        if leg.origin_code == leg.destination_code:
            raise SameOriginDestination(
                f"Leg {leg.sequence} origin and destination must be different ({leg.origin_code})",
                field=f"legs[{leg.sequence}].destination_code",
            )


def validate_sequence(legs: Sequence[FlightLeg]) -> None:
    """Sorted positions must be exactly 1..N, no gaps or duplicates."""
    for expected, leg in enumerate(sort_legs(legs), start=1):
        if leg.sequence != expected:
            raise InvalidSequence(
                f"Invalid leg sequence. Expected position {expected}, got {leg.sequence}",
                field="legs",
            )


def validate_chronology(legs: Sequence[FlightLeg]) -> None:
    """Departure dates must strictly increase along the sorted itinerary."""
    ordered = sort_legs(legs)
    for prev, current in zip(ordered, ordered[1:]):
        if leg_departure(current) <= leg_departure(prev):
            raise OutOfOrderDates(
                f"Leg {current.sequence} must depart after leg {prev.sequence} "
                f"({current.departure_date} <= {prev.departure_date})",
                field=f"legs[{current.sequence}].departure_date",
            )


def validate_connectivity(legs: Sequence[FlightLeg]) -> None:
    """Each leg must start where the previous leg landed."""
    ordered = sort_legs(legs)
    for prev, current in zip(ordered, ordered[1:]):
        if prev.destination_code != current.origin_code:
            raise DisconnectedItinerary(
                f"Leg {current.sequence} origin ({current.origin_code}) must match "
                f"leg {prev.sequence} destination ({prev.destination_code})",
                field=f"legs[{current.sequence}].origin_code",
            )


def validate_legs(legs: Sequence[FlightLeg], check_connectivity: bool = False) -> List[FlightLeg]:
    """Run route, sequence and chronology checks (plus connectivity if asked).

    Returns the legs sorted by position.
    """
    validate_leg_routes(legs)
    validate_sequence(legs)
    validate_chronology(legs)
    if check_connectivity:
        validate_connectivity(legs)
    return sort_legs(legs)


def is_bookable_itinerary(legs: Sequence[FlightLeg], require_connectivity: bool = False) -> bool:
    if len(legs) < MIN_MULTICITY_LEGS:
        return False
    try:
        validate_legs(legs, check_connectivity=require_connectivity)
    except SpecValidationError:
        return False
    return True


def journey_duration_days(legs: Sequence[FlightLeg]) -> int:
    """Days between the first and last departure."""
    if not legs:
        return 0
    ordered = sort_legs(legs)
    return (leg_departure(ordered[-1]) - leg_departure(ordered[0])).days


def unique_airports(legs: Sequence[FlightLeg]) -> List[str]:
    """Every airport touched by the itinerary, in first-seen order."""
    seen: List[str] = []
    for leg in sort_legs(legs):
        for code in (leg.origin_code, leg.destination_code):
            if code not in seen:
                seen.append(code)
    return seen
