"""
Specification Validation

Business rules a merged trip specification must satisfy before it replaces
the stored one: passenger limits, distinct route airports, date format,
minimum advance booking window and multi-city leg structure.
"""

from typing import Callable, List, Optional
from datetime import date
from pydantic import BaseModel

from flightlink.errors import (
    DateTooSoon,
    InfantsExceedAdults,
    InvalidDateFormat,
    InvalidPassengerCount,
    ReturnBeforeDeparture,
    SameOriginDestination,
    SpecValidationError,
)
from flightlink.obs.logger import log_event
from flightlink.search.completeness import missing_fields
from flightlink.search.segments import leg_departure, validate_legs
from flightlink.types import TripSpecification
from flightlink.utils.dates import min_departure_date, parse_iso, today as current_date

PASSENGER_LIMITS = {
    "adults": (1, 9),
    "children": (0, 8),
    "infants": (0, 8),
}


class ValidationResult(BaseModel):
    """Result of specification validation"""
    is_valid: bool
    missing_required: List[str]
    validation_errors: List[dict]
    ready_for_booking: bool


def clamp_passengers(spec: TripSpecification) -> TripSpecification:
    """Pull passenger counts back into their allowed ranges.

    This is the only correction applied to extracted data: adults 1-9,
    children 0-8, infants 0-8. Every clamp is logged. The infants <= adults
    rule is not clamped; it is reported by the validator.
    """
    updates = {}
    for field, (low, high) in PASSENGER_LIMITS.items():
        value = getattr(spec, field)
        clamped = min(max(value, low), high)
        if clamped != value:
            updates[field] = clamped
            log_event("passengers_clamped", field=field, original=value, clamped=clamped)
    if not updates:
        return spec
    return spec.model_copy(update=updates)


class SpecificationValidator:
    """Validates a merged specification against booking rules."""

    def __init__(
        self,
        min_days_ahead: int = 14,
        require_connected_legs: bool = False,
        today: Optional[Callable[[], date]] = None,
    ):
        self.min_days_ahead = min_days_ahead
        self.require_connected_legs = require_connected_legs
        self._today = today or current_date

    def validate(self, spec: TripSpecification) -> None:
        """Raise the first rule violation found."""
        self._check_passengers(spec)
        self._check_route(spec)
        self._check_dates(spec)
        self._check_legs(spec)

    def collect(self, spec: TripSpecification) -> ValidationResult:
        """Run every check and report all failures instead of stopping at one."""
        errors: List[SpecValidationError] = []
        for check in (self._check_passengers, self._check_route, self._check_dates, self._check_legs):
            try:
                check(spec)
            except SpecValidationError as e:
                errors.append(e)
        missing = missing_fields(spec)
        return ValidationResult(
            is_valid=not errors,
            missing_required=missing,
            validation_errors=[e.to_dict() for e in errors],
            ready_for_booking=not errors and not missing,
        )

    def _check_passengers(self, spec: TripSpecification) -> None:
        for field, (low, high) in PASSENGER_LIMITS.items():
            value = getattr(spec, field)
            if value < low or value > high:
                raise InvalidPassengerCount(
                    f"{field.capitalize()} must be between {low} and {high}, got {value}",
                    field=field,
                )
        if spec.infants > spec.adults:
            raise InfantsExceedAdults(
                "Number of infants cannot exceed number of adults",
                field="infants",
            )

    def _check_route(self, spec: TripSpecification) -> None:
        if spec.origin_code and spec.origin_code == spec.destination_code:
            raise SameOriginDestination(
                "Origin and destination must be different",
                field="destination_code",
            )

    def _check_dates(self, spec: TripSpecification) -> None:
        earliest = min_departure_date(self.min_days_ahead, base=self._today())
        parsed = {}
        for field in ("departure_date", "return_date"):
            value = getattr(spec, field)
            if not value:
                continue
            try:
                parsed[field] = parse_iso(value)
            except ValueError:
                raise InvalidDateFormat(f"{value} is not a valid calendar date", field=field)
            if parsed[field] < earliest:
                raise DateTooSoon(
                    f"Flights must depart at least {self.min_days_ahead} days from today "
                    f"(earliest {earliest.isoformat()})",
                    field=field,
                )

        if spec.trip_kind == "return" and len(parsed) == 2:
            if parsed["return_date"] <= parsed["departure_date"]:
                raise ReturnBeforeDeparture(
                    "Return date must be after departure date",
                    field="return_date",
                )

    def _check_legs(self, spec: TripSpecification) -> None:
        if spec.trip_kind != "multicity" or not spec.legs:
            return
        earliest = min_departure_date(self.min_days_ahead, base=self._today())
        for leg in spec.legs:
            if leg_departure(leg) < earliest:
                raise DateTooSoon(
                    f"Leg {leg.sequence} must depart at least {self.min_days_ahead} days from today",
                    field=f"legs[{leg.sequence}].departure_date",
                )
        validate_legs(spec.legs, check_connectivity=self.require_connected_legs)
