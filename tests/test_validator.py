"""
Tests for the specification validation layer: passenger limits, route,
advance-booking window, return ordering and multi-city legs.
"""

from datetime import date

import pytest

from flightlink.errors import (
    DateTooSoon,
    DisconnectedItinerary,
    InfantsExceedAdults,
    InvalidDateFormat,
    InvalidPassengerCount,
    OutOfOrderDates,
    ReturnBeforeDeparture,
    SameOriginDestination,
)
from flightlink.search.validator import SpecificationValidator, clamp_passengers
from flightlink.types import TripSpecification


def _spec(**fields) -> TripSpecification:
    return TripSpecification(conversation_id="conv-1", **fields)


@pytest.fixture
def validator():
    return SpecificationValidator(min_days_ahead=14, today=date.today)


class TestPassengers:
    def test_valid_counts(self, validator):
        validator.validate(_spec(adults=2, children=3, infants=2))

    @pytest.mark.parametrize("field,value", [("adults", 0), ("adults", 10), ("children", 9), ("infants", -1)])
    def test_out_of_range(self, validator, field, value):
        with pytest.raises(InvalidPassengerCount) as exc:
            validator.validate(_spec(**{field: value}))
        assert exc.value.field == field

    def test_infants_cannot_exceed_adults(self, validator):
        with pytest.raises(InfantsExceedAdults) as exc:
            validator.validate(_spec(adults=1, infants=2))
        assert exc.value.field == "infants"

    def test_clamping_pulls_counts_into_range(self, capsys):
        out = clamp_passengers(_spec(adults=12, children=-1, infants=3))
        assert (out.adults, out.children, out.infants) == (9, 0, 3)
        assert "passengers_clamped" in capsys.readouterr().out

    def test_clamping_leaves_valid_spec_untouched(self):
        spec = _spec(adults=2)
        assert clamp_passengers(spec) is spec


class TestRouteAndDates:
    def test_same_origin_and_destination(self, validator):
        with pytest.raises(SameOriginDestination) as exc:
            validator.validate(_spec(origin_code="SYD", destination_code="SYD"))
        assert exc.value.field == "destination_code"

    def test_departure_too_soon(self, validator, days_ahead):
        with pytest.raises(DateTooSoon) as exc:
            validator.validate(_spec(departure_date=days_ahead(5)))
        assert exc.value.field == "departure_date"

    def test_window_boundary_is_inclusive(self, validator, days_ahead):
        validator.validate(_spec(departure_date=days_ahead(14)))

    def test_window_is_configurable(self, days_ahead):
        SpecificationValidator(min_days_ahead=0, today=date.today).validate(_spec(departure_date=days_ahead(1)))

    def test_return_too_soon(self, validator, days_ahead):
        with pytest.raises(DateTooSoon) as exc:
            validator.validate(_spec(return_date=days_ahead(3)))
        assert exc.value.field == "return_date"

    def test_return_must_follow_departure(self, validator, days_ahead):
        with pytest.raises(ReturnBeforeDeparture):
            validator.validate(_spec(trip_kind="return", departure_date=days_ahead(30),
                                     return_date=days_ahead(30)))

    def test_impossible_calendar_date(self, validator):
        with pytest.raises(InvalidDateFormat):
            validator.validate(_spec(departure_date="2099-02-30"))


class TestLegs:
    def test_multicity_sequence_and_chronology_enforced(self, validator, make_leg):
        spec = _spec(trip_kind="multicity", legs=[make_leg(1, "SYD", "BKK", 30), make_leg(2, "BKK", "NRT", 20)])
        with pytest.raises(OutOfOrderDates):
            validator.validate(spec)

    def test_leg_too_soon(self, validator, make_leg):
        spec = _spec(trip_kind="multicity", legs=[make_leg(1, "SYD", "BKK", 2), make_leg(2, "BKK", "NRT", 20)])
        with pytest.raises(DateTooSoon) as exc:
            validator.validate(spec)
        assert exc.value.field == "legs[1].departure_date"

    def test_connectivity_only_when_required(self, make_leg):
        spec = _spec(trip_kind="multicity", legs=[make_leg(1, "SYD", "BKK", 20), make_leg(2, "SIN", "NRT", 30)])
        SpecificationValidator(today=date.today).validate(spec)
        with pytest.raises(DisconnectedItinerary):
            SpecificationValidator(require_connected_legs=True, today=date.today).validate(spec)

    def test_legs_ignored_for_other_trip_kinds(self, validator, make_leg):
        validator.validate(_spec(trip_kind="oneway", legs=[make_leg(2, "SYD", "BKK", 20)]))


class TestCollect:
    def test_collects_every_failure(self, validator, days_ahead):
        result = validator.collect(_spec(adults=1, infants=3, origin_code="SYD", destination_code="SYD",
                                         departure_date=days_ahead(2)))
        assert not result.is_valid
        assert not result.ready_for_booking
        kinds = [e["kind"] for e in result.validation_errors]
        assert kinds == ["InfantsExceedAdults", "SameOriginDestination", "DateTooSoon"]
        assert result.missing_required == ["return_date"]

    def test_ready_for_booking(self, validator, days_ahead):
        result = validator.collect(_spec(trip_kind="oneway", origin_code="SYD", destination_code="NRT",
                                         departure_date=days_ahead(20)))
        assert result.is_valid and result.ready_for_booking
