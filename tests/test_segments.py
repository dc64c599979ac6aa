"""
Tests for multi-city leg validation: sequence, chronology and connectivity.
"""

import pytest

from flightlink.errors import (
    DisconnectedItinerary,
    InvalidDateFormat,
    InvalidSequence,
    LegValidationError,
    OutOfOrderDates,
    SameOriginDestination,
)
from flightlink.search.segments import (
    is_bookable_itinerary,
    journey_duration_days,
    sort_legs,
    unique_airports,
    validate_chronology,
    validate_connectivity,
    validate_legs,
    validate_sequence,
)


class TestSequence:
    def test_accepts_positions_in_any_input_order(self, make_leg):
        legs = [
            make_leg(3, "NRT", "SYD", 40),
            make_leg(1, "SYD", "BKK", 20),
            make_leg(2, "BKK", "NRT", 30),
        ]
        validate_sequence(legs)
        assert [leg.sequence for leg in sort_legs(legs)] == [1, 2, 3]

    def test_rejects_duplicate_positions(self, make_leg):
        legs = [
            make_leg(1, "SYD", "BKK", 20),
            make_leg(1, "BKK", "NRT", 30),
            make_leg(2, "NRT", "SYD", 40),
        ]
        with pytest.raises(InvalidSequence):
            validate_sequence(legs)

    def test_rejects_gaps(self, make_leg):
        legs = [make_leg(1, "SYD", "BKK", 20), make_leg(3, "BKK", "NRT", 30)]
        with pytest.raises(InvalidSequence) as exc:
            validate_sequence(legs)
        assert exc.value.field == "legs"

    def test_rejects_not_starting_at_one(self, make_leg):
        with pytest.raises(InvalidSequence):
            validate_sequence([make_leg(2, "SYD", "BKK", 20), make_leg(3, "BKK", "NRT", 30)])

    def test_empty_list_is_valid(self):
        validate_sequence([])


class TestChronology:
    def test_strictly_increasing_dates_pass(self, make_leg):
        validate_chronology([make_leg(2, "BKK", "NRT", 25), make_leg(1, "SYD", "BKK", 20)])

    def test_same_day_is_rejected(self, make_leg):
        legs = [make_leg(1, "SYD", "BKK", 20), make_leg(2, "BKK", "NRT", 20)]
        with pytest.raises(OutOfOrderDates) as exc:
            validate_chronology(legs)
        assert exc.value.field == "legs[2].departure_date"

    def test_dates_compared_after_sorting_by_position(self, make_leg):
        legs = [make_leg(2, "BKK", "NRT", 15), make_leg(1, "SYD", "BKK", 20)]
        with pytest.raises(OutOfOrderDates):
            validate_chronology(legs)


    def test_impossible_calendar_date_is_a_typed_failure(self, make_leg):
        legs = [make_leg(1, "SYD", "BKK", 20).model_copy(update={"departure_date": "2099-02-30"}),
                make_leg(2, "BKK", "NRT", 30)]
        with pytest.raises(InvalidDateFormat) as exc:
            validate_chronology(legs)
        assert exc.value.field == "legs[1].departure_date"
        assert not is_bookable_itinerary(legs)


class TestConnectivity:
    def test_connected_itinerary_passes(self, make_leg):
        validate_connectivity([make_leg(1, "SYD", "BKK", 20), make_leg(2, "BKK", "NRT", 30)])

    def test_gap_in_route_is_rejected(self, make_leg):
        legs = [make_leg(1, "SYD", "BKK", 20), make_leg(2, "SIN", "NRT", 30)]
        with pytest.raises(DisconnectedItinerary) as exc:
            validate_connectivity(legs)
        assert exc.value.field == "legs[2].origin_code"

    def test_failures_share_a_base_type(self, make_leg):
        legs = [make_leg(1, "SYD", "BKK", 20), make_leg(2, "SIN", "NRT", 30)]
        with pytest.raises(LegValidationError):
            validate_connectivity(legs)


class TestValidateLegs:
    def test_connectivity_is_advisory_by_default(self, make_leg):
        legs = [make_leg(1, "SYD", "BKK", 20), make_leg(2, "SIN", "NRT", 30)]
        assert [leg.sequence for leg in validate_legs(legs)] == [1, 2]
        with pytest.raises(DisconnectedItinerary):
            validate_legs(legs, check_connectivity=True)

    def test_same_airport_leg_is_rejected(self, make_leg):
        with pytest.raises(SameOriginDestination):
            validate_legs([make_leg(1, "SYD", "SYD", 20)])

    def test_bookable_needs_two_legs(self, make_leg):
        assert not is_bookable_itinerary([make_leg(1, "SYD", "BKK", 20)])
        assert is_bookable_itinerary([make_leg(1, "SYD", "BKK", 20), make_leg(2, "SIN", "NRT", 30)])
        assert not is_bookable_itinerary(
            [make_leg(1, "SYD", "BKK", 20), make_leg(2, "SIN", "NRT", 30)],
            require_connectivity=True,
        )

    def test_bookable_rejects_out_of_order(self, make_leg):
        assert not is_bookable_itinerary([make_leg(1, "SYD", "BKK", 30), make_leg(2, "BKK", "NRT", 20)])


class TestItineraryHelpers:
    def test_journey_duration(self, make_leg):
        legs = [make_leg(2, "BKK", "NRT", 27), make_leg(1, "SYD", "BKK", 20)]
        assert journey_duration_days(legs) == 7
        assert journey_duration_days([]) == 0

    def test_unique_airports_in_route_order(self, make_leg):
        legs = [
            make_leg(2, "BKK", "NRT", 30),
            make_leg(1, "SYD", "BKK", 20),
            make_leg(3, "NRT", "SYD", 40),
        ]
        assert unique_airports(legs) == ["SYD", "BKK", "NRT"]
