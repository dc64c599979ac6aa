import itertools

import pytest

from flightlink.search.completeness import (
    completion_percentage,
    is_complete,
    missing_fields,
    refresh_completeness,
    required_fields,
)
from flightlink.types import TripSpecification


def _spec(**fields) -> TripSpecification:
    return TripSpecification(conversation_id="conv-1", **fields)


class TestRequiredFields:
    def test_per_trip_kind(self):
        assert required_fields("oneway") == ["origin_code", "destination_code", "departure_date"]
        assert required_fields("return")[-1] == "return_date"
        assert required_fields("multicity")[-1] == "legs"


class TestCompleteness:
    def test_oneway_scenario_is_complete(self, days_ahead):
        spec = _spec(origin_code="SYD", destination_code="NRT",
                     departure_date=days_ahead(20), trip_kind="oneway", adults=1)
        assert is_complete(spec)
        assert missing_fields(spec) == []
        assert completion_percentage(spec) == 100

    def test_return_without_return_date(self, days_ahead):
        spec = _spec(origin_code="SYD", destination_code="NRT",
                     departure_date=days_ahead(20), trip_kind="return", adults=1)
        assert not is_complete(spec)
        assert missing_fields(spec) == ["return_date"]
        assert completion_percentage(spec) == 75

    def test_multicity_needs_two_legs(self, days_ahead, make_leg):
        base = dict(origin_code="SYD", destination_code="NRT",
                    departure_date=days_ahead(20), trip_kind="multicity")
        one_leg = _spec(legs=[make_leg(1, "SYD", "BKK", 20)], **base)
        assert missing_fields(one_leg) == ["legs"]
        two_legs = _spec(legs=[make_leg(1, "SYD", "BKK", 20), make_leg(2, "BKK", "NRT", 30)], **base)
        assert is_complete(two_legs)

    def test_missing_fields_in_priority_order(self):
        spec = _spec(trip_kind="return")
        assert missing_fields(spec) == ["origin_code", "destination_code", "departure_date", "return_date"]
        assert missing_fields(spec) == missing_fields(spec)
        assert completion_percentage(spec) == 0

    def test_percentage_rounds_to_nearest(self):
        assert completion_percentage(_spec(trip_kind="oneway", origin_code="SYD")) == 33
        assert completion_percentage(_spec(trip_kind="oneway", origin_code="SYD", destination_code="NRT")) == 67

    @pytest.mark.parametrize("trip_kind", ["oneway", "return", "multicity"])
    def test_complete_iff_every_required_field_present(self, trip_kind, days_ahead, make_leg):
        values = {
            "origin_code": "SYD",
            "destination_code": "NRT",
            "departure_date": days_ahead(20),
            "return_date": days_ahead(30),
            "legs": [make_leg(1, "SYD", "BKK", 20), make_leg(2, "BKK", "NRT", 30)],
        }
        required = required_fields(trip_kind)
        for size in range(len(required) + 1):
            for present in itertools.combinations(required, size):
                spec = _spec(trip_kind=trip_kind, **{f: values[f] for f in present})
                assert is_complete(spec) == (len(present) == len(required))
                assert set(missing_fields(spec)) == set(required) - set(present)

    def test_cached_flag_is_ignored_and_refreshed(self, days_ahead):
        spec = _spec(trip_kind="oneway", origin_code="SYD", is_complete=True)
        assert not is_complete(spec)
        assert refresh_completeness(spec).is_complete is False

        done = _spec(trip_kind="oneway", origin_code="SYD", destination_code="NRT",
                     departure_date=days_ahead(20))
        assert refresh_completeness(done).is_complete is True

    def test_completeness_is_not_sticky(self, days_ahead):
        spec = refresh_completeness(_spec(trip_kind="oneway", origin_code="SYD", destination_code="NRT",
                                          departure_date=days_ahead(20)))
        assert spec.is_complete
        switched = refresh_completeness(spec.model_copy(update={"trip_kind": "return"}))
        assert not switched.is_complete
