from datetime import date

import pytest

from flightlink.utils.dates import (
    from_booking_date,
    min_departure_date,
    parse_iso,
    to_booking_date,
    to_iso_date,
    to_short_date,
)


def test_booking_date_format():
    assert to_booking_date("2025-03-05") == "05032025"
    assert from_booking_date("05032025") == "2025-03-05"


def test_short_date_format():
    assert to_short_date("2025-03-05") == "250305"


@pytest.mark.parametrize("value", ["20250305", "2025--05", "next week"])
def test_unsplittable_dates_pass_through(value):
    assert to_booking_date(value) == value
    assert to_short_date(value) == value


def test_empty_input():
    assert to_booking_date("") == ""
    assert to_short_date("") == ""
    assert from_booking_date("") == ""


def test_from_booking_date_needs_eight_characters():
    assert from_booking_date("5032025") == ""
    assert from_booking_date("050320251") == ""


def test_iso_date_passes_through_unchanged():
    assert to_iso_date("2025-03-05") == "2025-03-05"
    assert to_iso_date("  2025-03-05 ") == "2025-03-05"


def test_natural_language_date_resolves_to_future():
    iso = to_iso_date("5 March", tz="Australia/Sydney")
    assert len(iso) == 10
    assert parse_iso(iso).month == 3 and parse_iso(iso).day == 5


def test_unparseable_date():
    assert to_iso_date("") == ""
    assert to_iso_date("whenever suits") == ""


def test_min_departure_date():
    assert min_departure_date(14, base=date(2025, 3, 1)) == date(2025, 3, 15)
    assert min_departure_date(0, base=date(2025, 3, 1)) == date(2025, 3, 1)
