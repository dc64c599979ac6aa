import os
import sys
from datetime import date, timedelta

import pytest

# Ensure project root is on sys.path so `import flightlink` works in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from flightlink.obs.metrics import reset_metrics  # noqa: E402
from flightlink.types import FlightLeg  # noqa: E402


@pytest.fixture
def days_ahead():
    """Return an ISO date `n` days from today."""
    def _days_ahead(n: int) -> str:
        return (date.today() + timedelta(days=n)).isoformat()
    return _days_ahead


@pytest.fixture
def make_leg(days_ahead):
    def _make_leg(sequence: int, origin: str, destination: str, in_days: int) -> FlightLeg:
        return FlightLeg(
            sequence=sequence,
            origin_code=origin,
            origin_name=origin,
            destination_code=destination,
            destination_name=destination,
            departure_date=days_ahead(in_days),
        )
    return _make_leg


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
