import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from datastore.client import DataStoreError
from dispatch.wait_time import (
    Confidence,
    WaitTimeEstimator,
    average_assignment_minutes,
    estimate_from_counts,
)
from resilience import CircuitOpenError

PICKUP = (-4.325, 15.322)
T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def assignment(minutes, field="driver_assigned_at"):
    return {"created_at": T0.isoformat(), field: (T0 + timedelta(minutes=minutes)).isoformat()}


class FakeSource:
    def __init__(self, drivers=0, history=None, error=None):
        self.drivers = drivers
        self.history = history or []
        self.error = error
        self.history_calls = []

    async def count_available_drivers(self, location):
        if self.error:
            raise self.error
        return self.drivers

    async def recent_assignments(self, city, limit=50):
        self.history_calls.append((city, limit))
        return self.history


def estimate(source, city="Kinshasa"):
    return asyncio.run(WaitTimeEstimator(source).estimate_wait_time(PICKUP, city))


def test_no_drivers_means_no_estimate():
    result = estimate(FakeSource(drivers=0, history=[assignment(6)]))

    assert result.estimated is None
    assert result.confidence == Confidence.LOW
    assert result.drivers_available == 0
    assert not result.degraded


def test_five_or_more_drivers_is_high_confidence():
    result = estimate(FakeSource(drivers=7, history=[assignment(6), assignment(6)]))

    assert result.estimated == 2
    assert result.confidence == Confidence.HIGH
    assert result.drivers_available == 7


def test_few_drivers_halve_the_average():
    result = estimate(FakeSource(drivers=3, history=[assignment(6), assignment(8)]))

    # avg 7 min / 2 = 3.5 -> 4
    assert result.estimated == 4
    assert result.confidence == Confidence.MEDIUM


def test_single_driver_uses_the_average():
    result = estimate(FakeSource(drivers=1, history=[assignment(9), assignment(12)]))

    # avg 10.5 -> 11
    assert result.estimated == 11
    assert result.confidence == Confidence.LOW
    assert result.drivers_available == 1


def test_history_request_uses_city_and_limit():
    source = FakeSource(drivers=2)

    estimate(source, city="Lubumbashi")

    assert source.history_calls == [("Lubumbashi", 50)]


@pytest.mark.parametrize("error", [
    DataStoreError("boom", status_code=503),
    CircuitOpenError("drivers", 12),
    ConnectionError("network down"),
])
def test_collaborator_errors_degrade_instead_of_raising(error):
    result = estimate(FakeSource(drivers=4, error=error))

    assert result.estimated is None
    assert result.confidence == Confidence.LOW
    assert result.drivers_available == 0
    assert result.message == "Unable to estimate wait time"
    assert result.degraded


def test_average_drops_outliers():
    records = [
        assignment(4),
        assignment(6),
        assignment(0),  # not strictly positive
        assignment(-3),  # clock skew
        assignment(30),  # on the boundary, dropped
        assignment(95),  # abandoned booking
        {"created_at": T0.isoformat()},  # never assigned
    ]

    assert average_assignment_minutes(records) == pytest.approx(5.0)


def test_average_defaults_to_five_minutes():
    assert average_assignment_minutes([]) == 5.0
    assert average_assignment_minutes([assignment(45)]) == 5.0


def test_average_falls_back_to_updated_at():
    records = [assignment(3, field="updated_at"), {"created_at": T0, "assigned_at": T0 + timedelta(minutes=5)}]

    assert average_assignment_minutes(records) == pytest.approx(4.0)


@pytest.mark.parametrize("drivers", range(0, 12))
def test_decision_table_boundaries(drivers):
    result = estimate_from_counts(drivers, 6.0)

    assert (result.estimated is None) == (drivers == 0)
    if drivers >= 5:
        assert result.estimated == 2
        assert result.confidence == Confidence.HIGH
    elif drivers >= 2:
        assert result.estimated == 3
        assert result.confidence == Confidence.MEDIUM
    elif drivers == 1:
        assert result.estimated == 6
        assert result.confidence == Confidence.LOW


def test_unreadable_timestamps_are_skipped():
    records = [
        {"created_at": "not-a-date", "driver_assigned_at": T0.isoformat()},
        {"created_at": T0.isoformat(), "driver_assigned_at": 12.5},
        assignment(8),
    ]

    assert average_assignment_minutes(records) == pytest.approx(8.0)


def test_naive_timestamps_are_read_as_utc():
    records = [
        {"created_at": T0.replace(tzinfo=None), "driver_assigned_at": (T0 + timedelta(minutes=6)).isoformat()},
        {"created_at": "2026-03-02 08:00:00", "driver_assigned_at": "2026-03-02T08:04:00.1234+00:00"},
    ]

    assert average_assignment_minutes(records) == pytest.approx(5.0, abs=0.01)


def test_bad_history_rows_still_give_an_estimate():
    history = [{"created_at": "not-a-date", "driver_assigned_at": "also-not-a-date"}, assignment(10)]

    result = estimate(FakeSource(drivers=1, history=history))

    assert result.estimated == 10
    assert not result.degraded


def test_malformed_history_degrades():
    result = estimate(FakeSource(drivers=3, history=["not a record"]))

    assert result.estimated is None
    assert result.degraded
