import pytest

from drivers.models import DriverCandidate
from drivers.policy import DriverPolicy
from dispatch.candidate_filter import filter_qualified_drivers, filter_with_policy


@pytest.fixture
def nearby_drivers():
    return [
        DriverCandidate("good", distance_km=2.0, rating_average=4.6, acceptance_rate=0.9),
        DriverCandidate("low_rating", distance_km=1.0, rating_average=2.9, acceptance_rate=0.9),
        DriverCandidate("too_far", distance_km=10.5, rating_average=4.9, acceptance_rate=0.9),
        DriverCandidate("picky", distance_km=3.0, rating_average=4.1, acceptance_rate=0.4),
        DriverCandidate("no_stats", distance_km=0.5),
        DriverCandidate("edge", distance_km=10.0, rating_average=3.0, acceptance_rate=0.5),
    ]


def test_filter_keeps_only_drivers_passing_every_gate(nearby_drivers):
    qualified = filter_qualified_drivers(nearby_drivers)

    assert [driver.driver_id for driver in qualified] == ["good", "edge"]

    # 1. Result is a subset of the input
    assert all(driver in nearby_drivers for driver in qualified)

    # 2. Every kept driver satisfies all three predicates at once
    for driver in qualified:
        assert driver.rating_average >= 3.0
        assert driver.distance_km <= 10
        assert driver.acceptance_rate >= 0.5


def test_missing_stats_count_as_zero():
    """
    A driver the data store has no rating/acceptance for never qualifies
    unless the thresholds are zero.
    """
    unknown = DriverCandidate("unknown", distance_km=1.0)

    assert filter_qualified_drivers([unknown]) == []
    assert filter_qualified_drivers([unknown], min_rating=0, min_acceptance_rate=0) == [unknown]


def test_custom_thresholds(nearby_drivers):
    qualified = filter_qualified_drivers(nearby_drivers, min_rating=4.5, max_distance=5, min_acceptance_rate=0.8)

    assert [driver.driver_id for driver in qualified] == ["good"]


def test_empty_pool_returns_empty_list():
    assert filter_qualified_drivers([]) == []


def test_filter_with_policy_uses_policy_thresholds(nearby_drivers):
    policy = DriverPolicy(min_rating=4.0, max_distance_km=3.0, min_acceptance_rate=0.3)

    qualified = filter_with_policy(nearby_drivers, policy)

    assert [driver.driver_id for driver in qualified] == ["good", "picky"]
