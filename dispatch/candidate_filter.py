#Purpose: Non-routing hard eligibility filtering (rule gates).
#Narrows the nearby-driver pool to drivers meeting the minimum quality bar
#before anything gets scored.
#Gates:
#rating
#distance to pickup
#acceptance rate
#A missing stat counts as 0, so unknown drivers fail the rating/acceptance gates.

#Output: "rule-qualified drivers" (still not ranked, input order kept).

from __future__ import annotations

from typing import Iterable, List, Optional

from drivers.models import DriverCandidate
from drivers.policy import DriverPolicy


def filter_qualified_drivers(
    drivers: Iterable[DriverCandidate],
    *,
    min_rating: float = 3.0,
    max_distance: float = 10.0,
    min_acceptance_rate: float = 0.5,
) -> List[DriverCandidate]:
    """
    Keep a driver iff rating >= min_rating AND distance <= max_distance
    AND acceptance_rate >= min_acceptance_rate.
    """
    qualified = []

    for driver in drivers:
        rating = driver.rating_average or 0
        distance = driver.distance_km or 0
        acceptance = driver.acceptance_rate or 0

        if rating < min_rating:
            continue

        if distance > max_distance:
            continue

        if acceptance < min_acceptance_rate:
            continue

        qualified.append(driver)

    return qualified


def filter_with_policy(drivers: Iterable[DriverCandidate], policy: Optional[DriverPolicy] = None) -> List[DriverCandidate]:
    """
    Same gates, thresholds taken from a DriverPolicy.
    """
    policy = policy or DriverPolicy()
    return filter_qualified_drivers(
        drivers,
        min_rating=policy.min_rating,
        max_distance=policy.max_distance_km,
        min_acceptance_rate=policy.min_acceptance_rate,
    )
