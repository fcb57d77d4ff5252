"""
Purpose: Ranking/selection model (the "who is best" layer).
What it does:
Takes candidates (already rule-qualified) + the dispatch context and produces
an ordered list of RankedDriver for the wave builder.

Score = round(100 + Σ term * weight + bonuses), where the terms are:

distance    max(0, 100 - distance_km * 10)
rating      rating / 5 * 100
experience  min(100, total_rides / 100 * 100)
acceptance  acceptance_rate * 100
pickup      max(0, 100 - avg_pickup_time * 5)

Bonuses: +20 for >= 4.5 rated drivers on high priority requests,
+15 for drivers under 2 km during rush hour.

Ties keep input order (stable sort), ranks are dense 1..N.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from drivers.models import DriverCandidate, RankedDriver, RankingContext, apply_defaults
from drivers.policy import DriverPolicy, default_driver_policy
from routing.eta_service import calculate_eta


def round_half_up(value: float) -> int:
    """
    Rounds .5 away from zero for positive numbers (builtin round() is banker's rounding).
    """
    return int(math.floor(value + 0.5))


def is_rush_hour(hour: int, policy: Optional[DriverPolicy] = None) -> bool:
    policy = policy or default_driver_policy()
    return hour in policy.rush_hours


def score_driver(candidate: DriverCandidate, context: RankingContext, policy: Optional[DriverPolicy] = None) -> int:
    """
    Predicted suitability of one driver for this request (higher is better).
    """
    policy = policy or default_driver_policy()
    driver = apply_defaults(candidate, policy.candidate_defaults)

    distance_term = max(0.0, 100 - driver.distance_km * policy.distance_penalty_per_km)
    rating_term = driver.rating_average / 5 * 100
    experience_term = min(100.0, driver.total_rides / policy.experience_full_rides * 100)
    acceptance_term = driver.acceptance_rate * 100
    pickup_term = max(0.0, 100 - driver.avg_pickup_time * policy.pickup_penalty_per_minute)

    score = policy.base_score
    score += distance_term * policy.distance_weight
    score += rating_term * policy.rating_weight
    score += experience_term * policy.experience_weight
    score += acceptance_term * policy.acceptance_weight
    score += pickup_term * policy.pickup_speed_weight

    # contextual bonuses
    if context.priority in policy.priority_bonus_levels and driver.rating_average >= policy.priority_bonus_min_rating:
        score += policy.priority_bonus

    if is_rush_hour(context.time_of_day, policy) and driver.distance_km < policy.rush_hour_max_distance_km:
        score += policy.rush_hour_bonus

    return round_half_up(score)


def rank_drivers(
    drivers: Sequence[DriverCandidate],
    context: RankingContext,
    policy: Optional[DriverPolicy] = None,
) -> List[RankedDriver]:
    """
    Scores every driver and returns them best first with 1-based ranks.
    """
    policy = policy or default_driver_policy()

    scored = [
        (score_driver(driver, context, policy), driver)
        for driver in drivers
    ]
    # sorted() is stable so equal scores keep their input order
    scored = sorted(scored, key=lambda item: item[0], reverse=True)

    return [
        RankedDriver(
            candidate=driver,
            predicted_score=score,
            estimated_arrival=calculate_eta(driver.distance_km, policy.avg_speed_kmh),
            rank=position,
        )
        for position, (score, driver) in enumerate(scored, start=1)
    ]


def select_best_driver(
    drivers: Sequence[DriverCandidate],
    context: RankingContext,
    policy: Optional[DriverPolicy] = None,
) -> Optional[RankedDriver]:
    """
    The rank-1 driver, or None when there is nobody to rank.
    """
    ranked = rank_drivers(drivers, context, policy)
    return ranked[0] if ranked else None
