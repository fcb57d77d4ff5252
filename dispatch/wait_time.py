"""
Purpose: Requester-facing "how long until a driver is assigned" estimate.
What it does:
1. Asks the data store how many drivers are online, available and fresh near the pickup.
2. Averages assignment time over the city's last 50 assigned bookings
   (samples outside 0..30 minutes are dropped, 5 min when nothing is usable).
3. Maps driver count + average to an estimate:

   0 drivers    -> no estimate, low confidence
   1 driver     -> average, low confidence
   2-4 drivers  -> average / 2, medium confidence
   5+ drivers   -> 2 minutes, high confidence

Estimation is best effort: a failing data store yields a degraded estimate,
never an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Protocol

from drivers.models import LatLon, parse_timestamp
from .scoring import round_half_up

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50
DEFAULT_ASSIGNMENT_MINUTES = 5.0
MAX_ASSIGNMENT_MINUTES = 30.0
HIGH_CONFIDENCE_DRIVERS = 5
HIGH_CONFIDENCE_ESTIMATE = 2


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class WaitTimeEstimate:
    estimated: Optional[int]  # minutes, None when nobody is available
    confidence: Confidence
    drivers_available: int
    message: str
    # True when the estimate comes from a data store failure, not real data
    degraded: bool = False


class WaitTimeSource(Protocol):
    async def count_available_drivers(self, location: LatLon) -> int: ...

    async def recent_assignments(self, city: str, limit: int = HISTORY_LIMIT) -> list: ...


def average_assignment_minutes(records: Iterable[Mapping[str, Any]]) -> float:
    """
    Mean of (assigned_at - created_at) in minutes over records inside (0, 30).
    `driver_assigned_at` is preferred, `assigned_at` / `updated_at` are fallbacks.
    """
    samples = []
    for record in records:
        try:
            created_at = parse_timestamp(record.get("created_at"))
            assigned_at = parse_timestamp(
                record.get("driver_assigned_at") or record.get("assigned_at") or record.get("updated_at")
            )
        except ValueError as error:
            logger.debug(f"Skipping assignment record with bad timestamps: {error}")
            continue
        if created_at is None or assigned_at is None:
            continue

        minutes = (assigned_at - created_at).total_seconds() / 60
        if 0 < minutes < MAX_ASSIGNMENT_MINUTES:
            samples.append(minutes)

    if not samples:
        return DEFAULT_ASSIGNMENT_MINUTES
    return sum(samples) / len(samples)


def estimate_from_counts(drivers_available: int, average_minutes: float) -> WaitTimeEstimate:
    """
    Pure decision table, split out so it can be tested without a data store.
    """
    if drivers_available <= 0:
        return WaitTimeEstimate(
            estimated=None,
            confidence=Confidence.LOW,
            drivers_available=0,
            message="No drivers available nearby right now",
        )

    if drivers_available >= HIGH_CONFIDENCE_DRIVERS:
        return WaitTimeEstimate(
            estimated=HIGH_CONFIDENCE_ESTIMATE,
            confidence=Confidence.HIGH,
            drivers_available=drivers_available,
            message=f"{drivers_available} drivers nearby, about {HIGH_CONFIDENCE_ESTIMATE} min",
        )

    if drivers_available >= 2:
        estimated = round_half_up(average_minutes / 2)
        return WaitTimeEstimate(
            estimated=estimated,
            confidence=Confidence.MEDIUM,
            drivers_available=drivers_available,
            message=f"{drivers_available} drivers nearby, about {estimated} min",
        )

    estimated = round_half_up(average_minutes)
    return WaitTimeEstimate(
        estimated=estimated,
        confidence=Confidence.LOW,
        drivers_available=drivers_available,
        message=f"1 driver nearby, about {estimated} min",
    )


def unavailable_estimate() -> WaitTimeEstimate:
    return WaitTimeEstimate(
        estimated=None,
        confidence=Confidence.LOW,
        drivers_available=0,
        message="Unable to estimate wait time",
        degraded=True,
    )


class WaitTimeEstimator:

    def __init__(self, source: WaitTimeSource, history_limit: int = HISTORY_LIMIT):
        self.source = source
        self.history_limit = history_limit

    async def estimate_wait_time(self, location: LatLon, city: str) -> WaitTimeEstimate:
        try:
            drivers_available = await self.source.count_available_drivers(location)
            history = await self.source.recent_assignments(city, limit=self.history_limit)
            average = average_assignment_minutes(history or [])
            estimate = estimate_from_counts(drivers_available, average)
        except Exception as error:
            logger.warning(f"Wait time estimate for {city} degraded: {error!r}")
            return unavailable_estimate()

        logger.debug(
            f"Wait time for {city}: {estimate.estimated} min ({estimate.confidence.value}), "
            f"{drivers_available} drivers, avg assignment {average:.1f} min"
        )
        return estimate
