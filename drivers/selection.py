"""
Purpose: Split ranked drivers into time-staggered notification waves.
What it does:
Accepts the ranked driver list for one request and partitions it into
3 cascading waves (top 3, next 3, everyone else). Each wave carries its own
expiry so the notification consumer can escalate reach only when earlier
waves produced no acceptance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from orders.models import RideRequest
from .models import LatLon, RankedDriver
from .policy import DriverPolicy, default_driver_policy

NOTIFICATION_TYPE = "ride_request"
NOTIFICATION_STATUS = "pending"


@dataclass(frozen=True)
class DispatchWave:
    """
    One batch of drivers notified together.
    """
    number: int  # 1-based
    drivers: List[RankedDriver]
    expires_at: datetime

    @property
    def driver_ids(self) -> List[str]:
        return [driver.driver_id for driver in self.drivers]

    def __len__(self) -> int:
        return len(self.drivers)


def build_dispatch_waves(
    ranked: Sequence[RankedDriver],
    dispatched_at: datetime,
    policy: Optional[DriverPolicy] = None,
) -> List[DispatchWave]:
    """
    Partition ranked drivers into exactly 3 waves.

    wave 1 = ranked[0:3]  expires dispatched_at + 30s
    wave 2 = ranked[3:6]  expires dispatched_at + 90s
    wave 3 = ranked[6:]   expires dispatched_at + 180s

    Waves can be empty when there are fewer drivers than slots.
    """
    policy = policy or default_driver_policy()

    first_size, second_size = policy.wave_sizes
    bounds = [
        (0, first_size),
        (first_size, first_size + second_size),
        (first_size + second_size, len(ranked)),
    ]

    waves: List[DispatchWave] = []
    for wave_index, (start, end) in enumerate(bounds):
        waves.append(
            DispatchWave(
                number=wave_index + 1,
                drivers=list(ranked[start:end]),
                expires_at=dispatched_at + timedelta(seconds=policy.wave_expiry_seconds[wave_index]),
            )
        )

    return waves


def format_offer_message(request: RideRequest, distance_km: Optional[float] = None) -> str:
    """
    The one offer template every wave uses.
    """
    pickup = _format_point(request.pickup)
    destination = _format_point(request.destination) if request.destination else "not set"
    price = f"{request.estimated_price:.0f} CDF" if request.estimated_price is not None else "price on arrival"

    message = f"Pickup {pickup} to {destination} | {price}"
    if distance_km is not None:
        message += f" | {distance_km:.1f} km away"
    return message


def build_wave_notifications(waves: Sequence[DispatchWave], request: RideRequest) -> List[Dict[str, Any]]:
    """
    One notification record per notified driver, wave order preserved.
    """
    title = f"New {request.order_type.value} request"
    notifications: List[Dict[str, Any]] = []

    for wave in waves:
        for driver in wave.drivers:
            notifications.append({
                "driver_id": driver.driver_id,
                "booking_id": request.booking_id,
                "title": title,
                "message": format_offer_message(request, driver.distance_km),
                "notification_type": NOTIFICATION_TYPE,
                "status": NOTIFICATION_STATUS,
                "expires_at": wave.expires_at.isoformat(),
                "metadata": {
                    "wave": wave.number,
                    "rank": driver.rank,
                    "score": driver.predicted_score,
                    "estimated_arrival": driver.estimated_arrival,
                    "pickup": _point_dict(request.pickup),
                    "destination": _point_dict(request.destination) if request.destination else None,
                    "estimated_price": request.estimated_price,
                    "distance_km": driver.distance_km,
                    "trip_distance_km": request.trip_distance_km,
                },
            })

    return notifications


def _format_point(point: LatLon) -> str:
    return f"({point[0]:.5f}, {point[1]:.5f})"


def _point_dict(point: LatLon) -> Dict[str, float]:
    return {"lat": point[0], "lng": point[1]}
