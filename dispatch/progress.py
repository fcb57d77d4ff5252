"""
Purpose: Requester-facing search progress.
What it does:
Records what happened at each search radius and builds the rows the
requester is notified with while the dispatcher searches:

- status_update        search started / search extended to the next radius
- no_driver_available  every radius came back empty

plus the activity log entry written when a dispatch fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from orders.models import RideRequest

STATUS_UPDATE = "status_update"
NO_DRIVER_AVAILABLE = "no_driver_available"
DISPATCH_FAILED_ACTIVITY = "dispatch_failed"


@dataclass(frozen=True)
class SearchAttempt:
    """
    One radius of the progressive search.
    `error` is set when the nearby-driver query failed at this radius.
    """
    radius_km: float
    drivers_found: int = 0
    qualified: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.qualified > 0


def _requester_update(request: RideRequest, title: str, message: str, notification_type: str,
                      metadata: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user_id": request.user_id,
        "booking_id": request.booking_id,
        "title": title,
        "message": message,
        "notification_type": notification_type,
        "metadata": {"booking_id": request.booking_id, **metadata},
    }


def search_started_update(request: RideRequest, radius_km: float) -> Dict[str, Any]:
    return _requester_update(
        request,
        title="Searching",
        message="Looking for a driver in your area...",
        notification_type=STATUS_UPDATE,
        metadata={"search_radius_km": radius_km},
    )


def search_extended_update(request: RideRequest, radius_km: float, attempt: int) -> Dict[str, Any]:
    return _requester_update(
        request,
        title="Extending search",
        message=f"Extending the search to {radius_km:g}km...",
        notification_type=STATUS_UPDATE,
        metadata={"search_radius_km": radius_km, "attempt": attempt},
    )


def no_driver_update(request: RideRequest, attempts: Sequence[SearchAttempt], max_radius_km: float) -> Dict[str, Any]:
    return _requester_update(
        request,
        title="No driver available",
        message="Try again in a few minutes or schedule your ride for later.",
        notification_type=NO_DRIVER_AVAILABLE,
        metadata={"search_attempts": len(attempts), "max_radius_searched_km": max_radius_km},
    )


def dispatch_failed_activity(request: RideRequest, attempts: Sequence[SearchAttempt],
                             max_radius_km: float) -> Dict[str, Any]:
    return {
        "user_id": request.user_id,
        "activity_type": DISPATCH_FAILED_ACTIVITY,
        "description": f"No drivers found for {request.order_type.value} booking {request.booking_id}",
        "metadata": {
            "booking_id": request.booking_id,
            "city": request.city,
            "priority": request.priority.value,
            "order_type": request.order_type.value,
            "search_attempts": attempts_summary(attempts),
            "max_radius_searched_km": max_radius_km,
        },
    }


def attempts_summary(attempts: Sequence[SearchAttempt]) -> List[Dict[str, Any]]:
    return [
        {
            "radius_km": attempt.radius_km,
            "drivers_found": attempt.drivers_found,
            "qualified": attempt.qualified,
            "error": attempt.error,
        }
        for attempt in attempts
    ]
