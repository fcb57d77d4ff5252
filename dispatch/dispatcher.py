"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Accepts a RideRequest, searches for drivers in growing radii, keeps the
qualified ones, ranks them, splits them into 3 time-staggered waves and hands
the wave notifications to the notification sink.
The requester is kept informed along the way (search started, search
extended, nobody found) and a failed dispatch is written to the activity log.
Acceptance detection and wave expiry enforcement happen downstream, this only
stamps when each wave's offers expire.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from drivers.models import DriverCandidate, LatLon, RankedDriver
from drivers.policy import DriverPolicy, default_driver_policy
from drivers.selection import DispatchWave, build_dispatch_waves, build_wave_notifications
from orders.models import RideRequest
from resilience import CircuitOpenError
from .candidate_filter import filter_with_policy
from .progress import (
    SearchAttempt,
    dispatch_failed_activity,
    no_driver_update,
    search_extended_update,
    search_started_update,
)
from .scoring import rank_drivers

logger = logging.getLogger(__name__)


class DispatchGateway(Protocol):
    async def find_nearby_drivers(
        self,
        pickup: LatLon,
        radius_km: float,
        *,
        vehicle_class: Optional[str] = None,
        min_rating: Optional[float] = None,
        city: Optional[str] = None,
    ) -> List[DriverCandidate]: ...

    async def push_notifications(self, notifications: List[Dict[str, Any]]) -> None: ...

    async def push_status_updates(self, updates: List[Dict[str, Any]]) -> None: ...

    async def log_activity(self, entry: Dict[str, Any]) -> None: ...


@dataclass
class DispatchResult:
    """
    What one dispatch attempt produced.
    """
    success: bool
    booking_id: str
    message: str
    ranked: List[RankedDriver] = field(default_factory=list)
    waves: List[DispatchWave] = field(default_factory=list)
    notifications: List[Dict[str, Any]] = field(default_factory=list)
    search_radius_km: Optional[float] = None
    retry_suggested: bool = False
    attempts: List[SearchAttempt] = field(default_factory=list)

    @property
    def best_driver(self) -> Optional[RankedDriver]:
        return self.ranked[0] if self.ranked else None

    @property
    def drivers_notified(self) -> int:
        return len(self.notifications)

    @property
    def max_radius_searched_km(self) -> Optional[float]:
        return max((attempt.radius_km for attempt in self.attempts), default=None)


class Dispatcher:
    """
    Coordinates one request through search -> filter -> rank -> waves -> notify.
    """
    def __init__(self, gateway: DispatchGateway, policy: Optional[DriverPolicy] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.gateway = gateway
        self.policy = policy or default_driver_policy()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def _notify_requester(self, update: Dict[str, Any]) -> None:
        # progress updates are informational, a failing sink must not stop the search
        try:
            await self.gateway.push_status_updates([update])
        except Exception as error:
            logger.warning(f"Could not send {update['notification_type']} for booking {update['booking_id']}: {error!r}")

    async def find_qualified_drivers(
        self, request: RideRequest
    ) -> Tuple[List[DriverCandidate], Optional[float], List[SearchAttempt]]:
        """
        Walks the priority's search radii until one yields qualified drivers.
        Returns (qualified drivers, radius used, per-radius attempts). A failed
        query skips to the next radius; an open circuit is raised to the caller.
        """
        vehicle_class = request.required_vehicle_class()
        radii = self.policy.radii_for(request.priority)
        attempts: List[SearchAttempt] = []

        await self._notify_requester(search_started_update(request, radii[0]))

        for number, radius in enumerate(radii, start=1):
            logger.info(f"Searching {vehicle_class or 'any'} drivers within {radius}km for booking {request.booking_id}")

            try:
                nearby = await self.gateway.find_nearby_drivers(
                    request.pickup,
                    radius,
                    vehicle_class=vehicle_class,
                    city=request.city,
                )
            except CircuitOpenError:
                raise
            except Exception as error:
                logger.error(f"Nearby driver query failed at {radius}km: {error!r}")
                attempts.append(SearchAttempt(radius_km=radius, error=repr(error)))
            else:
                qualified = filter_with_policy(nearby, self.policy)
                attempts.append(SearchAttempt(radius_km=radius, drivers_found=len(nearby), qualified=len(qualified)))
                logger.info(f"   Found {len(nearby)} driver(s), {len(qualified)} qualified")

                if qualified:
                    return qualified, radius, attempts

            if number < len(radii):
                await self._notify_requester(search_extended_update(request, radii[number], number))

        return [], None, attempts

    async def dispatch(self, request: RideRequest) -> DispatchResult:
        dispatched_at = self.clock()

        qualified, radius, attempts = await self.find_qualified_drivers(request)
        if not qualified:
            max_radius = max(self.policy.radii_for(request.priority))
            logger.warning(f"No drivers found for booking {request.booking_id} within {max_radius}km")

            await self._notify_requester(no_driver_update(request, attempts, max_radius))
            try:
                await self.gateway.log_activity(dispatch_failed_activity(request, attempts, max_radius))
            except Exception as error:
                logger.warning(f"Could not log failed dispatch for booking {request.booking_id}: {error!r}")

            return DispatchResult(
                success=False,
                booking_id=request.booking_id,
                message=f"No driver available in {request.city} within {max_radius:g}km",
                retry_suggested=True,
                attempts=attempts,
            )

        ranked = rank_drivers(qualified, request.ranking_context(dispatched_at), self.policy)
        waves = build_dispatch_waves(ranked, dispatched_at, self.policy)
        notifications = build_wave_notifications(waves, request)

        for wave in waves:
            if len(wave):
                logger.info(f"Wave {wave.number} for booking {request.booking_id}: {wave.driver_ids} until {wave.expires_at.isoformat()}")

        await self.gateway.push_notifications(notifications)

        return DispatchResult(
            success=True,
            booking_id=request.booking_id,
            message=f"{len(notifications)} drivers notified",
            ranked=ranked,
            waves=waves,
            notifications=notifications,
            search_radius_km=radius,
            attempts=attempts,
        )
