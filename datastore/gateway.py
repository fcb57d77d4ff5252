"""
Purpose: The external collaborators the dispatch core talks to.
What it does:
Implements, on top of DataStoreClient:

- nearby-driver query        (rpc find_nearby_drivers)
- live available-driver count (driver_locations, pinged within 5 minutes)
- assignment history          (last N assigned bookings in a city)
- notification sink           (driver_ride_notifications insert)
- requester progress updates  (delivery_notifications insert)
- activity log                (activity_logs insert)

Every call runs the blocking HTTP request in a worker thread and goes through
the circuit breaker named after the dependency it hits.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from drivers.models import DriverCandidate, LatLon
from resilience import CircuitBreakerRegistry
from .client import DataStoreClient

logger = logging.getLogger(__name__)

DRIVERS_CIRCUIT = "drivers"
BOOKINGS_CIRCUIT = "bookings"
NOTIFICATIONS_CIRCUIT = "notifications"

NEARBY_DRIVERS_RPC = "find_nearby_drivers"
DRIVER_LOCATIONS_TABLE = "driver_locations"
BOOKINGS_TABLE = "transport_bookings"
NOTIFICATIONS_TABLE = "driver_ride_notifications"
REQUESTER_NOTIFICATIONS_TABLE = "delivery_notifications"
ACTIVITY_LOG_TABLE = "activity_logs"

# a driver who has not pinged for this long is not counted as available
PING_FRESHNESS = timedelta(minutes=5)

# km per degree of latitude, used for the count query bounding box
KM_PER_DEGREE = 111.32


class DataStoreGateway:

    def __init__(self, client: DataStoreClient, breakers: Optional[CircuitBreakerRegistry] = None,
                 count_radius_km: float = 5.0):
        self.client = client
        self.breakers = breakers or CircuitBreakerRegistry()
        self.count_radius_km = count_radius_km

    async def _guarded(self, circuit: str, fn, *args):
        breaker = self.breakers.get(circuit)
        return await breaker.execute(lambda: asyncio.to_thread(fn, *args))

    async def find_nearby_drivers(
        self,
        pickup: LatLon,
        radius_km: float,
        *,
        vehicle_class: Optional[str] = None,
        min_rating: Optional[float] = None,
        city: Optional[str] = None,
    ) -> List[DriverCandidate]:
        """
        Candidates within `radius_km` of the pickup, as the data store computes them.
        """
        params: Dict[str, Any] = {
            "pickup_lat": pickup[0],
            "pickup_lng": pickup[1],
            "radius_km": radius_km,
            "vehicle_class_filter": vehicle_class,
        }
        if min_rating is not None:
            params["min_rating"] = min_rating
        if city is not None:
            params["user_city_param"] = city

        rows = await self._guarded(DRIVERS_CIRCUIT, self.client.rpc, NEARBY_DRIVERS_RPC, params)
        return [DriverCandidate.from_record(row) for row in rows or []]

    async def count_available_drivers(self, location: LatLon, now: Optional[datetime] = None) -> int:
        """
        Online + available drivers that pinged in the last 5 minutes, inside a
        bounding box of `count_radius_km` around the location.
        """
        now = now or datetime.now(timezone.utc)
        lat, lng = location

        lat_delta = self.count_radius_km / KM_PER_DEGREE
        lng_delta = self.count_radius_km / (KM_PER_DEGREE * max(math.cos(math.radians(lat)), 0.01))

        params = [
            ("is_online", "eq.true"),
            ("is_available", "eq.true"),
            ("last_ping", f"gte.{(now - PING_FRESHNESS).isoformat()}"),
            ("latitude", f"gte.{lat - lat_delta}"),
            ("latitude", f"lte.{lat + lat_delta}"),
            ("longitude", f"gte.{lng - lng_delta}"),
            ("longitude", f"lte.{lng + lng_delta}"),
        ]
        return await self._guarded(DRIVERS_CIRCUIT, self.client.count, DRIVER_LOCATIONS_TABLE, params)

    async def recent_assignments(self, city: str, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Most recent assigned bookings for a city, newest first.
        Rows carry created_at / driver_assigned_at / updated_at.
        """
        params = [
            ("select", "created_at,driver_assigned_at,updated_at"),
            ("city", f"eq.{city}"),
            ("driver_id", "not.is.null"),
            ("order", "created_at.desc"),
            ("limit", str(limit)),
        ]
        return await self._guarded(BOOKINGS_CIRCUIT, self.client.select, BOOKINGS_TABLE, params)

    async def push_notifications(self, notifications: List[Dict[str, Any]]) -> None:
        """
        Hands offer notifications to the sink. Fire-and-forget: no ack contract.
        """
        if not notifications:
            return
        await self._guarded(NOTIFICATIONS_CIRCUIT, self.client.insert, NOTIFICATIONS_TABLE, notifications)
        logger.info(f"Pushed {len(notifications)} driver notifications")

    async def push_status_updates(self, updates: List[Dict[str, Any]]) -> None:
        """
        Search progress rows for the requester (status_update / no_driver_available).
        """
        if not updates:
            return
        await self._guarded(NOTIFICATIONS_CIRCUIT, self.client.insert, REQUESTER_NOTIFICATIONS_TABLE, updates)

    async def log_activity(self, entry: Dict[str, Any]) -> None:
        await self._guarded(BOOKINGS_CIRCUIT, self.client.insert, ACTIVITY_LOG_TABLE, [entry])
