"""
Purpose: Domain models for the Orders capability.
What it does:
- Defines the request a dispatch attempt is made for:
- RideRequest (booking id, order type, pickup/destination coords, priority, city, price)

Defines enums/constants:
- OrderType = TAXI | DELIVERY | MARKETPLACE
- delivery type -> vehicle class mapping (flash / flex / maxicharge)

Rule: No HTTP calls, no ranking logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from drivers.models import LatLon, Priority, RankingContext


class OrderType(str, Enum):
    TAXI = "taxi"
    DELIVERY = "delivery"
    MARKETPLACE = "marketplace"


DELIVERY_TO_VEHICLE_CLASS: Dict[str, str] = {
    "flash": "moto",
    "flex": "standard",
    "maxicharge": "truck",
}

DEFAULT_CITY = "Kinshasa"


@dataclass
class RideRequest:
    """
    A ride / delivery booking waiting for a driver.
    """

    booking_id: str
    pickup: LatLon
    user_id: Optional[str] = None  # requester, receives search progress updates
    order_type: OrderType = OrderType.TAXI
    destination: Optional[LatLon] = None
    priority: Priority = Priority.NORMAL
    city: str = DEFAULT_CITY

    vehicle_class: Optional[str] = None
    delivery_type: Optional[str] = None

    #shown to drivers in the offer, not used for ranking
    estimated_price: Optional[float] = None
    trip_distance_km: Optional[float] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not isinstance(self.order_type, OrderType):
            self.order_type = OrderType(self.order_type)
        if not isinstance(self.priority, Priority):
            self.priority = Priority(self.priority)

    def required_vehicle_class(self) -> Optional[str]:
        """
        Deliveries pick the vehicle from the delivery type, everything else
        uses the explicitly requested class (None = any).
        """
        if self.order_type == OrderType.DELIVERY and self.delivery_type:
            return DELIVERY_TO_VEHICLE_CLASS.get(self.delivery_type.lower())
        return self.vehicle_class

    def ranking_context(self, now: Optional[datetime] = None) -> RankingContext:
        now = now or datetime.now(timezone.utc)
        return RankingContext(
            pickup=self.pickup,
            destination=self.destination,
            priority=self.priority,
            time_of_day=now.hour,
        )
