"""
Purpose: Package entry + stable exports.
What it does:

Marks orders as a Python package and re-exports the public API so other
modules can do:

from orders import RideRequest, OrderType

Should not contain business logic.
"""
from .models import RideRequest, OrderType, DELIVERY_TO_VEHICLE_CLASS

__all__ = [
    "RideRequest",
    "OrderType",
    "DELIVERY_TO_VEHICLE_CLASS",
]
