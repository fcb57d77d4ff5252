#Purpose: ETA estimation policy.
#Converts a straight-line distance into the "arrives in X min" number shown to
#riders and attached to every ranked driver.
#Also hosts the great-circle distance helper used when drivers come with
#coordinates instead of a precomputed distance (the offline simulation).

from __future__ import annotations

import math
from typing import Tuple

LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0

# fixed driver reaction time (minutes) added on top of pure travel time
REACTION_TIME_MINUTES = 1.5

DEFAULT_AVG_SPEED_KMH = 30.0


def calculate_eta(distance_km: float, avg_speed_kmh: float = DEFAULT_AVG_SPEED_KMH) -> int:
    """
    Minutes for a driver `distance_km` away to reach the pickup.

    eta = ceil(distance / speed * 60 + 1.5)

    Raises:
        ValueError: speed is zero/negative or the distance is negative.
    """
    if avg_speed_kmh <= 0:
        raise ValueError(f"avg_speed_kmh must be > 0, got {avg_speed_kmh}")
    if distance_km < 0:
        raise ValueError(f"distance_km must be >= 0, got {distance_km}")

    return math.ceil(distance_km / avg_speed_kmh * 60 + REACTION_TIME_MINUTES)


def haversine_km(origin: LatLon, destination: LatLon) -> float:
    """Great-circle distance between two (lat, lon) points in km"""
    lat1, lon1 = origin
    lat2, lon2 = destination

    lat1_rad, lat2_rad = math.radians(lat1), math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
