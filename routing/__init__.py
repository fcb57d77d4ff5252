#Marks routing as a package.
#Re-exports the ETA helpers so other modules import from routing without
#knowing internal file names.
#No business logic.

from .eta_service import calculate_eta, haversine_km

__all__ = [
    "calculate_eta",
    "haversine_km",
]
