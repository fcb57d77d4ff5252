"""
Purpose: Central configuration for driver qualification, ranking and dispatch waves.
What it does:

Stores all tunable thresholds/weights for choosing and notifying drivers:

MIN_RATING = 3.0, MAX_DISTANCE_KM = 10, MIN_ACCEPTANCE_RATE = 0.5
RANKING WEIGHTS = distance 0.40 / rating 0.25 / experience 0.15 / acceptance 0.10 / pickup 0.10
WAVE_SIZES = [3, 3, rest], WAVE_EXPIRY_SECONDS = [30, 90, 180]

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Tuple

from .models import CandidateDefaults, Priority


@dataclass(frozen=True)
class DriverPolicy:
    """
    Central configuration for driver filtering, ranking and dispatch thresholds.
    """

    # --- Candidate filter ---
    # Hard gates a nearby driver must pass before being ranked.
    min_rating: float = 3.0
    max_distance_km: float = 10.0
    min_acceptance_rate: float = 0.5

    # --- Ranking ---
    base_score: float = 100.0
    distance_weight: float = 0.40
    rating_weight: float = 0.25
    experience_weight: float = 0.15
    acceptance_weight: float = 0.10
    pickup_speed_weight: float = 0.10

    # Distance term loses this many points per km.
    distance_penalty_per_km: float = 10.0
    # Rides needed for a full experience term.
    experience_full_rides: int = 100
    # Pickup-speed term loses this many points per minute of average pickup.
    pickup_penalty_per_minute: float = 5.0

    # Bonus for top-rated drivers on high priority requests.
    priority_bonus: float = 20.0
    priority_bonus_min_rating: float = 4.5
    priority_bonus_levels: FrozenSet[Priority] = frozenset({Priority.HIGH, Priority.URGENT})

    # Bonus for very close drivers during rush hour.
    rush_hour_bonus: float = 15.0
    rush_hour_max_distance_km: float = 2.0
    rush_hours: FrozenSet[int] = frozenset({7, 8, 9, 17, 18, 19})

    candidate_defaults: CandidateDefaults = field(default_factory=CandidateDefaults)

    # --- ETA ---
    avg_speed_kmh: float = 30.0

    # --- Dispatch waves ---
    # Wave N gets `wave_sizes[N]` drivers; the last wave takes whatever is left.
    wave_sizes: Tuple[int, int] = (3, 3)
    wave_expiry_seconds: Tuple[int, int, int] = (30, 90, 180)

    # --- Progressive search radii (km) ---
    search_radii_km: Dict[Priority, List[float]] = field(default_factory=lambda: {
        Priority.URGENT: [5, 10, 15, 25, 50],
        Priority.HIGH: [5, 10, 20, 35],
        Priority.NORMAL: [5, 10, 15, 25],
        Priority.LOW: [5, 10, 15, 25],
    })

    def radii_for(self, priority: Priority) -> List[float]:
        return self.search_radii_km.get(priority, self.search_radii_km[Priority.NORMAL])

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.max_distance_km <= 0:
            raise ValueError("max_distance_km must be > 0")

        if not 0 <= self.min_acceptance_rate <= 1:
            raise ValueError("min_acceptance_rate must be within 0..1")

        weights = (
            self.distance_weight,
            self.rating_weight,
            self.experience_weight,
            self.acceptance_weight,
            self.pickup_speed_weight,
        )
        if any(weight < 0 for weight in weights):
            raise ValueError("ranking weights must be >= 0")

        if self.experience_full_rides <= 0:
            raise ValueError("experience_full_rides must be > 0")

        if self.avg_speed_kmh <= 0:
            raise ValueError("avg_speed_kmh must be > 0")

        if len(self.wave_sizes) != 2 or any(size <= 0 for size in self.wave_sizes):
            raise ValueError("Must provide 2 positive wave sizes (the 3rd wave takes the remainder).")

        if len(self.wave_expiry_seconds) != 3:
            raise ValueError("Must provide exactly 3 wave expiry offsets.")

        expiries = list(self.wave_expiry_seconds)
        if expiries[0] <= 0 or any(later <= earlier for earlier, later in zip(expiries, expiries[1:])):
            raise ValueError("wave expiry offsets must be positive and strictly increasing")

        if Priority.NORMAL not in self.search_radii_km:
            raise ValueError("search_radii_km needs an entry for the normal priority")

        for priority, radii in self.search_radii_km.items():
            if not radii or any(radius <= 0 for radius in radii):
                raise ValueError(f"search radii for {priority.value} must be positive")


def default_driver_policy() -> DriverPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DriverPolicy()
    p.validate()
    return p
