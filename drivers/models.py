"""
Purpose: Core data models for the drivers domain.
What it does:
Defines the candidate a geo-query hands us, the context a dispatch attempt is
ranked in, and the ranked output consumed by the wave builder.
No database or HTTP types leak in here.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

import pandas as pd

LatLon = Tuple[float, float]


class Priority(str, Enum):
    """
    How urgently the requester wants a driver.
    """
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(frozen=True)
class DriverCandidate:
    """
    A nearby driver as returned by the nearby-driver query.
    Optional stats are None when the data store has nothing for the driver.
    """
    driver_id: str
    distance_km: float

    rating_average: Optional[float] = None
    total_rides: Optional[int] = None
    acceptance_rate: Optional[float] = None  # 0..1
    avg_pickup_time: Optional[float] = None  # minutes
    last_active: Optional[datetime] = None
    vehicle_class: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> DriverCandidate:
        """
        Build a candidate from a raw data-store row.
        Accepts `last_ping` as an alias for `last_active`.
        """
        try:
            last_active = parse_timestamp(record.get("last_active") or record.get("last_ping"))
        except ValueError:
            last_active = None  # unreadable ping, treat as never seen

        return cls(
            driver_id=str(record["driver_id"]),
            distance_km=float(record["distance_km"]),
            rating_average=_optional_float(record.get("rating_average")),
            total_rides=_optional_int(record.get("total_rides")),
            acceptance_rate=_optional_float(record.get("acceptance_rate")),
            avg_pickup_time=_optional_float(record.get("avg_pickup_time")),
            last_active=last_active,
            vehicle_class=record.get("vehicle_class"),
        )


@dataclass(frozen=True)
class CandidateDefaults:
    """
    Values the ranking layer assumes for stats a candidate is missing.
    """
    rating_average: float = 3.5
    total_rides: int = 0
    acceptance_rate: float = 0.7
    avg_pickup_time: float = 10.0


def apply_defaults(candidate: DriverCandidate, defaults: Optional[CandidateDefaults] = None) -> DriverCandidate:
    """
    Returns a copy of the candidate with every missing stat filled in.
    """
    defaults = defaults or CandidateDefaults()
    return replace(
        candidate,
        rating_average=defaults.rating_average if candidate.rating_average is None else candidate.rating_average,
        total_rides=defaults.total_rides if candidate.total_rides is None else candidate.total_rides,
        acceptance_rate=defaults.acceptance_rate if candidate.acceptance_rate is None else candidate.acceptance_rate,
        avg_pickup_time=defaults.avg_pickup_time if candidate.avg_pickup_time is None else candidate.avg_pickup_time,
    )


@dataclass(frozen=True)
class RankingContext:
    """
    Per-dispatch context supplied by whoever initiated the request.
    """
    pickup: LatLon
    priority: Priority = Priority.NORMAL
    time_of_day: int = 12  # hour, 0..23
    destination: Optional[LatLon] = None

    def __post_init__(self):
        if not 0 <= self.time_of_day <= 23:
            raise ValueError(f"time_of_day must be within 0..23, got {self.time_of_day}")
        if isinstance(self.priority, str) and not isinstance(self.priority, Priority):
            object.__setattr__(self, "priority", Priority(self.priority))


@dataclass(frozen=True)
class RankedDriver:
    """
    A candidate after scoring. `rank` is 1-based and dense.
    """
    candidate: DriverCandidate
    predicted_score: int
    estimated_arrival: int  # minutes
    rank: int

    @property
    def driver_id(self) -> str:
        return self.candidate.driver_id

    @property
    def distance_km(self) -> float:
        return self.candidate.distance_km


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Timestamp from a data-store value (ISO string or datetime) as an aware UTC
    datetime. Naive values are taken to be UTC.

    Raises:
        ValueError: the value is not a readable timestamp.
    """
    if value is None:
        return None

    try:
        parsed = pd.to_datetime(value, utc=True)
    except (TypeError, OverflowError) as error:
        raise ValueError(f"unreadable timestamp {value!r}") from error

    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()
