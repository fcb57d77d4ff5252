"""
Drivers domain package.

Public API:
- Domain models: DriverCandidate, RankedDriver, RankingContext, Priority
- Policy: DriverPolicy, default_driver_policy
"""
from .models import CandidateDefaults, DriverCandidate, Priority, RankedDriver, RankingContext, apply_defaults
from .policy import DriverPolicy, default_driver_policy

__all__ = [
    "CandidateDefaults",
    "DriverCandidate",
    "Priority",
    "RankedDriver",
    "RankingContext",
    "apply_defaults",
    "DriverPolicy",
    "default_driver_policy",
]
