#Expose the high-level pipeline pieces:
#Candidate filtering (hard rules)
#Scoring / ranking
#Wait time estimation
#Search progress for the requester
#Dispatcher orchestrator (the "one call" entry point)

from .candidate_filter import filter_qualified_drivers
from .scoring import rank_drivers, select_best_driver
from .wait_time import WaitTimeEstimate, WaitTimeEstimator
from .progress import SearchAttempt
from .dispatcher import Dispatcher, DispatchResult #the main class to call to dispatch a request to drivers

__all__ = [
    "filter_qualified_drivers",
    "rank_drivers",
    "select_best_driver",
    "WaitTimeEstimate",
    "WaitTimeEstimator",
    "Dispatcher",
    "DispatchResult",
    "SearchAttempt",
]
