#Marks resilience as a package.
#Re-exports the circuit breaker API so callers don't need the internal file names.

from .circuit_breaker import (
    BreakerPolicy,
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    breaker_policy_from_env,
    default_breaker_policy,
    is_counted_failure,
)
from .registry import CircuitBreakerRegistry

__all__ = [
    "BreakerPolicy",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "CircuitState",
    "breaker_policy_from_env",
    "default_breaker_policy",
    "is_counted_failure",
]
