"""
Purpose: One circuit breaker per named dependency.
What it does:
Creates breakers lazily on first use and hands back the same instance for the
same name afterwards. Build one registry at process start and inject it into
the gateway so tests can use their own.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional

from .circuit_breaker import BreakerPolicy, CircuitBreaker, Clock, default_breaker_policy, wall_clock_ms


class CircuitBreakerRegistry:

    def __init__(self, policy: Optional[BreakerPolicy] = None, clock: Clock = wall_clock_ms):
        self.policy = policy or default_breaker_policy()
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, name: str, policy: Optional[BreakerPolicy] = None) -> CircuitBreaker:
        """
        The breaker for `name`, created with `policy` (or the registry default)
        the first time it is asked for. Later policies are ignored.
        """
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, policy or self.policy, clock=self._clock)
            self._breakers[name] = breaker
        return breaker

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()

    def __contains__(self, name: str) -> bool:
        return name in self._breakers

    def __iter__(self) -> Iterator[CircuitBreaker]:
        return iter(self._breakers.values())
