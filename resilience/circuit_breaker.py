"""
Purpose: Call guard for every outbound call to the data store.
What it does:
Wraps an async call and tracks failures per dependency:

CLOSED     calls pass through, infrastructure failures are counted
OPEN       calls are rejected immediately until the cooldown has elapsed
HALF_OPEN  a few trial calls are let through to check recovery

CLOSED -> OPEN        counted failures reach `failure_threshold`
OPEN -> HALF_OPEN     first call after `timeout_ms` since the last failure
HALF_OPEN -> CLOSED   `half_open_requests` consecutive successes
HALF_OPEN -> OPEN     any counted failure

Only infrastructure failures count: cancellation and HTTP 4xx errors are
passed back to the caller without touching the counters.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]  # milliseconds


def wall_clock_ms() -> float:
    return time.time() * 1000


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(Exception):
    """Raised instead of calling the dependency while the circuit is open."""

    def __init__(self, name: str, retry_in_seconds: int):
        self.name = name
        self.retry_in_seconds = retry_in_seconds
        super().__init__(f"Circuit [{name}] OPEN. Retry in {retry_in_seconds}s")


@dataclass(frozen=True)
class BreakerPolicy:
    """
    Thresholds for one circuit breaker.
    """
    failure_threshold: int = 25
    timeout_ms: int = 15000
    half_open_requests: int = 3

    def validate(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")

        if self.timeout_ms < 0:
            raise ValueError("timeout_ms must be >= 0")

        if self.half_open_requests < 1:
            raise ValueError("half_open_requests must be >= 1")


def default_breaker_policy() -> BreakerPolicy:
    p = BreakerPolicy()
    p.validate()
    return p


def breaker_policy_from_env() -> BreakerPolicy:
    """
    Reads CIRCUIT_FAILURE_THRESHOLD / CIRCUIT_TIMEOUT_MS / CIRCUIT_HALF_OPEN_REQUESTS,
    falling back to the defaults for anything unset.
    """
    defaults = BreakerPolicy()
    p = BreakerPolicy(
        failure_threshold=int(os.getenv("CIRCUIT_FAILURE_THRESHOLD", defaults.failure_threshold)),
        timeout_ms=int(os.getenv("CIRCUIT_TIMEOUT_MS", defaults.timeout_ms)),
        half_open_requests=int(os.getenv("CIRCUIT_HALF_OPEN_REQUESTS", defaults.half_open_requests)),
    )
    p.validate()
    return p


def http_status_of(error: BaseException) -> Optional[int]:
    """
    Pulls an HTTP status out of our own errors (`status_code`) or a requests
    HTTPError (`response.status_code`).
    """
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_counted_failure(error: BaseException) -> bool:
    """
    Whether an error should degrade the circuit.
    """
    if isinstance(error, asyncio.CancelledError):
        return False

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, requests.Timeout)):
        return True

    status = http_status_of(error)
    if status is not None and 400 <= status < 500:
        # client errors mean the dependency is up and answering
        return False

    return True


class CircuitBreaker:
    """
    Per-dependency circuit breaker. Create through CircuitBreakerRegistry so
    each dependency name has exactly one instance per process.
    """

    def __init__(self, name: str, policy: Optional[BreakerPolicy] = None, clock: Clock = wall_clock_ms):
        self.name = name
        self.policy = policy or default_breaker_policy()
        self.policy.validate()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._half_open_in_flight = 0
        self._half_open_round = 0
        self._last_failure_at: Optional[float] = None

    # --- Public API ---

    def get_state(self) -> CircuitState:
        return self._state

    @property
    def state(self) -> CircuitState:
        return self._state

    def stats(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failures": self._failure_count,
            "successes": self._success_count,
            "last_failure_at": self._last_failure_at,
        }

    def reset(self) -> None:
        """
        Back to a fresh CLOSED breaker.
        """
        if self._state != CircuitState.CLOSED:
            logger.info(f"Circuit [{self.name}] {self._state.value} -> CLOSED (reset)")
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._half_open_in_flight = 0
        self._last_failure_at = None

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run `fn()` under the breaker.

        Raises:
            CircuitOpenError: the circuit is open and still cooling down, or
                all half-open trial slots are taken.
            Whatever `fn` raises, after the outcome has been recorded.
        """
        trial = self._before_call()

        try:
            result = await fn()
        except asyncio.CancelledError:
            self._release_trial_slot(trial)
            raise
        except Exception as error:
            self._release_trial_slot(trial)
            if is_counted_failure(error):
                self._on_failure(error)
            else:
                logger.debug(f"Circuit [{self.name}] ignoring expected error: {error!r}")
            raise

        self._release_trial_slot(trial)
        self._on_success()
        return result

    # --- Transition helpers ---

    def _before_call(self) -> Optional[int]:
        """
        Raises CircuitOpenError or lets the call through. Returns the half-open
        round the call took a trial slot in, None when it took no slot.
        """
        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - (self._last_failure_at or 0)
            remaining = self.policy.timeout_ms - elapsed
            if remaining > 0:
                raise CircuitOpenError(self.name, math.ceil(remaining / 1000))
            self._transition(CircuitState.HALF_OPEN)

        if self._state == CircuitState.HALF_OPEN:
            if self._half_open_in_flight >= self.policy.half_open_requests:
                raise CircuitOpenError(self.name, 0)
            self._half_open_in_flight += 1
            return self._half_open_round

        return None

    def _release_trial_slot(self, trial: Optional[int]) -> None:
        # only slots of the current half-open round are still counted
        if trial is not None and trial == self._half_open_round and self._half_open_in_flight > 0:
            self._half_open_in_flight -= 1

    def _on_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.policy.half_open_requests:
                self._transition(CircuitState.CLOSED)
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def _on_failure(self, error: BaseException) -> None:
        self._last_failure_at = self._clock()
        self._failure_count += 1
        logger.warning(
            f"Circuit [{self.name}] failure {self._failure_count}/{self.policy.failure_threshold}: {error!r}"
        )

        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.policy.failure_threshold:
            self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._success_count = 0

        if new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._half_open_in_flight = 0
            logger.info(f"Circuit [{self.name}] {old_state.value} -> CLOSED")
        elif new_state == CircuitState.OPEN:
            self._half_open_in_flight = 0
            logger.error(
                f"Circuit [{self.name}] {old_state.value} -> OPEN, cooling down for {self.policy.timeout_ms}ms"
            )
        else:
            self._half_open_round += 1
            self._half_open_in_flight = 0
            logger.info(f"Circuit [{self.name}] {old_state.value} -> HALF_OPEN, checking recovery")
