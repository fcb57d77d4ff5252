import asyncio

import pytest
import requests

from datastore.client import DataStoreError
from resilience import (
    BreakerPolicy,
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitOpenError,
    CircuitState,
    breaker_policy_from_env,
    is_counted_failure,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("db", BreakerPolicy(failure_threshold=3, timeout_ms=15000, half_open_requests=3), clock=clock)


async def ok():
    return "ok"


def failing(error):
    async def call():
        raise error
    return call


def run(breaker, fn):
    return asyncio.run(breaker.execute(fn))


def fail_times(breaker, error, times):
    for _ in range(times):
        with pytest.raises(type(error)):
            run(breaker, failing(error))


def test_opens_after_threshold_server_errors(breaker):
    fail_times(breaker, DataStoreError("unavailable", status_code=500), 2)
    assert breaker.get_state() == CircuitState.CLOSED

    fail_times(breaker, DataStoreError("unavailable", status_code=500), 1)
    assert breaker.get_state() == CircuitState.OPEN


def test_client_errors_do_not_count(breaker):
    fail_times(breaker, DataStoreError("unauthorized", status_code=401), 10)
    fail_times(breaker, DataStoreError("not found", status_code=404), 10)
    fail_times(breaker, DataStoreError("bad request", status_code=400), 10)

    assert breaker.get_state() == CircuitState.CLOSED
    assert breaker.stats()["failures"] == 0


def test_cancellation_does_not_count(breaker):
    async def scenario():
        for _ in range(5):
            with pytest.raises(asyncio.CancelledError):
                await breaker.execute(failing(asyncio.CancelledError()))

    asyncio.run(scenario())

    assert breaker.get_state() == CircuitState.CLOSED
    assert breaker.stats()["failures"] == 0


def test_timeouts_count(breaker):
    fail_times(breaker, requests.Timeout("read timed out"), 2)
    fail_times(breaker, asyncio.TimeoutError(), 1)

    assert breaker.get_state() == CircuitState.OPEN


def test_success_resets_failure_count(breaker):
    fail_times(breaker, DataStoreError("unavailable", status_code=502), 2)
    assert run(breaker, ok) == "ok"
    fail_times(breaker, DataStoreError("unavailable", status_code=502), 2)

    assert breaker.get_state() == CircuitState.CLOSED


def test_open_circuit_rejects_without_calling(breaker, clock):
    fail_times(breaker, DataStoreError("unavailable", status_code=500), 3)
    calls = []

    async def tracked():
        calls.append(1)
        return "ok"

    with pytest.raises(CircuitOpenError) as excinfo:
        run(breaker, tracked)
    assert str(excinfo.value) == "Circuit [db] OPEN. Retry in 15s"

    clock.advance(10_500)
    with pytest.raises(CircuitOpenError) as excinfo:
        run(breaker, tracked)
    assert excinfo.value.retry_in_seconds == 5

    assert calls == []


def test_recovers_through_half_open(breaker, clock):
    fail_times(breaker, DataStoreError("unavailable", status_code=500), 3)
    clock.advance(15_000)

    assert run(breaker, ok) == "ok"
    assert breaker.get_state() == CircuitState.HALF_OPEN

    run(breaker, ok)
    assert breaker.get_state() == CircuitState.HALF_OPEN

    run(breaker, ok)
    assert breaker.get_state() == CircuitState.CLOSED


def test_half_open_failure_reopens(breaker, clock):
    fail_times(breaker, DataStoreError("unavailable", status_code=500), 3)
    clock.advance(15_001)

    run(breaker, ok)
    fail_times(breaker, DataStoreError("still down", status_code=503), 1)

    assert breaker.get_state() == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        run(breaker, ok)


def test_half_open_limits_trial_calls(breaker, clock):
    fail_times(breaker, DataStoreError("unavailable", status_code=500), 3)
    clock.advance(20_000)

    async def scenario():
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "ok"

        trials = [asyncio.create_task(breaker.execute(slow)) for _ in range(3)]
        await asyncio.sleep(0)

        # all three trial slots are taken
        with pytest.raises(CircuitOpenError):
            await breaker.execute(ok)

        gate.set()
        return await asyncio.gather(*trials)

    assert asyncio.run(scenario()) == ["ok", "ok", "ok"]
    assert breaker.get_state() == CircuitState.CLOSED


def test_reset(breaker):
    fail_times(breaker, DataStoreError("unavailable", status_code=500), 3)

    breaker.reset()

    assert breaker.get_state() == CircuitState.CLOSED
    assert run(breaker, ok) == "ok"


def test_default_policy():
    policy = BreakerPolicy()

    assert policy.failure_threshold == 25
    assert policy.timeout_ms == 15000
    assert policy.half_open_requests == 3


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("CIRCUIT_FAILURE_THRESHOLD", "5")
    monkeypatch.setenv("CIRCUIT_TIMEOUT_MS", "2000")
    monkeypatch.delenv("CIRCUIT_HALF_OPEN_REQUESTS", raising=False)

    policy = breaker_policy_from_env()

    assert policy == BreakerPolicy(failure_threshold=5, timeout_ms=2000, half_open_requests=3)


def test_invalid_policy_rejected():
    with pytest.raises(ValueError):
        CircuitBreaker("db", BreakerPolicy(failure_threshold=0))


def test_failure_classification():
    response = requests.Response()
    response.status_code = 404

    assert not is_counted_failure(requests.HTTPError(response=response))
    assert not is_counted_failure(asyncio.CancelledError())
    assert is_counted_failure(DataStoreError("x", status_code=500))
    assert is_counted_failure(requests.ConnectionError("refused"))
    assert is_counted_failure(TimeoutError())


def test_registry_returns_one_breaker_per_name(clock):
    registry = CircuitBreakerRegistry(BreakerPolicy(failure_threshold=2), clock=clock)

    drivers = registry.get("drivers")

    assert registry.get("drivers") is drivers
    assert registry.get("notifications") is not drivers
    assert drivers.policy.failure_threshold == 2
    assert "drivers" in registry

    fail_times(drivers, DataStoreError("down", status_code=500), 2)
    assert drivers.get_state() == CircuitState.OPEN
    assert registry.get("notifications").get_state() == CircuitState.CLOSED

    registry.reset_all()
    assert drivers.get_state() == CircuitState.CLOSED


def test_call_started_while_closed_does_not_free_a_trial_slot(breaker, clock):
    async def scenario():
        before_open = asyncio.Event()
        trials_gate = asyncio.Event()

        async def slow(gate):
            await gate.wait()
            return "ok"

        in_flight = asyncio.create_task(breaker.execute(lambda: slow(before_open)))
        await asyncio.sleep(0)

        for _ in range(3):
            with pytest.raises(DataStoreError):
                await breaker.execute(failing(DataStoreError("unavailable", status_code=500)))
        assert breaker.get_state() == CircuitState.OPEN

        clock.advance(15_000)
        trials = [asyncio.create_task(breaker.execute(lambda: slow(trials_gate))) for _ in range(3)]
        await asyncio.sleep(0)
        assert breaker.get_state() == CircuitState.HALF_OPEN

        # the call from before the circuit opened finishes during the half-open round
        before_open.set()
        assert await in_flight == "ok"

        with pytest.raises(CircuitOpenError):
            await breaker.execute(ok)

        trials_gate.set()
        return await asyncio.gather(*trials)

    assert asyncio.run(scenario()) == ["ok", "ok", "ok"]
    assert breaker.get_state() == CircuitState.CLOSED
