import pytest

from datelens.analysis.testing import FakeClock
from datelens.infrastructure.llm import (
    AnalysisCancelledError,
    AuthError,
    CancellationToken,
    CircuitBreaker,
    CircuitState,
    ExponentialBackoff,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
    retry_call,
)


class Counter:
    """Operation that raises scripted errors before returning a value."""

    def __init__(self, errors=(), result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_backoff_delays() -> None:
    policy = ExponentialBackoff(max_attempts=6, base_delay=1.0, max_delay=10.0)
    assert [policy.delay_for(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_retry_ceiling_on_network_errors() -> None:
    clock = FakeClock()
    op = Counter(errors=[NetworkError("down")] * 10)

    with pytest.raises(NetworkError):
        retry_call(op, ExponentialBackoff(max_attempts=3), clock)

    assert op.calls == 3
    assert clock.sleeps == [1.0, 2.0]


def test_no_retry_on_auth_error() -> None:
    clock = FakeClock()
    op = Counter(errors=[AuthError("bad key", 401)])

    with pytest.raises(AuthError):
        retry_call(op, ExponentialBackoff(), clock)

    assert op.calls == 1
    assert clock.sleeps == []


def test_rate_limit_waits_for_retry_after() -> None:
    clock = FakeClock()
    op = Counter(errors=[RateLimitError("slow down", 429, retry_after=2)])

    assert retry_call(op, ExponentialBackoff(), clock) == "ok"
    assert op.calls == 2
    assert clock.sleeps == [2.0]


def test_backoff_wins_over_short_retry_after() -> None:
    clock = FakeClock()
    op = Counter(errors=[NetworkError("down"), RateLimitError("slow down", 429, retry_after=1)])

    assert retry_call(op, ExponentialBackoff(), clock) == "ok"
    assert clock.sleeps == [1.0, 2.0]


def test_unclassified_exception_is_wrapped() -> None:
    op = Counter(errors=[KeyError("boom")])
    with pytest.raises(Exception) as excinfo:
        retry_call(op, ExponentialBackoff(), FakeClock())
    assert excinfo.value.kind.value == "UNKNOWN_ERROR"
    assert op.calls == 1


def test_cancel_before_first_attempt() -> None:
    token = CancellationToken()
    token.cancel()
    op = Counter()

    with pytest.raises(AnalysisCancelledError):
        retry_call(op, ExponentialBackoff(), FakeClock(), token)
    assert op.calls == 0


def test_cancel_during_backoff_stops_retrying() -> None:
    token = CancellationToken()

    class CancellingClock(FakeClock):
        def sleep(self, seconds, cancel=None):
            super().sleep(seconds, cancel)
            token.cancel()

    op = Counter(errors=[NetworkError("down")] * 3)
    with pytest.raises(AnalysisCancelledError):
        retry_call(op, ExponentialBackoff(), CancellingClock(), token)
    assert op.calls == 1


def test_result_discarded_when_cancelled_in_flight() -> None:
    token = CancellationToken()

    def op():
        token.cancel()
        return "late"

    with pytest.raises(AnalysisCancelledError):
        retry_call(op, ExponentialBackoff(), FakeClock(), token)


def _fail():
    raise NetworkError("down")


def _open_breaker(breaker: CircuitBreaker) -> None:
    for _ in range(breaker.failure_threshold):
        with pytest.raises(NetworkError):
            breaker.call(_fail)


def test_breaker_opens_after_threshold() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60.0, clock=clock)
    _open_breaker(breaker)
    assert breaker.state == CircuitState.OPEN

    op = Counter()
    with pytest.raises(ServiceUnavailableError) as excinfo:
        breaker.call(op)
    assert op.calls == 0
    assert excinfo.value.status_code == 503


def test_success_resets_failure_count() -> None:
    breaker = CircuitBreaker(failure_threshold=3, clock=FakeClock())
    for _ in range(2):
        with pytest.raises(NetworkError):
            breaker.call(_fail)
    breaker.call(Counter())
    assert breaker.failure_count == 0
    assert breaker.state == CircuitState.CLOSED


def test_breaker_recovers_through_half_open() -> None:
    clock = FakeClock()
    transitions = []
    breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60.0, success_threshold=2,
                             clock=clock, on_state_change=lambda old, new: transitions.append((old, new)))
    _open_breaker(breaker)

    clock.advance(59.0)
    with pytest.raises(ServiceUnavailableError):
        breaker.call(Counter())

    clock.advance(1.0)
    assert breaker.call(Counter()) == "ok"
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.call(Counter()) == "ok"
    assert breaker.state == CircuitState.CLOSED

    assert transitions == [
        (CircuitState.CLOSED, CircuitState.OPEN),
        (CircuitState.OPEN, CircuitState.HALF_OPEN),
        (CircuitState.HALF_OPEN, CircuitState.CLOSED),
    ]


def test_half_open_failure_reopens() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60.0, clock=clock)
    _open_breaker(breaker)
    clock.advance(60.0)

    with pytest.raises(NetworkError):
        breaker.call(_fail)
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(ServiceUnavailableError):
        breaker.call(Counter())


def test_half_open_admits_one_trial_at_a_time() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10.0, clock=clock)
    with pytest.raises(NetworkError):
        breaker.call(_fail)
    clock.advance(10.0)

    def nested():
        # a second caller arriving while the trial is running
        with pytest.raises(ServiceUnavailableError):
            breaker.call(Counter())
        return "trial"

    assert breaker.call(nested) == "trial"


def test_cancellation_is_not_a_failure() -> None:
    breaker = CircuitBreaker(failure_threshold=1, clock=FakeClock())

    def cancelled():
        raise AnalysisCancelledError("stop")

    with pytest.raises(AnalysisCancelledError):
        breaker.call(cancelled)
    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 0


def test_reset_closes_breaker() -> None:
    breaker = CircuitBreaker(failure_threshold=1, clock=FakeClock())
    with pytest.raises(NetworkError):
        breaker.call(_fail)
    breaker.reset()
    assert breaker.state == CircuitState.CLOSED
    assert breaker.call(Counter()) == "ok"
