"""
Retry and circuit-breaker primitives for provider calls.
"""
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, Protocol, TypeVar

from .errors import (
    AnalysisAPIError,
    AnalysisCancelledError,
    ServiceUnavailableError,
    classify_exception,
)
from ...config import (
    RETRY_MAX_ATTEMPTS, RETRY_BASE_DELAY, RETRY_MAX_DELAY,
    CIRCUIT_FAILURE_THRESHOLD, CIRCUIT_RECOVERY_TIMEOUT, CIRCUIT_SUCCESS_THRESHOLD,
)

logger = logging.getLogger("resilience")

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a running analysis."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if cancelled meanwhile."""
        return self._event.wait(max(0.0, seconds))

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelledError("Analysis was cancelled by the caller")


class Clock(Protocol):
    """Time source used by retry and circuit-breaker logic."""

    def monotonic(self) -> float: ...

    def sleep(self, seconds: float, cancel: Optional[CancellationToken] = None) -> None: ...


class SystemClock:
    """Wall-clock implementation backed by `time.monotonic`."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: Optional[CancellationToken] = None) -> None:
        if cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(max(0.0, seconds))


class ExponentialBackoff:
    """Retry policy: delay for attempt n is min(base * 2^n, max_delay)."""

    def __init__(self,
                 max_attempts: int = RETRY_MAX_ATTEMPTS,
                 base_delay: float = RETRY_BASE_DELAY,
                 max_delay: float = RETRY_MAX_DELAY):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def should_retry(self, error: AnalysisAPIError, attempt: int) -> bool:
        """Whether another attempt may follow the zero-based `attempt` that failed."""
        if attempt + 1 >= self.max_attempts:
            return False
        return error.retryable


def retry_call(operation: Callable[[], T],
               policy: ExponentialBackoff,
               clock: Clock,
               cancel: Optional[CancellationToken] = None,
               label: str = "request") -> T:
    """
    Run `operation` with exponential backoff.

    Cancellation is checked before each attempt, during backoff and after
    each attempt. An attempt already running is only interrupted if
    `operation` watches the token itself, as `OpenAIRestClient` does.

    Args:
        operation: Zero-argument callable performing one attempt
        policy: Retry policy
        clock: Time source used for backoff sleeps
        cancel: Optional cancellation token
        label: Name used in log lines

    Returns:
        Result of the first successful attempt

    Raises:
        AnalysisAPIError: The classified error of the last attempt, or
            AnalysisCancelledError if cancelled at any point
    """
    attempt = 0
    while True:
        if cancel is not None:
            cancel.raise_if_cancelled()

        try:
            result = operation()
        except Exception as e:
            error = classify_exception(e)
            if cancel is not None and cancel.cancelled:
                raise AnalysisCancelledError("Analysis was cancelled by the caller") from e
            if not policy.should_retry(error, attempt):
                if error.retryable:
                    logger.warning("%s failed after %d attempt(s): %r", label, attempt + 1, error)
                else:
                    logger.warning("%s failed with non-retryable error: %r", label, error)
                if error is e:
                    raise
                raise error from e

            delay = policy.delay_for(attempt)
            if error.retry_after is not None:
                delay = max(delay, float(error.retry_after))
            logger.info("%s attempt %d/%d failed (%s), retrying in %.2fs",
                        label, attempt + 1, policy.max_attempts, error.kind.value, delay)
            clock.sleep(delay, cancel)
            attempt += 1
            continue

        if cancel is not None and cancel.cancelled:
            raise AnalysisCancelledError("Analysis was cancelled by the caller")
        return result


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


StateChangeHandler = Callable[[CircuitState, CircuitState], None]


class CircuitBreaker:
    """
    Stops calling a failing provider for a cooldown period.

    CLOSED -> OPEN after `failure_threshold` consecutive failures.
    OPEN -> HALF_OPEN once `recovery_timeout` seconds passed since the last failure.
    HALF_OPEN -> CLOSED after `success_threshold` consecutive successes.
    HALF_OPEN -> OPEN on any failure.
    """

    def __init__(self,
                 failure_threshold: int = CIRCUIT_FAILURE_THRESHOLD,
                 recovery_timeout: float = CIRCUIT_RECOVERY_TIMEOUT,
                 success_threshold: int = CIRCUIT_SUCCESS_THRESHOLD,
                 clock: Optional[Clock] = None,
                 on_state_change: Optional[StateChangeHandler] = None):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self.clock = clock or SystemClock()
        self.on_state_change = on_state_change

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def call(self, operation: Callable[[], T]) -> T:
        """Run `operation` through the breaker."""
        self._before_call()
        try:
            result = operation()
        except AnalysisCancelledError:
            self._release_trial()
            raise
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        with self._lock:
            old = self._state
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._trial_in_flight = False
        self._notify(old, CircuitState.CLOSED)

    def _before_call(self) -> None:
        transition = None
        with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = self.clock.monotonic() - self._last_failure_time
                if elapsed < self.recovery_timeout:
                    raise ServiceUnavailableError(
                        "Circuit breaker is OPEN. Service temporarily unavailable.", 503)
                transition = (self._state, CircuitState.HALF_OPEN)
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0

            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise ServiceUnavailableError(
                        "Circuit breaker is HALF_OPEN and a trial call is already running.", 503)
                self._trial_in_flight = True
        if transition:
            self._notify(*transition)

    def _release_trial(self) -> None:
        with self._lock:
            self._trial_in_flight = False

    def _on_success(self) -> None:
        transition = None
        with self._lock:
            self._failure_count = 0
            self._trial_in_flight = False
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    transition = (self._state, CircuitState.CLOSED)
                    self._state = CircuitState.CLOSED
                    self._success_count = 0
        if transition:
            self._notify(*transition)

    def _on_failure(self) -> None:
        transition = None
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self.clock.monotonic()
            self._trial_in_flight = False
            if self._state == CircuitState.HALF_OPEN:
                transition = (self._state, CircuitState.OPEN)
                self._state = CircuitState.OPEN
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                transition = (self._state, CircuitState.OPEN)
                self._state = CircuitState.OPEN
        if transition:
            self._notify(*transition)

    def _notify(self, old: CircuitState, new: CircuitState) -> None:
        if old == new:
            return
        log = logger.warning if new == CircuitState.OPEN else logger.info
        log("Circuit breaker %s -> %s", old.value, new.value)
        if self.on_state_change is not None:
            try:
                self.on_state_change(old, new)
            except Exception as e:
                logger.error("Circuit state change handler failed: %s", e)
