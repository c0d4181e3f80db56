"""Retry-with-backoff and circuit-breaker primitives wrapped around every external call."""
from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Optional, TypeVar

from ..domain.errors import CircuitOpenError, ErrorKind, error_code
from .logging import get_logger

logger = get_logger("document_qa.resilience")

T = TypeVar("T")

DEFAULT_RETRYABLE: FrozenSet[str] = frozenset(
    {
        ErrorKind.RATE_LIMITED.value,
        ErrorKind.NETWORK_ERROR.value,
        ErrorKind.TIMEOUT_ERROR.value,
        ErrorKind.TEMPORARY_FAILURE.value,
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and exponential backoff schedule.

    Fields:
        max_attempts: Total attempts including the first one.
        base_delay: Delay in seconds before the second attempt.
        max_delay: Upper bound for any single delay.
        multiplier: Growth factor applied per attempt.
        jitter: Relative jitter; a delay ``d`` becomes ``d * uniform(1-jitter, 1+jitter)``.
        retryable: Error kinds worth another attempt; anything else is re-raised at once.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.15
    retryable: FrozenSet[str] = field(default_factory=lambda: DEFAULT_RETRYABLE)

    def delay_for(self, attempt: int) -> float:
        """Un-jittered delay after the failed ``attempt`` (1-based)."""
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))

    def with_retryable(self, *kinds: ErrorKind | str) -> "RetryPolicy":
        extra = {k.value if isinstance(k, ErrorKind) else str(k) for k in kinds}
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            multiplier=self.multiplier,
            jitter=self.jitter,
            retryable=frozenset(self.retryable | extra),
        )


DEFAULT_RETRY_POLICY = RetryPolicy()


def with_retry(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    rand: Callable[[], float] = random.random,
    label: str = "operation",
) -> T:
    """Run ``operation`` and retry retryable failures with jittered exponential backoff.

    Args:
        operation: Zero-argument callable performing one attempt.
        policy: Retry budget; defaults to 3 attempts, 1s base, 10s cap, x2.
        sleep: Pause function, injectable for tests.
        rand: Uniform [0, 1) source used for jitter.
        label: Name used in log lines.

    Returns:
        The first successful result.

    Raises:
        Exception: The last failure, unchanged, once it is not retryable or the
            attempt budget is spent. No pause follows the final attempt.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    attempts = max(1, int(policy.max_attempts))
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as exc:
            code = error_code(exc)
            if code not in policy.retryable:
                raise
            if attempt >= attempts:
                logger.warning("Retry exhausted | op=%s | attempts=%d | code=%s", label, attempts, code)
                raise
            factor = 1.0 + policy.jitter * (2.0 * rand() - 1.0)
            delay = max(0.0, policy.delay_for(attempt) * factor)
            logger.warning(
                "Retry scheduled | op=%s | attempt=%d/%d | code=%s | delay=%.3fs",
                label,
                attempt,
                attempts,
                code,
                delay,
            )
            sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover


class CircuitState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """Stops calling a failing dependency for ``recovery_timeout`` seconds after repeated failures.

    One instance guards one external dependency and is shared by every caller
    of it; state transitions happen under a lock, the protected call does not.
    """

    def __init__(
        self,
        name: str = "dependency",
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = max(1, int(failure_threshold))
        self.recovery_timeout = float(recovery_timeout)
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure: Optional[float] = None
        self._next_attempt: Optional[float] = None

    @property
    def state(self) -> str:
        with self._lock:
            self._refresh()
            return self._state

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            self._refresh()
            return {
                "name": self.name,
                "status": self._state,
                "failures": self._failures,
                "last_failure": self._last_failure,
                "next_attempt": self._next_attempt,
            }

    def call(self, fn: Callable[[], T]) -> T:
        """Invoke ``fn`` unless the circuit is open.

        Raises:
            CircuitOpenError: While open and the recovery timeout has not elapsed.
        """
        with self._lock:
            self._refresh()
            if self._state == CircuitState.OPEN:
                raise CircuitOpenError(
                    f"Circuit '{self.name}' is open, too many failures",
                    details={"dependency": self.name, "next_attempt": self._next_attempt},
                )
        try:
            result = fn()
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self._close()

    # Callers hold the lock for the helpers below.

    def _refresh(self) -> None:
        if (
            self._state == CircuitState.OPEN
            and self._next_attempt is not None
            and self._clock() >= self._next_attempt
        ):
            self._state = CircuitState.HALF_OPEN
            logger.info("Circuit half-open | dependency=%s", self.name)

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure = None
        self._next_attempt = None

    def _on_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("Circuit closed | dependency=%s", self.name)
                self._close()
            elif self._state == CircuitState.CLOSED:
                self._failures = 0

    def _on_failure(self) -> None:
        with self._lock:
            now = self._clock()
            self._failures += 1
            self._last_failure = now
            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED and self._failures >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                self._next_attempt = now + self.recovery_timeout
                logger.warning(
                    "Circuit opened | dependency=%s | failures=%d | retry_in=%.1fs",
                    self.name,
                    self._failures,
                    self.recovery_timeout,
                )


def guarded_call(
    fn: Callable[[], T],
    policy: Optional[RetryPolicy],
    breaker: Optional[CircuitBreaker],
    *,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "operation",
) -> T:
    """Retry ``fn`` per ``policy`` with every attempt passing through ``breaker``.

    ``CIRCUIT_OPEN`` is not in any default retryable set, so an open breaker
    fails the whole call immediately.
    """
    attempt: Callable[[], T] = (lambda: breaker.call(fn)) if breaker is not None else fn
    return with_retry(attempt, policy, sleep=sleep, label=label)
