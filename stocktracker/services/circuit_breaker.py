# stocktracker/services/circuit_breaker.py
"""
Per-ticker failure suppression.

A failed price fetch opens the breaker for that ticker. While it is open
the provider is skipped for that ticker and callers fall back to the last
known price. Once the suppression window has passed, the next lookup is
let through as a trial call: success closes the breaker, failure opens a fresh
window.

    CLOSED --failure--> OPEN --window elapsed--> HALF_OPEN
    HALF_OPEN --success--> CLOSED
    HALF_OPEN --failure--> OPEN

Time comes from an injected clock returning seconds, so tests step it by
hand. Breakers are only touched from the event loop and hold no lock.

Usage:
    registry = CircuitBreakerRegistry(recovery_timeout=300)

    try:
        with registry.get("BP.L"):
            quote = await provider.get_quote("BP.L")
    except CircuitBreakerOpen:
        ...  # serve the last known price
"""

import logging
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised on entry while a breaker is suppressing calls."""

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"{breaker_name} is suppressed for another {time_remaining:.0f}s"
        )


class CircuitBreaker:
    """
    Suppression state for one ticker.

    Args:
        name: Label used in logs and in CircuitBreakerOpen
        failure_threshold: Consecutive failures that open the breaker
        recovery_timeout: Seconds an open breaker stays open
        clock: Returns the current time in seconds
    """

    def __init__(
            self,
            name: str,
            failure_threshold: int = 1,
            recovery_timeout: float = 300.0,
            clock: Callable[[], float] = time.time,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")

        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        if self._state is CircuitState.OPEN and self.time_until_recovery() == 0:
            self._move_to(CircuitState.HALF_OPEN)
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state is CircuitState.CLOSED

    def time_until_recovery(self) -> float:
        """Seconds left in the current suppression window, 0 when not open."""
        if self._state is not CircuitState.OPEN:
            return 0.0
        return max(0.0, self._opened_at + self.recovery_timeout - self.clock())

    def record_success(self) -> None:
        self._trial_in_flight = False
        self._consecutive_failures = 0
        if self._state is not CircuitState.CLOSED:
            self._move_to(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self._trial_in_flight = False
        self._consecutive_failures += 1
        if (
                self._state is CircuitState.HALF_OPEN
                or self._consecutive_failures >= self.failure_threshold
        ):
            self._opened_at = self.clock()
            self._move_to(CircuitState.OPEN)

    def reset(self) -> None:
        self.record_success()

    def _move_to(self, state: CircuitState) -> None:
        logger.debug(f"Breaker {self.name}: {self._state.value} -> {state.value}")
        self._state = state

    def __enter__(self) -> "CircuitBreaker":
        state = self.state
        if state is CircuitState.OPEN or (
                state is CircuitState.HALF_OPEN and self._trial_in_flight
        ):
            raise CircuitBreakerOpen(self.name, self.time_until_recovery())
        if state is CircuitState.HALF_OPEN:
            self._trial_in_flight = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is None:
            self.record_success()
        else:
            self.record_failure()
        return False


class CircuitBreakerRegistry:
    """Breakers keyed by ticker, created on first lookup with shared settings."""

    def __init__(
            self,
            recovery_timeout: float,
            failure_threshold: int = 1,
            clock: Callable[[], float] = time.time,
            name_prefix: str = "price",
    ) -> None:
        self.recovery_timeout = recovery_timeout
        self.failure_threshold = failure_threshold
        self._clock = clock
        self._name_prefix = name_prefix
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, key: str) -> CircuitBreaker:
        if key not in self._breakers:
            self._breakers[key] = CircuitBreaker(
                name=f"{self._name_prefix}:{key}",
                failure_threshold=self.failure_threshold,
                recovery_timeout=self.recovery_timeout,
                clock=self._clock,
            )
        return self._breakers[key]

    def is_open(self, key: str) -> bool:
        return key in self._breakers and self._breakers[key].is_open

    def open_keys(self) -> list[str]:
        """Tickers whose provider calls are currently suppressed."""
        return [key for key, breaker in self._breakers.items() if breaker.is_open]

    def clear(self) -> None:
        logger.info(f"Dropping {len(self._breakers)} price failure markers")
        self._breakers.clear()

    def __len__(self) -> int:
        return len(self._breakers)
