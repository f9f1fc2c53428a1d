"""Circuit breaker for the geocoding upstream.

When the geocoding API starts failing, every user write that needs a
resolution would otherwise wait out a full timeout. The breaker fails those
calls immediately until a cooldown has passed, then lets a single probe
through to find out whether the upstream is back.

States:
- CLOSED: calls pass through; consecutive failures are counted
- OPEN: calls fail fast with GeocoderUnavailableError
- PROBING: cooldown elapsed; one call at a time may test the upstream

An empty result (ZERO_RESULTS) is an answer, not an outage, and is recorded
as a success by the caller.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from regionmap.errors import GeocoderUnavailableError
from regionmap.utils.logging import get_logger

logger = get_logger(__name__)


class BreakerState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    PROBING = "probing"


@dataclass(frozen=True)
class BreakerPolicy:
    """Thresholds for opening and closing the circuit.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit.
        cooldown_seconds: Time the circuit stays open before probing.
        probe_successes: Successful probes needed to close it again.
    """

    failure_threshold: int = 5
    cooldown_seconds: float = 30.0
    probe_successes: int = 1


@dataclass
class CircuitBreaker:
    """Tracks upstream health and fails fast while it is down.

    Usage:
        breaker = CircuitBreaker("google", BreakerPolicy(failure_threshold=3))

        breaker.check()  # raises GeocoderUnavailableError while open
        try:
            payload = await fetch()
        except httpx.TransportError:
            breaker.record_failure()
            raise
        breaker.record_success()
    """

    upstream_name: str
    policy: BreakerPolicy = field(default_factory=BreakerPolicy)
    clock: Callable[[], float] = time.monotonic

    _state: BreakerState = field(default=BreakerState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _probe_successes: int = field(default=0, init=False)
    _opened_at: float | None = field(default=None, init=False)
    _probe_in_flight: bool = field(default=False, init=False)

    @property
    def state(self) -> BreakerState:
        """Current state; an open circuit whose cooldown has elapsed is probing."""
        if self._state is BreakerState.OPEN and self.cooldown_remaining() == 0.0:
            self._state = BreakerState.PROBING
            self._probe_successes = 0
            self._probe_in_flight = False
            logger.info("Geocoder circuit probing", upstream=self.upstream_name)
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state is BreakerState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state is BreakerState.CLOSED

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def cooldown_remaining(self) -> float:
        """Seconds until an open circuit starts probing (0 when not open)."""
        if self._state is not BreakerState.OPEN or self._opened_at is None:
            return 0.0
        elapsed = self.clock() - self._opened_at
        return max(0.0, self.policy.cooldown_seconds - elapsed)

    def check(self) -> None:
        """Admit a call or fail fast.

        Raises:
            GeocoderUnavailableError: While open, or while probing with a
                probe already in flight.
        """
        state = self.state
        if state is BreakerState.OPEN:
            remaining = self.cooldown_remaining()
            raise GeocoderUnavailableError(
                f"Geocoder {self.upstream_name} is unavailable; "
                f"retry in {remaining:.1f}s",
                cooldown_remaining_seconds=remaining,
            )
        if state is BreakerState.PROBING:
            if self._probe_in_flight:
                raise GeocoderUnavailableError(
                    f"Geocoder {self.upstream_name} is recovering; "
                    "a probe call is already in flight",
                    cooldown_remaining_seconds=0.0,
                )
            self._probe_in_flight = True

    def record_success(self) -> None:
        """Record a call that reached the upstream and got an answer."""
        if self._state is BreakerState.PROBING:
            self._probe_in_flight = False
            self._probe_successes += 1
            if self._probe_successes >= self.policy.probe_successes:
                self._close()
        else:
            self._consecutive_failures = 0

    def record_failure(self) -> None:
        """Record a transport error or an upstream error status."""
        if self._state is BreakerState.PROBING:
            logger.warning("Geocoder probe failed", upstream=self.upstream_name)
            self._open()
            return
        self._consecutive_failures += 1
        if (
            self._state is BreakerState.CLOSED
            and self._consecutive_failures >= self.policy.failure_threshold
        ):
            self._open()

    def reset(self) -> None:
        """Forget all history and close the circuit."""
        self._close()
        self._opened_at = None

    def _open(self) -> None:
        self._state = BreakerState.OPEN
        self._opened_at = self.clock()
        self._probe_in_flight = False
        logger.warning(
            "Geocoder circuit opened",
            upstream=self.upstream_name,
            failures=self._consecutive_failures,
            cooldown_seconds=self.policy.cooldown_seconds,
        )

    def _close(self) -> None:
        if self._state is not BreakerState.CLOSED:
            logger.info("Geocoder circuit closed", upstream=self.upstream_name)
        self._state = BreakerState.CLOSED
        self._consecutive_failures = 0
        self._probe_successes = 0
        self._probe_in_flight = False
