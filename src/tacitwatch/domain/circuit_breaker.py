"""Circuit breaker over a shared key-value store.

State is shared by every process using the same store, so the counters go
through atomic increments and the OPEN to HALF_OPEN move is a
compare-and-set.
"""

import logging
import time
from collections.abc import Callable
from typing import Protocol, TypeVar

from ..ports.store import KeyValueStore
from .errors import ServiceUnavailable
from .models import CircuitMetrics, CircuitState, CircuitStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

KEY_PREFIX = "circuit_breaker"


class Operation(Protocol[T_co]):
    def __call__(self) -> T_co: ...


class FallbackHandler(Protocol[T_co]):
    def __call__(self, error: Exception) -> T_co: ...


class CircuitBreaker:
    """Per-service circuit breaker.

    CLOSED counts consecutive failures and opens at failure_threshold. OPEN
    rejects calls until recovery_timeout has passed, then lets calls through
    as HALF_OPEN. HALF_OPEN closes after success_threshold successes and
    reopens on any failure.
    """

    def __init__(
        self,
        service_name: str,
        store: KeyValueStore,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        success_threshold: int = 3,
        state_ttl: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.service_name = service_name
        self.store = store
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self.state_ttl = state_ttl
        self.clock = clock

    def _key(self, name: str) -> str:
        return f"{KEY_PREFIX}:{name}:{self.service_name}"

    def _status(self) -> CircuitStatus:
        raw = self.store.get(self._key("state"), CircuitStatus.CLOSED.value)
        try:
            return CircuitStatus(raw)
        except ValueError:
            logger.warning(f"Unknown circuit state {raw!r} for {self.service_name}")
            return CircuitStatus.CLOSED

    def _set_status(self, status: CircuitStatus) -> None:
        self.store.set(self._key("state"), status.value, ttl=self.state_ttl)

    def _last_failure(self) -> float | None:
        value = self.store.get(self._key("last_failure"))
        return float(value) if value is not None else None

    def _remaining(self) -> float:
        last_failure = self._last_failure()
        if last_failure is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self.clock() - last_failure))

    def execute(
        self,
        operation: Operation[T],
        fallback: FallbackHandler[T] | None = None,
    ) -> T:
        """Run operation under the breaker.

        Without a fallback, a rejected call raises ServiceUnavailable and a
        failed call re-raises the original error.
        """
        if self._status() is CircuitStatus.OPEN:
            remaining = self._remaining()
            if remaining > 0:
                error = ServiceUnavailable(self.service_name, remaining)
                logger.info(str(error))
                if fallback is not None:
                    return fallback(error)
                raise error
            if self.store.compare_and_set(
                self._key("state"),
                CircuitStatus.OPEN.value,
                CircuitStatus.HALF_OPEN.value,
                ttl=self.state_ttl,
            ):
                self.store.delete(self._key("successes"))
                logger.info(f"Circuit for {self.service_name} is half-open")

        try:
            result = operation()
        except Exception as e:
            self._on_failure()
            if fallback is not None:
                return fallback(e)
            raise

        self._on_success()
        return result

    def _on_success(self) -> None:
        status = self._status()
        if status is CircuitStatus.HALF_OPEN:
            successes = self.store.increment(self._key("successes"))
            if successes >= self.success_threshold:
                self._set_status(CircuitStatus.CLOSED)
                self.store.delete(self._key("failures"))
                self.store.delete(self._key("successes"))
                logger.info(f"Circuit for {self.service_name} closed after recovery")
        elif status is CircuitStatus.CLOSED:
            self.store.delete(self._key("failures"))

    def _on_failure(self) -> None:
        now = self.clock()
        status = self._status()
        self.store.set(self._key("last_failure"), now, ttl=self.state_ttl)

        if status is CircuitStatus.HALF_OPEN:
            self._set_status(CircuitStatus.OPEN)
            self.store.delete(self._key("successes"))
            logger.warning(f"Circuit for {self.service_name} reopened (half-open failure)")
            return

        failures = self.store.increment(self._key("failures"))
        if status is CircuitStatus.CLOSED and failures >= self.failure_threshold:
            self._set_status(CircuitStatus.OPEN)
            logger.warning(
                f"Circuit for {self.service_name} opened after {failures} failures"
            )

    def force_open(self) -> None:
        self._set_status(CircuitStatus.OPEN)
        self.store.set(self._key("last_failure"), self.clock(), ttl=self.state_ttl)
        logger.warning(f"Circuit for {self.service_name} forced open")

    def force_reset(self) -> None:
        for name in ("state", "failures", "successes", "last_failure"):
            self.store.delete(self._key(name))
        logger.info(f"Circuit for {self.service_name} reset")

    def state(self) -> CircuitState:
        return CircuitState(
            service_name=self.service_name,
            state=self._status(),
            failure_count=int(self.store.get(self._key("failures"), 0)),
            success_count=int(self.store.get(self._key("successes"), 0)),
            last_failure_time=self._last_failure(),
        )

    def get_metrics(self) -> CircuitMetrics:
        current = self.state()
        remaining = self._remaining() if current.state is CircuitStatus.OPEN else 0.0
        return CircuitMetrics(
            service_name=current.service_name,
            state=current.state,
            failure_count=current.failure_count,
            success_count=current.success_count,
            last_failure_time=current.last_failure_time,
            failure_threshold=self.failure_threshold,
            success_threshold=self.success_threshold,
            recovery_timeout=self.recovery_timeout,
            remaining_recovery_time=remaining,
        )

    def is_available(self) -> bool:
        """False only while OPEN and still inside the recovery timeout."""
        if self._status() is not CircuitStatus.OPEN:
            return True
        return self._remaining() <= 0
