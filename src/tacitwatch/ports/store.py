"""Key-value store port - shared state for circuit breakers and caches."""

from abc import ABC, abstractmethod
from typing import Any


class KeyValueStore(ABC):
    """Process-wide key space with atomic counters.

    Values must be JSON-compatible so that any backend can hold them.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store value, expiring after ttl seconds if given."""
        pass

    @abstractmethod
    def increment(self, key: str, amount: int = 1) -> int:
        """Atomically add amount to an integer key and return the new value.

        Missing keys count from zero.
        """
        pass

    @abstractmethod
    def compare_and_set(
        self, key: str, expected: Any, value: Any, ttl: float | None = None
    ) -> bool:
        """Set key to value only if it currently holds expected."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass
