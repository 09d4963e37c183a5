"""In-process key-value store."""

import threading
import time
from collections.abc import Callable
from typing import Any

from ...ports.store import KeyValueStore


class MemoryStore(KeyValueStore):
    """Dict-backed store with per-key expiry, safe across threads."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._data: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _expires_at(self, ttl: float | None) -> float | None:
        return self._clock() + ttl if ttl is not None else None

    def _read(self, key: str, default: Any = None) -> Any:
        entry = self._data.get(key)
        if entry is None:
            return default
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return default
        return value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read(key, default)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expires_at(ttl))

    def increment(self, key: str, amount: int = 1) -> int:
        with self._lock:
            value = int(self._read(key, 0)) + amount
            expires_at = self._data[key][1] if key in self._data else None
            self._data[key] = (value, expires_at)
            return value

    def compare_and_set(
        self, key: str, expected: Any, value: Any, ttl: float | None = None
    ) -> bool:
        with self._lock:
            if self._read(key) != expected:
                return False
            self._data[key] = (value, self._expires_at(ttl))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
