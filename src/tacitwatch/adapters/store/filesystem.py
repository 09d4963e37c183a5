"""Key-value store in a JSON file, shared between processes."""

import fcntl
import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ...ports.store import KeyValueStore

logger = logging.getLogger(__name__)


class FileStore(KeyValueStore):
    """JSON file store guarded by an advisory lock.

    Each operation takes an exclusive flock on a sibling lock file, reads
    the whole file, and writes it back atomically with os.replace.
    Expiry uses wall-clock time since entries outlive the process.
    """

    def __init__(self, path: Path, clock: Callable[[], float] = time.time) -> None:
        self.path = path
        self.lock_path = path.with_suffix(path.suffix + ".lock")
        self._clock = clock
        path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _locked(self) -> Iterator[dict[str, Any]]:
        with open(self.lock_path, "a") as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                data = self._load()
                before = json.dumps(data, sort_keys=True)
                yield data
                if json.dumps(data, sort_keys=True) != before:
                    self._dump(data)
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning(f"Corrupt store file, starting empty: {self.path}")
            return {}
        now = self._clock()
        return {
            key: entry
            for key, entry in data.items()
            if entry.get("expires_at") is None or entry["expires_at"] > now
        }

    def _dump(self, data: dict[str, Any]) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".store-")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _entry(self, value: Any, ttl: float | None) -> dict[str, Any]:
        expires_at = self._clock() + ttl if ttl is not None else None
        return {"value": value, "expires_at": expires_at}

    def get(self, key: str, default: Any = None) -> Any:
        with self._locked() as data:
            entry = data.get(key)
            return entry["value"] if entry is not None else default

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._locked() as data:
            data[key] = self._entry(value, ttl)

    def increment(self, key: str, amount: int = 1) -> int:
        with self._locked() as data:
            entry = data.get(key) or {"value": 0, "expires_at": None}
            entry["value"] = int(entry["value"]) + amount
            data[key] = entry
            return entry["value"]

    def compare_and_set(
        self, key: str, expected: Any, value: Any, ttl: float | None = None
    ) -> bool:
        with self._locked() as data:
            entry = data.get(key)
            current = entry["value"] if entry is not None else None
            if current != expected:
                return False
            data[key] = self._entry(value, ttl)
            return True

    def delete(self, key: str) -> None:
        with self._locked() as data:
            data.pop(key, None)
