"""Unit tests for key-value store adapters."""

import threading
from pathlib import Path

import pytest

from tacitwatch.adapters.store import FileStore, MemoryStore
from tacitwatch.ports.store import KeyValueStore


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def fake_clock() -> Clock:
    return Clock()


@pytest.fixture(params=["memory", "file"])
def kv(request: pytest.FixtureRequest, tmp_path: Path, fake_clock: Clock) -> KeyValueStore:
    if request.param == "memory":
        return MemoryStore(clock=fake_clock)
    return FileStore(tmp_path / "state.json", clock=fake_clock)


class TestKeyValueStore:
    """Behaviour shared by every store backend."""

    def test_get_default(self, kv: KeyValueStore) -> None:
        assert kv.get("missing") is None
        assert kv.get("missing", 5) == 5

    def test_set_and_get(self, kv: KeyValueStore) -> None:
        kv.set("key", {"a": [1, 2]})
        assert kv.get("key") == {"a": [1, 2]}

    def test_ttl_expiry(self, kv: KeyValueStore, fake_clock: Clock) -> None:
        kv.set("key", "value", ttl=10)
        fake_clock.now += 9
        assert kv.get("key") == "value"

        fake_clock.now += 1
        assert kv.get("key") is None

    def test_increment_from_zero(self, kv: KeyValueStore) -> None:
        assert kv.increment("counter") == 1
        assert kv.increment("counter", 4) == 5
        assert kv.get("counter") == 5

    def test_compare_and_set(self, kv: KeyValueStore) -> None:
        kv.set("state", "open")

        assert kv.compare_and_set("state", "closed", "half_open") is False
        assert kv.get("state") == "open"
        assert kv.compare_and_set("state", "open", "half_open") is True
        assert kv.get("state") == "half_open"

    def test_compare_and_set_missing_key(self, kv: KeyValueStore) -> None:
        assert kv.compare_and_set("state", None, "closed") is True
        assert kv.get("state") == "closed"

    def test_delete(self, kv: KeyValueStore) -> None:
        kv.set("key", 1)
        kv.delete("key")
        kv.delete("key")
        assert kv.get("key") is None


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_concurrent_increments(self) -> None:
        store = MemoryStore()

        def work() -> None:
            for _ in range(500):
                store.increment("n")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get("n") == 4000


class TestFileStore:
    """Tests for FileStore."""

    def test_state_survives_new_instance(self, tmp_path: Path) -> None:
        FileStore(tmp_path / "state.json").set("key", "value")
        assert FileStore(tmp_path / "state.json").get("key") == "value"

    def test_corrupt_file_reads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json")
        store = FileStore(path)

        assert store.get("key") is None
        store.set("key", 1)
        assert store.get("key") == 1

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        store = FileStore(tmp_path / "nested" / "state.json")
        store.set("key", 1)
        assert (tmp_path / "nested" / "state.json").exists()
