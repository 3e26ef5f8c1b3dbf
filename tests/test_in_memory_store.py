"""Unit tests for the in-memory window store."""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.base import WindowKey
from app.adapters.rate_limit.in_memory import InMemoryWindowStore
from app.services.quota import LimitClass, Tier


def _key(identifier: str = "1.2.3.4", tier: Tier = Tier.FREE) -> WindowKey:
    return WindowKey(LimitClass.SUBMISSION, tier, identifier)


def test_first_increment_opens_window() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryWindowStore(clock=clock)

    entry = store.increment(_key(), 60_000)

    assert entry.count == 1
    assert entry.reset_at == pytest.approx(1060.0)


def test_increments_share_window_until_reset() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryWindowStore(clock=clock)

    store.increment(_key(), 60_000)
    clock.return_value = 1059.9
    entry = store.increment(_key(), 60_000)

    assert entry.count == 2
    assert entry.reset_at == pytest.approx(1060.0)


def test_resets_when_window_elapses() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryWindowStore(clock=clock)

    store.increment(_key(), 10_000)
    store.increment(_key(), 10_000)

    clock.return_value = 1010.0
    entry = store.increment(_key(), 10_000)

    assert entry.count == 1
    assert entry.reset_at == pytest.approx(1020.0)


def test_isolated_by_key() -> None:
    store = InMemoryWindowStore(clock=Mock(return_value=1000.0))

    store.increment(_key("k1"), 60_000)
    store.increment(_key("k1"), 60_000)

    assert store.increment(_key("k2"), 60_000).count == 1
    assert store.increment(_key("k1", tier=Tier.PRO), 60_000).count == 1


def test_returned_entry_is_a_snapshot() -> None:
    store = InMemoryWindowStore(clock=Mock(return_value=1000.0))

    first = store.increment(_key(), 60_000)
    store.increment(_key(), 60_000)

    assert first.count == 1


def test_expired_entries_are_kept_until_sweep() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryWindowStore(clock=clock)
    store.increment(_key("a"), 10_000)
    store.increment(_key("b"), 60_000)

    clock.return_value = 1030.0
    assert len(store) == 2

    assert store.sweep() == 1
    assert len(store) == 1
    assert store.get(_key("a")) is None
    assert store.get(_key("b")) is not None


def test_sweep_keeps_entry_exactly_at_reset() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryWindowStore(clock=clock)
    store.increment(_key(), 10_000)

    clock.return_value = 1010.0
    assert store.sweep() == 0


def test_purge_removes_identifier_across_classes_and_tiers() -> None:
    store = InMemoryWindowStore(clock=Mock(return_value=1000.0))
    store.increment(WindowKey(LimitClass.API, Tier.FREE, "u1"), 60_000)
    store.increment(WindowKey(LimitClass.FORM_CREATION, Tier.PRO, "u1"), 60_000)
    store.increment(WindowKey(LimitClass.API, Tier.FREE, "u2"), 60_000)

    assert store.purge("u1") == 2
    assert len(store) == 1
    assert store.purge("u1") == 0


def test_concurrent_increments_are_not_lost() -> None:
    store = InMemoryWindowStore()
    workers = 16
    per_worker = 250
    barrier = Barrier(workers)

    def hammer() -> None:
        barrier.wait()
        for _ in range(per_worker):
            store.increment(_key("shared"), 60_000)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        for future in [pool.submit(hammer) for _ in range(workers)]:
            future.result()

    entry = store.get(_key("shared"))
    assert entry is not None
    assert entry.count == workers * per_worker


def test_concurrent_callers_open_a_single_window() -> None:
    store = InMemoryWindowStore()
    workers = 32
    barrier = Barrier(workers)

    def first_hit() -> int:
        barrier.wait()
        return store.increment(_key("race"), 60_000).count

    with ThreadPoolExecutor(max_workers=workers) as pool:
        counts = list(pool.map(lambda _: first_hit(), range(workers)))

    assert sorted(counts) == list(range(1, workers + 1))


def test_invalid_args() -> None:
    store = InMemoryWindowStore()

    with pytest.raises(ValueError):
        store.increment(_key(), 0)

    with pytest.raises(ValueError):
        WindowKey(LimitClass.API, Tier.FREE, "")
