from __future__ import annotations
import logging

import pytest

from investor_core.utils.cache import NS_DECISIONS, NS_PROFILE, NS_STRATEGY, ViewCache, query_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_query_key_shape():
    assert query_key(NS_PROFILE, 42, NS_STRATEGY) == ("userProfile", "42", "strategy")


def test_entries_go_stale(clock):
    cache = ViewCache(stale_seconds=300, gc_seconds=1800, clock=clock)
    cache.set(("a",), 1)
    clock.now += 300
    assert cache.get(("a",)) == 1
    clock.now += 1
    assert cache.get(("a",)) is None
    # stale but still held until swept
    assert len(cache) == 1


def test_sweep_drops_old_entries(clock):
    cache = ViewCache(stale_seconds=300, gc_seconds=1800, clock=clock)
    cache.set(("old",), 1)
    clock.now += 1000
    cache.set(("new",), 2)
    clock.now += 900
    assert cache.sweep() == 1
    assert cache.get(("new",)) is None  # stale, but kept
    assert len(cache) == 1


def test_set_sweeps_old_entries_without_manual_call(clock):
    cache = ViewCache(stale_seconds=1, gc_seconds=2, clock=clock)
    for i in range(100):
        cache.set(query_key(NS_PROFILE, f"u{i}", NS_STRATEGY), i)
    assert len(cache) == 100
    clock.now += 10000
    cache.set(query_key(NS_PROFILE, "late", NS_STRATEGY), "x")
    assert len(cache) == 1
    assert cache.get(query_key(NS_PROFILE, "late", NS_STRATEGY)) == "x"


def test_set_refuses_outdated_generation(clock):
    cache = ViewCache(clock=clock)
    key = query_key(NS_PROFILE, "u1", NS_STRATEGY)
    generation = cache.generation(key)
    cache.invalidate(query_key(NS_PROFILE, "u1"))
    assert cache.generation(key) != generation
    assert cache.set(key, "old", generation) is False
    assert cache.get(key) is None
    assert len(cache) == 0
    assert cache.set(key, "new", cache.generation(key)) is True
    assert cache.get(key) == "new"


def test_generation_ignores_other_users(clock):
    cache = ViewCache(clock=clock)
    key = query_key(NS_PROFILE, "u1", NS_STRATEGY)
    generation = cache.generation(key)
    cache.invalidate(query_key(NS_PROFILE, "u2"))
    assert cache.set(key, "value", generation) is True


def test_invalidate_by_prefix(clock):
    cache = ViewCache(clock=clock)
    cache.set(query_key(NS_PROFILE, "u1"), "p")
    cache.set(query_key(NS_PROFILE, "u1", NS_STRATEGY), "s")
    cache.set(query_key(NS_PROFILE, "u2", NS_STRATEGY), "other")
    assert cache.invalidate(query_key(NS_PROFILE, "u1")) == 2
    assert cache.get(query_key(NS_PROFILE, "u2", NS_STRATEGY)) == "other"


def test_broadcast_continues_after_failure(clock, caplog):
    cache = ViewCache(clock=clock)
    seen = []

    def bad(prefix):
        raise RuntimeError("nope")

    cache.subscribe(NS_PROFILE, bad)
    cache.subscribe(NS_DECISIONS, seen.append)
    with caplog.at_level(logging.WARNING, logger="investor_core.utils.cache"):
        failed = cache.broadcast([query_key(NS_PROFILE, "u1"), query_key(NS_DECISIONS, "u1")])
    assert failed == [("userProfile", "u1")]
    assert seen == [("decisions", "u1")]
    assert "Failed to invalidate view userProfile/u1: nope" in caplog.text


def test_clear(clock):
    cache = ViewCache(clock=clock)
    cache.set(("a",), 1)
    cache.clear()
    assert len(cache) == 0
