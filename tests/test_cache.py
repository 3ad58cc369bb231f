"""Tests for the TTL cache."""

import pytest

from reelpipe.cache import TTLCache


class Ticker:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_entries_expire():
    ticker = Ticker()
    cache = TTLCache(10, ticker)
    cache.set("a", 1)
    assert cache.get("a") == 1
    ticker.now += 9.9
    assert cache.get("a") == 1
    ticker.now += 0.1
    assert cache.get("a") is None
    assert len(cache) == 0


def test_get_or_load_calls_loader_once():
    calls = []
    cache = TTLCache(60, Ticker())

    def loader():
        calls.append(1)
        return {"k": "v"}

    assert cache.get_or_load("x", loader) == {"k": "v"}
    assert cache.get_or_load("x", loader) == {"k": "v"}
    assert len(calls) == 1


def test_invalidation():
    cache = TTLCache(60, Ticker())
    cache.set(("tenant", "a"), 1)
    cache.set(("tenant", "b"), 2)
    cache.set(("credentials", "a"), 3)
    cache.invalidate(("tenant", "a"))
    assert cache.get(("tenant", "a")) is None
    cache.invalidate_where(lambda key: key[1] == "b")
    assert cache.get(("tenant", "b")) is None
    assert cache.get(("credentials", "a")) == 3
    cache.clear()
    assert len(cache) == 0


def test_negative_ttl_rejected():
    with pytest.raises(ValueError):
        TTLCache(-1)
