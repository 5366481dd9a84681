"""Tests for the process-local TTL cache."""
from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api.schemas import CatalogQueryParams  # noqa: E402
from backend.catalog_api.services.query_cache import TTLCache, cache_key  # noqa: E402


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl_seconds=30, clock=clock)
    cache.set("key", "value")

    clock.now += 29
    assert cache.get("key") == "value"

    clock.now += 1
    assert cache.get("key") is None
    assert len(cache) == 0


def test_get_or_set_loads_once_within_ttl() -> None:
    clock = FakeClock()
    cache: TTLCache[list[int]] = TTLCache(ttl_seconds=60, clock=clock)
    loads: list[int] = []

    def loader() -> list[int]:
        loads.append(1)
        return [len(loads)]

    assert cache.get_or_set("movies", loader) == [1]
    assert cache.get_or_set("movies", loader) == [1]
    clock.now += 61
    assert cache.get_or_set("movies", loader) == [2]
    assert cache.hits == 1
    assert cache.misses == 2


def test_oldest_entries_are_evicted_beyond_capacity() -> None:
    cache: TTLCache[int] = TTLCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_recent_reads_protect_entries_from_eviction() -> None:
    cache: TTLCache[int] = TTLCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1

    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_zero_ttl_disables_storage() -> None:
    cache: TTLCache[int] = TTLCache(ttl_seconds=0, clock=FakeClock())
    calls: list[int] = []

    cache.get_or_set("k", lambda: calls.append(1) or 1)
    cache.get_or_set("k", lambda: calls.append(1) or 1)

    assert len(calls) == 2
    assert len(cache) == 0


def test_cache_key_is_stable_for_equivalent_queries() -> None:
    first = CatalogQueryParams(genres=("Drama", "action "), search="  Matrix").normalized()
    second = CatalogQueryParams(genres=("ACTION", "drama"), search="matrix").normalized()
    other = CatalogQueryParams(genres=("action",), search="matrix").normalized()

    assert cache_key("movies", first) == cache_key("movies", second)
    assert cache_key("movies", first) != cache_key("movies", other)
    assert cache_key("movies", first) != cache_key("tvshows", first)
