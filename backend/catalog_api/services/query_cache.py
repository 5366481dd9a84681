"""Process-local read-through cache for catalog list responses."""
from __future__ import annotations

import json
import logging
import time
from threading import Lock
from typing import Callable, Generic, TypeVar

from cachetools import TTLCache as _ExpiringCache
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


def cache_key(kind: str, params: BaseModel) -> str:
    """Serialize normalized query parameters into a deterministic cache key."""

    payload = params.model_dump(mode="json")
    return f"{kind}:{json.dumps(payload, sort_keys=True, separators=(',', ':'))}"


class TTLCache(Generic[T]):
    """Read-through wrapper around ``cachetools.TTLCache`` with hit counters.

    Writes to the catalog do not invalidate entries; readers may see data up
    to one TTL old. A non-positive TTL turns the cache into a pass-through.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._entries: _ExpiringCache[str, T] = _ExpiringCache(
            maxsize=max(max_entries, 1), ttl=max(ttl_seconds, 0), timer=clock
        )
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> T | None:
        """Return a live entry or ``None``."""

        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: T) -> None:
        """Store a value; the least recently used entry goes first when full."""

        if self._ttl <= 0:
            return
        with self._lock:
            self._entries[key] = value

    def get_or_set(self, key: str, loader: Callable[[], T]) -> T:
        """Return the cached value for ``key`` or load, store and return it."""

        cached = self.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        logger.debug("Cache miss for %s", key)
        value = loader()
        self.set(key, value)
        return value

    def clear(self) -> None:
        """Drop every entry."""

        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
