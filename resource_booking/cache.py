"""Thread-safe TTL cache for derived data such as utilization stats."""
from __future__ import annotations

import threading
from typing import Callable, Generic, Optional, TypeVar

from cachetools import TTLCache

T = TypeVar("T")


class SimpleTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()
        # Bumped by every invalidation.
        self._generation = 0

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._cache[key] = value

    def get_or_compute(self, key: str, compute: Callable[[], T]) -> T:
        """Return the cached value for ``key``, computing and storing it on a miss.

        A value computed while an invalidation happened is returned but not stored.
        """
        with self._lock:
            cached = self._cache.get(key)
            generation = self._generation
        if cached is not None:
            return cached
        value = compute()
        with self._lock:
            if generation == self._generation:
                self._cache[key] = value
        return value

    def pop(self, key: str) -> None:
        with self._lock:
            self._generation += 1
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._cache.clear()
