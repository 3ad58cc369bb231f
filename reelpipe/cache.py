"""In-process TTL cache with an injectable clock.

Holds tenant records, decrypted credentials and playlist maps. Contents are
safe to lose: every entry can be rebuilt from the database or the platform.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Generic, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


class TTLCache(Generic[V]):
    """Thread-safe key/value cache whose entries expire after ``ttl`` seconds."""

    def __init__(self, ttl: float, clock: Clock | None = None):
        if ttl < 0:
            raise ValueError("ttl must be >= 0")
        self._ttl = ttl
        self._clock = clock or time.monotonic
        self._entries: dict[Any, tuple[float, V]] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: Any) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Any, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl, value)

    def get_or_load(self, key: Any, loader: Callable[[], V]) -> V:
        """Return the cached value, calling ``loader`` on a miss.

        The loader runs outside the lock; concurrent misses may both load.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, key: Any) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_where(self, predicate: Callable[[Any], bool]) -> None:
        """Drop every entry whose key matches ``predicate``."""
        with self._lock:
            for key in [k for k in self._entries if predicate(k)]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)
