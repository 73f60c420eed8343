"""TTL cache for signed asset URLs and catalog snapshots."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """Cached value with the time it was stored."""

    value: V
    inserted_at: float


class TTLCache(Generic[K, V]):
    """In-memory mapping whose entries expire ``ttl_seconds`` after insertion.

    A lookup only checks (and drops) the key it asked for; ``purge()`` and
    ``len()`` sweep the whole store. Not thread-safe; meant to be used from a
    single event loop.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: dict[K, CacheEntry[V]] = {}
        self._ttl = ttl_seconds
        self._clock = clock
        self.name = name

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _is_fresh(self, entry: CacheEntry[V], now: float) -> bool:
        return now - entry.inserted_at < self._ttl

    def purge(self) -> int:
        """Drop every expired entry and return how many were dropped."""
        now = self._clock()
        expired = [k for k, entry in self._store.items() if not self._is_fresh(entry, now)]
        for k in expired:
            del self._store[k]
        if expired:
            logger.debug("cache_swept", extra={"cache": self.name, "evicted": len(expired)})
        return len(expired)

    def get(self, key: K) -> V | None:
        """Return the cached value if present and within TTL, else None."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if not self._is_fresh(entry, self._clock()):
            del self._store[key]
            return None
        return entry.value

    def set(self, key: K, value: V) -> None:
        """Store (or replace) a value with the current timestamp."""
        self._store[key] = CacheEntry(value=value, inserted_at=self._clock())

    def invalidate(self, key: K) -> None:
        """Drop a single key; missing keys are ignored."""
        self._store.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        self._store.clear()

    def age_seconds(self, key: K) -> float:
        """Age of the entry for ``key``, or infinity if absent."""
        entry = self._store.get(key)
        if entry is None:
            return float("inf")
        return self._clock() - entry.inserted_at

    def __contains__(self, key: object) -> bool:
        entry = self._store.get(key)  # type: ignore[arg-type]
        return entry is not None and self._is_fresh(entry, self._clock())

    def __len__(self) -> int:
        self.purge()
        return len(self._store)
