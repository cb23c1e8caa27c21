"""
Points cache.

In-process TTL cache of derived point aggregates (total, detail, monthly).
Not authoritative: every value can be rebuilt from the ledger. One
instance is created per process and shared by reference.
"""

import itertools
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from loguru import logger

from app.services.points_engine.config import (
    DETAIL_CACHE_MAX_ENTRIES,
    POINTS_CACHE_MAX_ENTRIES,
    POINTS_CACHE_TTL_SECONDS,
)
from app.utils.datetime_utils import month_key

V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """Cached value with the time it was computed."""

    value: V
    stored_at: float
    expires_at: float


class TTLStore(Generic[V]):
    """
    Bounded TTL map.

    Oldest entries are evicted first when max_entries is exceeded. Every
    public method holds the lock for its whole duration; stores of one
    PointsCache share a reentrant lock.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float],
        lock: AbstractContextManager[Any] | None = None,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, CacheEntry[V]] = OrderedDict()
        self._lock = lock or threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                value=value, stored_at=now, expires_at=now + self.ttl_seconds
            )
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def delete_where(self, predicate: Callable[[Hashable], bool]) -> int:
        with self._lock:
            keys = [key for key in self._entries if predicate(key)]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "size": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
            }


class PointsCache:
    """
    Cache of point aggregates keyed by partner ID.

    Three stores:
    - total points per partner
    - point detail list per partner
    - monthly points per (partner, YYYY-MM)

    invalidate() removes every kind for one partner; flush_all() empties
    everything.

    Readers that compute a value from the ledger take generation() before
    the query and pass it to the setter. Both invalidate() and flush_all()
    move the generation forward, so a value computed before a concurrent
    write is dropped instead of being cached for the whole TTL.
    """

    def __init__(
        self,
        ttl_seconds: float = POINTS_CACHE_TTL_SECONDS,
        max_entries: int = POINTS_CACHE_MAX_ENTRIES,
        detail_max_entries: int = DETAIL_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize cache.

        Args:
            ttl_seconds: Lifetime of every entry
            max_entries: Max partners in total and monthly stores
            detail_max_entries: Max partners in detail store
            clock: Monotonic time source (injectable for tests)
        """
        self._lock = threading.RLock()
        self._sequence = itertools.count(1)
        self._generations: dict[int, int] = {}
        self._flush_generation = 0
        self._totals: TTLStore[int] = TTLStore(
            "points", ttl_seconds, max_entries, clock, self._lock
        )
        self._details: TTLStore[list[Any]] = TTLStore(
            "detail", ttl_seconds, detail_max_entries, clock, self._lock
        )
        self._monthly: TTLStore[int] = TTLStore(
            "monthly", ttl_seconds, max_entries, clock, self._lock
        )
        logger.debug(
            "Points cache initialized",
            extra={"ttl_seconds": ttl_seconds, "max_entries": max_entries},
        )

    def generation(self, partner_id: int) -> int:
        """Get the invalidation generation of a partner's aggregates."""
        with self._lock:
            return max(
                self._generations.get(partner_id, 0), self._flush_generation
            )

    def _store(
        self,
        store: TTLStore[Any],
        partner_id: int,
        key: Hashable,
        value: Any,
        generation: int | None,
    ) -> bool:
        with self._lock:
            if generation is not None and generation != self.generation(partner_id):
                logger.debug(
                    f"Stale {store.name} value for partner {partner_id} dropped",
                    extra={"partner_id": partner_id, "generation": generation},
                )
                return False
            store.set(key, value)
            return True

    def get_total_points(self, partner_id: int) -> int | None:
        """Get cached total, None on miss."""
        return self._totals.get(partner_id)

    def set_total_points(
        self, partner_id: int, total_points: int, generation: int | None = None
    ) -> bool:
        """
        Cache a partner's total.

        Args:
            partner_id: Partner ID
            total_points: Total to cache
            generation: Value of generation() taken before computing the
                total; the value is dropped if it has moved since

        Returns:
            True if the value was stored
        """
        return self._store(
            self._totals, partner_id, partner_id, total_points, generation
        )

    def get_points_detail(self, partner_id: int) -> list[Any] | None:
        """Get cached detail list (a copy), None on miss."""
        details = self._details.get(partner_id)
        return list(details) if details is not None else None

    def set_points_detail(
        self,
        partner_id: int,
        details: list[Any],
        generation: int | None = None,
    ) -> bool:
        return self._store(
            self._details, partner_id, partner_id, list(details), generation
        )

    def get_monthly_points(
        self, partner_id: int, month: str | None = None
    ) -> int | None:
        """Get cached monthly points for YYYY-MM (default current month)."""
        return self._monthly.get((partner_id, month or month_key()))

    def set_monthly_points(
        self,
        partner_id: int,
        monthly_points: int,
        month: str | None = None,
        generation: int | None = None,
    ) -> bool:
        return self._store(
            self._monthly,
            partner_id,
            (partner_id, month or month_key()),
            monthly_points,
            generation,
        )

    def invalidate(self, partner_id: int) -> None:
        """Drop all cached aggregates of a partner."""
        with self._lock:
            self._generations[partner_id] = next(self._sequence)
            self._totals.delete_where(lambda key: key == partner_id)
            self._details.delete_where(lambda key: key == partner_id)
            self._monthly.delete_where(
                lambda key: isinstance(key, tuple) and key[0] == partner_id
            )
        logger.debug(
            f"Points cache invalidated for partner {partner_id}",
            extra={"partner_id": partner_id},
        )

    def flush_all(self) -> None:
        """Drop every cached aggregate."""
        with self._lock:
            # Flush generation dominates every per-partner one
            self._flush_generation = next(self._sequence)
            self._generations.clear()
            self._totals.clear()
            self._details.clear()
            self._monthly.clear()
        logger.info("Points cache flushed")

    def get_stats(self) -> dict[str, dict[str, Any]]:
        """Get size and hit rate of each store."""
        return {
            store.name: store.stats()
            for store in (self._totals, self._details, self._monthly)
        }
