"""Thread-safe LRU + TTL cache of compiled expression units.

Keys are ``(shape_id, normalized_text)``. The lock guards only the map
and metrics; it is released while a factory compiles a missing unit and
reacquired to insert the result, so two threads racing on the same key
may both compile and the last insert wins. Readers only ever see fully
built units.

Usage:
    cache = ExpressionCache(max_size=1000, ttl_seconds=3600)
    unit = cache.get_or_create((shape_id, text), lambda: compile_expression(text, shape_id))
    cache.metrics().hit_rate
    cache.dispose()
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..errors import EngineDisposedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SWEEP_INTERVAL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheMetrics:
    """Point-in-time cache statistics."""

    hits: int
    misses: int
    total_lookups: int
    size: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        return self.hits / self.total_lookups if self.total_lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total_lookups": self.total_lookups,
            "hit_rate": self.hit_rate,
            "size": self.size,
            "evictions": self.evictions,
        }


@dataclass
class _Entry(Generic[T]):
    value: T
    expires_at: float | None


class ExpressionCache(Generic[T]):
    """LRU cache with per-entry TTL, lazy expiry and a periodic sweep.

    Args:
        max_size: Capacity; inserting beyond it evicts the least recently used entry
        ttl_seconds: Entry lifetime; 0 disables expiry and the sweep timer
        sweep_interval: Seconds between sweeps (default ``min(ttl / 4, 300)``)
        clock: Monotonic time source
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 3600.0,
        sweep_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[Hashable, _Entry[T]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._disposed = False
        self._timer: threading.Timer | None = None
        if ttl_seconds > 0:
            self.sweep_interval = sweep_interval or min(ttl_seconds / 4, MAX_SWEEP_INTERVAL_SECONDS)
            self._schedule_sweep()
        else:
            self.sweep_interval = None

    # -- lifecycle -----------------------------------------------------------

    def _check_disposed(self) -> None:
        if self._disposed:
            raise EngineDisposedError("Expression cache has been disposed")

    def _schedule_sweep(self) -> None:
        if self._disposed or not self.sweep_interval:
            return
        timer = threading.Timer(self.sweep_interval, self._sweep_and_reschedule)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _sweep_and_reschedule(self) -> None:
        removed = self.sweep()
        if removed:
            logger.debug(f"Cache sweep removed {removed} expired entries")
        with self._lock:
            if self._disposed:
                return
        self._schedule_sweep()

    def dispose(self) -> None:
        """Stop the sweep timer and drop all entries. Later calls raise."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            self._entries.clear()
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.cancel()

    @property
    def disposed(self) -> bool:
        return self._disposed

    # -- operations ----------------------------------------------------------

    def _expired(self, entry: _Entry[T], now: float) -> bool:
        return entry.expires_at is not None and now >= entry.expires_at

    def get(self, key: Hashable) -> T | None:
        """Return the live entry for *key* (counted as a lookup), or None."""
        with self._lock:
            self._check_disposed()
            return self._lookup(key)

    def _lookup(self, key: Hashable) -> T | None:
        entry = self._entries.get(key)
        if entry is not None and self._expired(entry, self._clock()):
            del self._entries[key]
            entry = None
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        self._entries.move_to_end(key)
        return entry.value

    def put(self, key: Hashable, value: T) -> None:
        with self._lock:
            self._check_disposed()
            self._insert(key, value)

    def _insert(self, key: Hashable, value: T) -> None:
        expires_at = self._clock() + self.ttl_seconds if self.ttl_seconds > 0 else None
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted least recently used unit {evicted!r}")
        self._entries[key] = _Entry(value, expires_at)

    def get_or_create(self, key: Hashable, factory: Callable[[], T]) -> T:
        """Return the cached value for *key*, building it with *factory* on a miss.

        The factory runs without the lock held. Factory errors propagate and
        nothing is cached.

        Raises:
            EngineDisposedError: If the cache has been disposed.
        """
        with self._lock:
            self._check_disposed()
            cached = self._lookup(key)
        if cached is not None:
            return cached

        value = factory()

        with self._lock:
            self._check_disposed()
            self._insert(key, value)
        return value

    def sweep(self) -> int:
        """Remove expired entries; return how many were removed."""
        with self._lock:
            if self._disposed:
                return 0
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if self._expired(entry, now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        """Drop all entries and reset metrics."""
        with self._lock:
            self._check_disposed()
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def metrics(self) -> CacheMetrics:
        with self._lock:
            return CacheMetrics(
                hits=self._hits,
                misses=self._misses,
                total_lookups=self._hits + self._misses,
                size=len(self._entries),
                evictions=self._evictions,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._expired(entry, self._clock())
