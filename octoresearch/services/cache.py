"""Bounded in-memory response cache with per-entry TTL.

Keys are content-addressed: ``v1-{prefix}:{sha256[:16]}`` over the canonical
JSON of the query parameters, so semantically identical queries always map
to the same entry regardless of key order.

Architecture Note: get/set are synchronous and guarded by a single lock, so
cache access is never a suspension point for the async pipeline and is
also safe from worker threads. Entries are deep-copied in and out; a stored
value can only be replaced, never mutated in place.

Storage is a cachetools ``TLRUCache`` whose time-to-use comes from each
entry's own TTL. Expired entries are purged before every read and insert;
when an insert still finds the store full, the least recently used entry is
evicted.
"""

from __future__ import annotations

import copy
import hashlib
import json
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from cachetools import TLRUCache
from loguru import logger

from octoresearch.core.config.pipeline_config import CacheConfig

CACHE_KEY_VERSION = "v1"

T = TypeVar("T")


def cache_key(prefix: str, params: Any) -> str:
    """Deterministic key for a backend prefix and its parameters.

    Dict key order never matters; list order does.
    """
    canonical = json.dumps(
        params, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
    return f"{CACHE_KEY_VERSION}-{prefix}:{digest}"


def _prefix_of(key: str) -> str:
    head = key.split(":", 1)[0]
    return head.split("-", 1)[1] if "-" in head else head


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl: float

    def expires_at(self) -> float:
        return self.created_at + self.ttl


def _entry_expiry(key: str, entry: CacheEntry, now: float) -> float:
    return entry.expires_at()


class _EntryStore(TLRUCache):
    """TLRU store that reports each capacity eviction."""

    def __init__(self, maxsize: int, timer: Callable[[], float], on_evict: Callable[[str], None]):
        super().__init__(maxsize, ttu=_entry_expiry, timer=timer)
        self._on_evict = on_evict

    def popitem(self) -> tuple[str, CacheEntry]:
        key, entry = super().popitem()
        self._on_evict(key)
        return key, entry


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    sets: int
    evictions: int
    size: int
    max_entries: int
    registered_prefixes: list[str]

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Hit rate in percent, 0 when nothing was requested yet."""
        if not self.total_requests:
            return 0.0
        return round(self.hits / self.total_requests * 100, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "totalRequests": self.total_requests,
            "hitRate": self.hit_rate,
            "cacheSize": self.size,
            "maxEntries": self.max_entries,
            "registeredPrefixes": self.registered_prefixes,
        }


@dataclass(frozen=True)
class CacheHealth:
    is_healthy: bool
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isHealthy": self.is_healthy,
            "issues": self.issues,
            "recommendations": self.recommendations,
        }


class ResponseCache:
    """Lock-guarded bounded key/value store with per-entry expiry."""

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CacheConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._entries = self._new_store()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._evictions = 0
        self._prefixes: set[str] = set()

    def _new_store(self) -> _EntryStore:
        return _EntryStore(self.config.max_entries, timer=self._clock, on_evict=self._record_eviction)

    def _record_eviction(self, key: str) -> None:
        self._evictions += 1
        logger.debug(f"Cache evicted {key}")

    @property
    def max_entries(self) -> int:
        return self.config.max_entries

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> Any | None:
        """Return a copy of the cached value, or None on miss or expiry."""
        with self._lock:
            self._entries.expire()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a copy of ``value``. A None value is never stored."""
        if value is None:
            return
        if ttl is None:
            ttl = self.config.ttl_for(_prefix_of(key))
        if ttl <= 0:
            return
        stored = copy.deepcopy(value)
        with self._lock:
            # Expired entries go first; only then is the least recently used evicted.
            self._entries[key] = CacheEntry(key=key, value=stored, created_at=self._clock(), ttl=ttl)
            self._sets += 1
            self._prefixes.add(_prefix_of(key))

    async def with_cache(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        *,
        ttl: float | None = None,
        skip_cache: bool = False,
        force_refresh: bool = False,
        should_cache: Callable[[T], bool] | None = None,
    ) -> T:
        """Serve ``key`` from cache or run ``operation`` and store its result.

        Results rejected by ``should_cache`` (and exceptions) are never stored.
        """
        if skip_cache:
            return await operation()
        if not force_refresh:
            cached = self.get(key)
            if cached is not None:
                return cached
        result = await operation()
        if should_cache is None or should_cache(result):
            self.set(key, result, ttl)
        return result

    def clear_by_prefix(self, prefix: str) -> int:
        """Delete every entry created for ``prefix``. Returns the deleted count."""
        with self._lock:
            self._entries.expire()
            doomed = [k for k in self._entries if _prefix_of(k) == prefix]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> None:
        """Drop all entries and reset statistics."""
        with self._lock:
            self._entries = self._new_store()
            self._hits = self._misses = self._sets = self._evictions = 0
            self._prefixes.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            self._entries.expire()
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                sets=self._sets,
                evictions=self._evictions,
                size=len(self._entries),
                max_entries=self.max_entries,
                registered_prefixes=sorted(self._prefixes),
            )

    def validate_health(self) -> CacheHealth:
        stats = self.stats()
        issues: list[str] = []
        recommendations: list[str] = []

        if stats.size > self.max_entries * 0.8:
            issues.append(f"Cache size ({stats.size}) approaching limit")
            recommendations.append("Consider clearing old cache entries or increasing maxEntries")

        if stats.total_requests > 100 and stats.hit_rate < 10:
            issues.append(f"Low cache hit rate ({stats.hit_rate}%)")
            recommendations.append(
                "Review cache TTL settings or cache key generation strategy"
            )

        if len(stats.registered_prefixes) > 20:
            issues.append("Large number of cache prefixes")
            recommendations.append("Consider consolidating similar cache prefixes")

        return CacheHealth(is_healthy=not issues, issues=issues, recommendations=recommendations)
