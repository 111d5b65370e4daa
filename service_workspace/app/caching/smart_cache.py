"""
In-process TTL cache with frequency-based eviction.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.logging import get_logger
from shared.metrics import MetricsCollector


@dataclass
class CacheEntry:
    """A cached value with its expiry and access counter."""
    key: str
    value: Any
    expires_at: float
    access_count: int = 0

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class SmartCache:
    """Bounded key/value cache.

    Entries expire after their TTL (checked lazily on access). When a new key
    is inserted at capacity, the entry with the lowest access count is
    evicted; ties go to the entry inserted first. Overwriting a key counts as
    a fresh insertion and resets its access count.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl_ms: int = 300_000,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[MetricsCollector] = None
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.default_ttl_ms = default_ttl_ms
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("workspace.cache")

        # Insertion ordered; overwrites are re-inserted at the end.
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` on a miss."""
        entry = self._entries.get(key)
        if entry is not None and entry.expired(self.clock()):
            del self._entries[key]
            self.logger.debug("Cache entry expired", key=key)
            entry = None

        if entry is None:
            self.misses += 1
            self._count("cache_misses_total")
            return default

        entry.access_count += 1
        self.hits += 1
        self._count("cache_hits_total")
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """Insert or overwrite ``key``."""
        ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            self._evict()

        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self.clock() + ttl / 1000.0)
        self._update_size()

    def contains(self, key: str) -> bool:
        """Liveness check that leaves counters untouched."""
        entry = self._entries.get(key)
        return entry is not None and not entry.expired(self.clock())

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        return len(self._entries)

    def delete(self, key: str) -> bool:
        """Remove an entry immediately."""
        removed = self._entries.pop(key, None) is not None
        if removed:
            self._update_size()
        return removed

    def delete_matching(self, predicate: Callable[[str], bool]) -> int:
        """Remove every entry whose key satisfies ``predicate``."""
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            self.logger.debug("Cache entries invalidated", count=len(doomed))
            self._update_size()
        return len(doomed)

    def purge_expired(self) -> int:
        """Drop every expired entry; used by scheduled maintenance."""
        now = self.clock()
        removed = self.delete_matching(lambda key: self._entries[key].expired(now))
        if removed:
            self.logger.info("Expired cache entries purged", count=removed)
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._update_size()

    def stats(self) -> Dict[str, Any]:
        """Size and hit/miss statistics; hit rate is a percentage."""
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": round(self.hits / lookups * 100, 2) if lookups else 0.0,
        }

    def _evict(self) -> None:
        # min() keeps the first minimum it sees, i.e. the oldest insertion.
        victim = min(self._entries.values(), key=lambda entry: entry.access_count)
        del self._entries[victim.key]
        self.evictions += 1
        self._count("cache_evictions_total")
        self.logger.debug("Cache entry evicted", key=victim.key, access_count=victim.access_count)

    def _count(self, metric_name: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name)

    def _update_size(self) -> None:
        if self.metrics is not None:
            self.metrics.set_gauge("cache_entries", len(self._entries))
