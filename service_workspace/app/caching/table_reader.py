"""
Cache-first reads of table store ranges.
"""

from typing import Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.logging import get_logger
from ..adapters.base import RemoteTableStore, Rows
from . import keys
from .smart_cache import SmartCache

_MISSING = object()


class CachedTableReader:
    """Serves range reads from SmartCache, filling it from the table store."""

    def __init__(self, store: RemoteTableStore, cache: SmartCache, ttl_ms: Optional[int] = None):
        self.store = store
        self.cache = cache
        self.ttl_ms = ttl_ms
        self.logger = get_logger("workspace.reader")

    async def read(self, key: str, refresh: bool = False) -> Rows:
        """Return the rows of ``key``; ``refresh`` bypasses the cached copy.

        RemoteUnavailable from the store propagates and nothing is cached.
        """
        cache_key = keys.range_key(key)
        if not refresh:
            cached = self.cache.get(cache_key, _MISSING)
            if cached is not _MISSING:
                return cached
        else:
            self.invalidate(key)

        rows = await self.store.read_range(key)
        self.cache.set(cache_key, rows, self.ttl_ms)
        self.logger.debug("Range fetched", range_key=key, rows=len(rows))
        return rows

    def invalidate(self, key: str) -> int:
        """Drop the cached range, index and search results for the tab of ``key``."""
        return self.cache.delete_matching(keys.references_tab(keys.tab_of(key)))
