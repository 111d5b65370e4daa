"""
Cache-first multi-column search over table store ranges.
"""

from typing import Any, Mapping, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.config import BaseConfig
from shared.errors import WorkspaceLayerException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..caching import keys
from ..caching.table_reader import CachedTableReader
from ..results import ErrorKind, OperationResult
from .index import SearchIndex


class TableSearch:
    """Answers column criteria queries from a lazily built, cached index."""

    def __init__(
        self,
        reader: CachedTableReader,
        config: Optional[BaseConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.reader = reader
        self.cache = reader.cache
        self.config = config or BaseConfig()
        self.metrics = metrics
        self.logger = get_logger("workspace.search")

    async def index_for(self, range_key: str) -> SearchIndex:
        """Return the cached index for ``range_key``, building it on a miss."""
        cache_key = keys.index_key(range_key)
        index = self.cache.get(cache_key)
        if index is None:
            snapshot = await self.reader.read(range_key)
            index = SearchIndex.from_snapshot(snapshot)
            self.cache.set(cache_key, index, self.config.index_ttl_ms)
            if self.metrics:
                self.metrics.increment_counter("index_builds_total")
            self.logger.debug("Search index built", range_key=range_key, rows=index.row_count)
        return index

    async def search(self, range_key: str, criteria: Mapping[str, Any]) -> OperationResult:
        """Rows of ``range_key`` matching every criterion, as ``{row, values}`` records."""
        result_key = keys.search_key(range_key, criteria)
        cached = self.cache.get(result_key)
        if cached is not None:
            return OperationResult.success(cached, cached=True, matches=len(cached))

        try:
            index = await self.index_for(range_key)
        except WorkspaceLayerException as exc:
            return OperationResult.from_exception(exc, {"range_key": range_key})

        records = [index.record(row_number) for row_number in sorted(index.query(criteria))]
        self.cache.set(result_key, records, self.config.search_result_ttl_ms)
        return OperationResult.success(records, cached=False, matches=len(records))

    async def find_one(self, range_key: str, criteria: Mapping[str, Any]) -> OperationResult:
        """First matching record, or a NotFound result."""
        result = await self.search(range_key, criteria)
        if not result.ok:
            return result
        if not result.data:
            return OperationResult.failure(
                ErrorKind.NOT_FOUND,
                "No row matches the criteria",
                {"range_key": range_key, "criteria": dict(criteria)}
            )
        return OperationResult.success(result.data[0], **result.meta)

    def invalidate(self, range_key: str) -> int:
        """Drop snapshot, index and cached results for the tab of ``range_key``."""
        return self.reader.invalidate(range_key)

    def drop_indexes(self) -> int:
        """Discard every cached index and search result; snapshots are kept."""
        prefixes = (f"{keys.INDEX_PREFIX}:", f"{keys.SEARCH_PREFIX}:")
        return self.cache.delete_matching(lambda key: key.startswith(prefixes))
