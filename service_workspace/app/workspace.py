"""
WorkspaceSync: the composition layer.

Owns exactly one SmartCache, BatchProcessor, TableSearch, ResourceProvisioner
and PerformanceMonitor, wired to the two remote stores it is given. Every
public method runs inside ``PerformanceMonitor.track`` and returns an
OperationResult; layer exceptions never escape.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import BaseConfig
from shared.errors import ValidationError, WorkspaceLayerException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .adapters.base import PermissionsSpec, RemoteHierarchicalStore, RemoteTableStore, Rows
from .batching.operations import Operation, StoreKind
from .batching.processor import BatchProcessor
from .caching.smart_cache import SmartCache
from .caching.table_reader import CachedTableReader
from .monitoring.performance import PerformanceMonitor
from .provisioning.identifiers import extract_folder_id
from .provisioning.provisioner import ResourceProvisioner, WorkspaceRoots
from .provisioning.tree import ORDER_LAYOUT, ROOT_LAYOUT, load_layout
from .results import ErrorInfo, ErrorKind, ItemResult, OperationResult, ResultStatus
from .search.index import is_blank
from .search.table_search import TableSearch

ORDER_STATUS_COLUMN = "Order_Status"
FOLDER_LINK_COLUMN = "Drive_Folder_Link"
ORDER_ID_COLUMN = "Order_ID"
DELIVERED = "Delivered"


class WorkspaceSync:
    """Fast, consistent local view of the table and hierarchical stores."""

    def __init__(
        self,
        table_store: RemoteTableStore,
        hierarchical_store: RemoteHierarchicalStore,
        config: Optional[BaseConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        roots: Optional[WorkspaceRoots] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        **provisioner_options
    ):
        self.config = config or BaseConfig()
        self.table_store = table_store
        self.hierarchical_store = hierarchical_store
        self.metrics = metrics
        self.logger = get_logger("workspace.sync")

        self.cache = SmartCache(
            max_entries=self.config.cache_max_entries,
            default_ttl_ms=self.config.cache_ttl_ms,
            clock=clock,
            metrics=metrics
        )
        self.monitor = PerformanceMonitor(self.config, metrics)
        self.monitor.attach_cache(self.cache)
        self.processor = BatchProcessor(
            table_store,
            hierarchical_store,
            self.cache,
            config=self.config,
            monitor=self.monitor,
            metrics=metrics,
            sleep=sleep,
            clock=clock
        )
        self.reader = CachedTableReader(table_store, self.cache, self.config.cache_ttl_ms)
        self.table_search = TableSearch(self.reader, self.config, metrics)

        root_layout = load_layout(self.config.root_layout_file) if self.config.root_layout_file else ROOT_LAYOUT
        order_layout = load_layout(self.config.order_layout_file) if self.config.order_layout_file else ORDER_LAYOUT
        self.provisioner = ResourceProvisioner(
            hierarchical_store,
            self.processor,
            self.cache,
            config=self.config,
            roots=roots,
            root_layout=root_layout,
            order_layout=order_layout,
            **provisioner_options
        )

    # Table store

    async def read_range(self, key: str, refresh: bool = False) -> OperationResult:
        """Cache-first read of a range."""
        async with self.monitor.track("read_range") as tracker:
            try:
                rows = await self.reader.read(key, refresh=refresh)
            except WorkspaceLayerException as exc:
                return self.monitor.record_result(tracker, OperationResult.from_exception(exc, {"range_key": key}))
            tracker.item_count = len(rows)
            return OperationResult.success(rows)

    async def write_range(self, key: str, rows: Rows) -> OperationResult:
        return await self.write_ranges([(key, rows)])

    async def write_ranges(self, writes: Sequence[Tuple[str, Rows]]) -> OperationResult:
        """Overwrite several ranges, batched into as few calls as possible."""
        operations = [Operation.write_range(key, rows) for key, rows in writes]
        return await self._run("write_ranges", operations, StoreKind.TABLE)

    async def bulk_insert(self, key: str, rows: Rows) -> OperationResult:
        """Append ``rows`` in chunks of ``append_chunk_rows``."""
        size = self.config.append_chunk_rows
        operations = [Operation.append_rows(key, rows[i:i + size]) for i in range(0, len(rows), size)]
        return await self._run("bulk_insert", operations, StoreKind.TABLE)

    async def _run(self, name: str, operations: List[Operation], store_kind: StoreKind) -> OperationResult:
        async with self.monitor.track(name, len(operations), self.monitor.remote_threshold_ms) as tracker:
            result = await self.processor.process(operations, store_kind)
            return self.monitor.record_result(tracker, result)

    # Search

    async def search(self, range_key: str, criteria: Mapping[str, Any]) -> OperationResult:
        async with self.monitor.track("search") as tracker:
            result = await self.table_search.search(range_key, criteria)
            if result.ok:
                tracker.item_count = len(result.data)
            return self.monitor.record_result(tracker, result)

    async def find_one(self, range_key: str, criteria: Mapping[str, Any]) -> OperationResult:
        async with self.monitor.track("find_one") as tracker:
            return self.monitor.record_result(tracker, await self.table_search.find_one(range_key, criteria))

    # Hierarchical store

    async def initialize_workspace(self, root_name: Optional[str] = None, parent_id: Optional[str] = None) -> OperationResult:
        async with self.monitor.track("initialize_workspace", threshold_ms=self.monitor.remote_threshold_ms) as tracker:
            result = await self.provisioner.initialize_workspace(root_name, parent_id)
            return self.monitor.record_result(tracker, result)

    async def provision_order(
        self,
        identifier: str,
        client_label: str,
        permissions: Optional[PermissionsSpec] = None,
        **options
    ) -> OperationResult:
        """Provision the folder tree of one order (see ResourceProvisioner.provision_resource)."""
        async with self.monitor.track("provision_order", 1, self.monitor.remote_threshold_ms) as tracker:
            result = await self.provisioner.provision_resource(identifier, client_label, permissions, **options)
            return self.monitor.record_result(tracker, result)

    async def archive_order(self, folder: str, **options) -> OperationResult:
        """Archive an order folder given its id or its folder link."""
        async with self.monitor.track("archive_order", 1, self.monitor.remote_threshold_ms) as tracker:
            folder_id = extract_folder_id(folder) if "/" in folder else folder
            if not folder_id:
                result = OperationResult.from_exception(ValidationError("No folder id in link", {"folder": folder}))
            else:
                result = await self.provisioner.archive_resource(folder_id, **options)
            return self.monitor.record_result(tracker, result)

    async def archive_completed_orders(self, range_key: Optional[str] = None, **options) -> OperationResult:
        """Archive the folder of every delivered order that has a folder link."""
        range_key = range_key or self.config.orders_range
        async with self.monitor.track("archive_completed_orders", threshold_ms=self.monitor.remote_threshold_ms) as tracker:
            delivered = await self.search(range_key, {ORDER_STATUS_COLUMN: DELIVERED})
            if not delivered.ok:
                return self._settle(tracker, delivered)

            results: List[ItemResult] = []
            skipped = 0
            for record in delivered.data:
                values = record["values"]
                link = values.get(FOLDER_LINK_COLUMN)
                if is_blank(link):
                    skipped += 1
                    continue
                label = values.get(ORDER_ID_COLUMN) or f"row {record['row']}"
                outcome = await self.archive_order(str(link), **options)
                if outcome.ok:
                    results.append(ItemResult(index=record["row"], operation="archive_order", success=True, data=label))
                else:
                    error = outcome.error or ErrorInfo(kind=ErrorKind.PARTIAL_BATCH_FAILURE, message="Archive incomplete")
                    results.append(ItemResult(index=record["row"], operation="archive_order", success=False, error=error))

            tracker.item_count = len(results)
            succeeded = [item for item in results if item.success]
            failed = [item for item in results if not item.success]
            self.logger.info("Completed orders archived", archived=len(succeeded), failed=len(failed), skipped=skipped)
            if not failed:
                return self._settle(tracker, OperationResult.success(succeeded, skipped=skipped))
            if succeeded:
                return self._settle(tracker, OperationResult.partial(succeeded, failed, skipped=skipped))
            return self._settle(tracker, OperationResult(
                status=ResultStatus.ERROR,
                failed=failed,
                error=ErrorInfo(
                    kind=ErrorKind.PARTIAL_BATCH_FAILURE,
                    message=f"All {len(failed)} archives failed",
                    context={"rows": [item.index for item in failed]}
                ),
                meta={"skipped": skipped}
            ))

    # Maintenance

    async def warm_cache(self, range_keys: Optional[Sequence[str]] = None) -> OperationResult:
        """Pre-load common ranges; failures are reported, never raised."""
        range_keys = list(range_keys or [self.config.orders_range])
        async with self.monitor.track("warm_cache", len(range_keys)) as tracker:
            warmed, failed = [], []
            for key in range_keys:
                result = await self.read_range(key)
                if result.ok:
                    warmed.append(key)
                else:
                    failed.append({"range_key": key, "error": result.error.message})

            self.logger.info("Cache warmed", warmed=len(warmed), failed=len(failed))
            if not failed:
                return self._settle(tracker, OperationResult.success(warmed))
            return self._settle(tracker, OperationResult.partial(warmed, failed))

    async def run_maintenance(self) -> OperationResult:
        """Purge expired entries, drop indexes, prune history and log a summary row."""
        async with self.monitor.track("run_maintenance") as tracker:
            purged = self.cache.purge_expired()
            dropped = self.table_search.drop_indexes()
            pruned = self.monitor.prune()
            summary = self.monitor.summary()

            row = [
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.monitor.wall_clock())),
                "System Monitor",
                summary["average_duration_ms"],
                summary["total_operations"],
                "Good" if summary["error_rate"] < 1 else "Warning",
                summary["cache_hit_rate"],
            ]
            logged = await self.processor.process(
                [Operation.append_rows(self.config.performance_log_range, [row])], StoreKind.TABLE
            )

            report = {
                "expired_purged": purged,
                "indexes_dropped": dropped,
                "history_pruned": pruned,
                "summary_logged": logged.ok,
            }
            self.logger.info("Maintenance completed", **report)
            if not logged.ok:
                return self._settle(tracker, OperationResult.partial([report], logged.failed))
            return self._settle(tracker, OperationResult.success(report))

    @staticmethod
    def _settle(tracker, result: OperationResult) -> OperationResult:
        # Nested operations have already recorded their own errors.
        if result.status != ResultStatus.SUCCESS:
            tracker.mark_failed()
        return result

    def stats(self) -> Dict[str, Any]:
        return {
            "monitor": self.monitor.summary(),
            "cache": self.cache.stats(),
            "batch": self.processor.stats(),
        }
