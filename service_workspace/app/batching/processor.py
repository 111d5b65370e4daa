"""
Chunking and pacing layer for remote writes and provisioning calls.
"""

import asyncio
import time
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.config import BaseConfig
from shared.errors import RemoteUnavailable, ValidationError, WorkspaceLayerException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.base import RemoteHierarchicalStore, RemoteTableStore, WriteAck, WriteRequest
from ..caching import keys
from ..caching.smart_cache import SmartCache
from ..monitoring.performance import PerformanceMonitor
from ..results import ErrorInfo, ErrorKind, ItemResult, OperationResult, ResultStatus
from .operations import NODE_KIND_BY_OPERATION, Operation, OperationKind, StoreKind


class BatchProcessor:
    """Dispatches logical operations in bounded, paced chunks.

    Table store chunks become one ``batch_write`` call each. The hierarchical
    store has no batch endpoint, so each item of a chunk is sent on its own,
    but chunks are still paced. Items fail independently.
    """

    def __init__(
        self,
        table_store: RemoteTableStore,
        hierarchical_store: RemoteHierarchicalStore,
        cache: SmartCache,
        config: Optional[BaseConfig] = None,
        monitor: Optional[PerformanceMonitor] = None,
        metrics: Optional[MetricsCollector] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.table_store = table_store
        self.hierarchical_store = hierarchical_store
        self.cache = cache
        self.config = config or BaseConfig()
        self.monitor = monitor or PerformanceMonitor(self.config)
        self.metrics = metrics
        self.sleep = sleep
        self.clock = clock
        self.logger = get_logger("workspace.batch")

        self.physical_calls: Counter = Counter()
        self.items_processed: Counter = Counter()
        self._last_dispatch: Dict[StoreKind, float] = {}

        self._handlers = {
            OperationKind.CREATE_FOLDER: self._create_node,
            OperationKind.CREATE_FILE: self._create_node,
            OperationKind.SET_PERMISSIONS: self._set_permissions,
            OperationKind.MOVE_NODE: self._move_node,
            OperationKind.RENAME_NODE: self._rename_node,
        }

    async def process(self, operations: Sequence[Operation], store_kind: StoreKind) -> OperationResult:
        """Run ``operations`` against ``store_kind`` and report per-item outcomes."""
        store_kind = StoreKind(store_kind)
        operations = list(operations)
        size = self.config.batch_size_for(store_kind.value)
        chunks = [operations[i:i + size] for i in range(0, len(operations), size)]

        results: List[ItemResult] = []
        calls = 0
        async with self.monitor.track(
            f"batch_{store_kind.value}", len(operations), self.monitor.remote_threshold_ms
        ) as tracker:
            for number, chunk in enumerate(chunks):
                await self._pace(store_kind)
                if store_kind == StoreKind.TABLE:
                    chunk_results, chunk_calls = await self._dispatch_table(chunk, number * size)
                else:
                    chunk_results, chunk_calls = await self._dispatch_hierarchical(chunk, number * size)
                self._last_dispatch[store_kind] = self.clock()
                results.extend(chunk_results)
                calls += chunk_calls

            self.physical_calls[store_kind.value] += calls
            self.items_processed[store_kind.value] += len(results)
            result = self._summarize(results, store_kind, calls=calls, chunks=len(chunks))
            # Item errors are already recorded one by one.
            if result.status != ResultStatus.SUCCESS:
                tracker.mark_failed()
            return result

    async def _pace(self, store_kind: StoreKind) -> None:
        delay = self.config.chunk_delay_ms_for(store_kind.value) / 1000.0
        last = self._last_dispatch.get(store_kind)
        if last is None or delay <= 0:
            return
        wait = last + delay - self.clock()
        if wait > 0:
            await self.sleep(wait)

    async def _dispatch_table(self, chunk: List[Operation], first_index: int):
        results: Dict[int, ItemResult] = {}
        pending = []
        for offset, operation in enumerate(chunk):
            index = first_index + offset
            if operation.store_kind != StoreKind.TABLE:
                results[index] = self._mismatch(index, operation, StoreKind.TABLE)
                continue
            pending.append((index, operation))

        if not pending:
            return [results[i] for i in sorted(results)], 0

        requests = [
            WriteRequest(
                key=operation.payload.key,
                rows=operation.payload.rows,
                append=operation.kind == OperationKind.APPEND_ROWS
            )
            for _, operation in pending
        ]
        try:
            outcomes = await self.table_store.batch_write(requests)
        except WorkspaceLayerException as exc:
            self.logger.warning("Batch call failed", store_kind="table", requests=len(requests), error=exc.message)
            outcomes = [exc] * len(requests)
        self._count_call(StoreKind.TABLE)

        for position, (index, operation) in enumerate(pending):
            outcome = outcomes[position] if position < len(outcomes) else None
            if isinstance(outcome, WriteAck):
                self.cache.delete_matching(keys.references_tab(keys.tab_of(operation.payload.key)))
                results[index] = self._succeeded(index, operation, outcome)
            elif isinstance(outcome, Exception):
                results[index] = self._failed(index, operation, outcome)
            else:
                missing = RemoteUnavailable(
                    self.table_store.name, "No outcome returned for request", {"key": operation.payload.key}
                )
                results[index] = self._failed(index, operation, missing)
        return [results[i] for i in sorted(results)], 1

    async def _dispatch_hierarchical(self, chunk: List[Operation], first_index: int):
        results: List[ItemResult] = []
        for offset, operation in enumerate(chunk):
            index = first_index + offset
            if operation.store_kind != StoreKind.HIERARCHICAL:
                results.append(self._mismatch(index, operation, StoreKind.HIERARCHICAL))
                continue
            handler = self._handlers[operation.kind]
            try:
                data = await handler(operation)
            except WorkspaceLayerException as exc:
                results.append(self._failed(index, operation, exc))
            else:
                results.append(self._succeeded(index, operation, data))
        self._count_call(StoreKind.HIERARCHICAL)
        return results, 1

    async def _create_node(self, operation: Operation) -> str:
        payload = operation.payload
        node_kind = NODE_KIND_BY_OPERATION[operation.kind]
        node_id = await self.hierarchical_store.create_child(
            payload.parent_id, payload.name, node_kind, payload.content
        )
        self.cache.set(keys.node_key(payload.parent_id, payload.name), node_id, self.config.existence_ttl_ms)
        if self.metrics:
            self.metrics.increment_counter("remote_creates_total", kind=node_kind.value)
        return node_id

    async def _set_permissions(self, operation: Operation) -> str:
        payload = operation.payload
        await self.hierarchical_store.set_permissions(payload.node_id, payload.spec)
        return payload.node_id

    async def _move_node(self, operation: Operation) -> str:
        payload = operation.payload
        await self.hierarchical_store.move(payload.node_id, payload.new_parent_id)
        self._invalidate_nodes(payload.old_parent_id, payload.new_parent_id)
        return payload.node_id

    async def _rename_node(self, operation: Operation) -> str:
        payload = operation.payload
        await self.hierarchical_store.rename(payload.node_id, payload.new_name)
        self._invalidate_nodes(payload.parent_id)
        return payload.node_id

    def _invalidate_nodes(self, *parent_ids: Optional[str]) -> int:
        # Without every parent id, any cached lookup may resolve to the node.
        if not all(parent_ids):
            return self.cache.delete_matching(lambda key: key.startswith(f"{keys.NODE_PREFIX}:"))
        return self.cache.delete_matching(keys.references_node(*parent_ids))

    def _succeeded(self, index: int, operation: Operation, data: Any) -> ItemResult:
        if self.metrics:
            self.metrics.increment_counter("batch_items_total", store_kind=operation.store_kind.value, outcome="success")
        return ItemResult(index=index, operation=operation.kind.value, success=True, data=data)

    def _failed(self, index: int, operation: Operation, exc: Exception) -> ItemResult:
        error = ErrorInfo.from_exception(exc, {"index": index, "operation": operation.kind.value})
        self.monitor.record_error(error.kind.value, error.message, "batch", error.context)
        if self.metrics:
            self.metrics.increment_counter("batch_items_total", store_kind=operation.store_kind.value, outcome="failure")
        return ItemResult(index=index, operation=operation.kind.value, success=False, error=error)

    def _mismatch(self, index: int, operation: Operation, store_kind: StoreKind) -> ItemResult:
        exc = ValidationError(
            f"{operation.kind.value} cannot be sent to the {store_kind.value} store",
            {"expected_store": operation.store_kind.value}
        )
        return self._failed(index, operation, exc)

    def _count_call(self, store_kind: StoreKind) -> None:
        if self.metrics:
            self.metrics.increment_counter("batch_calls_total", store_kind=store_kind.value)

    def _summarize(self, results: List[ItemResult], store_kind: StoreKind, calls: int, chunks: int) -> OperationResult:
        succeeded = [item for item in results if item.success]
        failed = [item for item in results if not item.success]
        meta = {"store_kind": store_kind.value, "physical_calls": calls, "chunks": chunks, "items": len(results)}

        self.logger.info(
            "Batch processed",
            store_kind=store_kind.value,
            items=len(results),
            failed=len(failed),
            physical_calls=calls
        )

        if not failed:
            return OperationResult.success(results, **meta)
        if succeeded:
            return OperationResult.partial(succeeded, failed, **meta)
        return OperationResult(
            status=ResultStatus.ERROR,
            failed=failed,
            error=ErrorInfo(
                kind=ErrorKind.PARTIAL_BATCH_FAILURE,
                message=f"All {len(failed)} operations failed",
                context={"failed_indexes": [item.index for item in failed]}
            ),
            meta=meta
        )

    def stats(self) -> Dict[str, Any]:
        return {
            "physical_calls": dict(self.physical_calls),
            "items_processed": dict(self.items_processed),
        }
