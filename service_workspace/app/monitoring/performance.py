"""
Performance monitoring for the Workspace Service.

Every public operation runs inside ``PerformanceMonitor.track``; the monitor
keeps a bounded history of samples and errors, rolling aggregates for
``summary()``, and mirrors everything into prometheus through the shared
MetricsCollector.
"""

import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Deque, Dict, List, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.config import BaseConfig
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..results import ErrorInfo, OperationResult, ResultStatus


@dataclass
class PerformanceSample:
    """One observed operation."""
    operation: str
    duration_ms: float
    item_count: int
    success: bool
    timestamp: float
    slow: bool = False


@dataclass
class ErrorRecord:
    """One observed error."""
    kind: str
    message: str
    component: str
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0


@dataclass
class OperationTracker:
    """Handle yielded by ``track``; lets the caller amend the sample."""
    operation: str
    item_count: int = 0
    threshold_ms: float = 0.0
    success: bool = True

    def mark_failed(self) -> None:
        self.success = False


class PerformanceMonitor:
    """Records duration, outcome and item counts of monitored operations."""

    def __init__(
        self,
        config: Optional[BaseConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], float] = time.time
    ):
        config = config or BaseConfig()
        self.slow_threshold_ms = config.slow_operation_threshold_ms
        self.remote_threshold_ms = config.remote_call_threshold_ms
        self.sample_retention = config.sample_retention
        self.error_retention = config.error_retention
        self.metrics = metrics
        self.clock = clock
        self.wall_clock = wall_clock
        self.logger = get_logger("workspace.monitor")

        self.samples: Deque[PerformanceSample] = deque(maxlen=self.sample_retention)
        self.errors: Deque[ErrorRecord] = deque(maxlen=self.error_retention)
        self.started_at = wall_clock()
        self._cache = None

        # Lifetime aggregates, independent of retention
        self.total_operations = 0
        self.failed_operations = 0
        self.total_errors = 0
        self.slow_operations = 0
        self.total_duration_ms = 0.0

    def attach_cache(self, cache) -> None:
        """Include ``cache.stats()`` in summaries."""
        self._cache = cache

    @asynccontextmanager
    async def track(
        self,
        operation: str,
        item_count: int = 0,
        threshold_ms: Optional[float] = None
    ) -> AsyncIterator[OperationTracker]:
        """Time the enclosed block; exceptions are recorded and re-raised."""
        tracker = OperationTracker(
            operation=operation,
            item_count=item_count,
            threshold_ms=self.slow_threshold_ms if threshold_ms is None else threshold_ms
        )
        start = self.clock()
        try:
            yield tracker
        except Exception as exc:
            tracker.mark_failed()
            info = ErrorInfo.from_exception(exc)
            self.record_error(info.kind.value, info.message, operation, info.context)
            raise
        finally:
            self._record_sample(tracker, (self.clock() - start) * 1000.0)

    def record_result(self, tracker: OperationTracker, result: OperationResult) -> OperationResult:
        """Mark the tracked sample from an operation result and record its error."""
        if result.status != ResultStatus.SUCCESS:
            tracker.mark_failed()
        if result.error is not None:
            self.record_error(result.error.kind.value, result.error.message, tracker.operation, result.error.context)
        return result

    def record_error(
        self,
        kind: str,
        message: str,
        component: str,
        context: Optional[Dict[str, Any]] = None
    ) -> ErrorRecord:
        """Capture an error observed by any component."""
        record = ErrorRecord(
            kind=kind,
            message=message,
            component=component,
            context=dict(context or {}),
            timestamp=self.wall_clock()
        )
        self.errors.append(record)
        self.total_errors += 1
        if self.metrics is not None:
            self.metrics.record_error(kind, component)
        self.logger.warning("Operation error recorded", kind=kind, component=component, message=message)
        return record

    def _record_sample(self, tracker: OperationTracker, duration_ms: float) -> None:
        slow = duration_ms > tracker.threshold_ms
        sample = PerformanceSample(
            operation=tracker.operation,
            duration_ms=round(duration_ms, 3),
            item_count=tracker.item_count,
            success=tracker.success,
            timestamp=self.wall_clock(),
            slow=slow
        )
        self.samples.append(sample)

        self.total_operations += 1
        self.total_duration_ms += duration_ms
        if not tracker.success:
            self.failed_operations += 1
        if slow:
            self.slow_operations += 1
            self.logger.warning(
                "Slow operation detected",
                operation=tracker.operation,
                duration_ms=sample.duration_ms,
                threshold_ms=tracker.threshold_ms,
                item_count=tracker.item_count
            )

        if self.metrics is not None:
            self.metrics.record_operation(tracker.operation, tracker.success, duration_ms / 1000.0, slow)

    def prune(self, keep_samples: Optional[int] = None, keep_errors: Optional[int] = None) -> int:
        """Trim history to the newest entries; returns how many were dropped."""
        keep_samples = self.sample_retention if keep_samples is None else keep_samples
        keep_errors = self.error_retention if keep_errors is None else keep_errors
        dropped = 0
        while len(self.samples) > keep_samples:
            self.samples.popleft()
            dropped += 1
        while len(self.errors) > keep_errors:
            self.errors.popleft()
            dropped += 1
        return dropped

    def recent_errors(self, limit: int = 10) -> List[ErrorRecord]:
        return list(self.errors)[-limit:]

    def summary(self) -> Dict[str, Any]:
        """Rolling aggregates since the monitor was created."""
        operations = self.total_operations
        cache_stats = self._cache.stats() if self._cache is not None else None
        return {
            "total_operations": operations,
            "failed_operations": self.failed_operations,
            "total_errors": self.total_errors,
            "error_rate": round(self.failed_operations / operations * 100, 2) if operations else 0.0,
            "average_duration_ms": round(self.total_duration_ms / operations, 3) if operations else 0.0,
            "slow_operations": self.slow_operations,
            "runtime_seconds": round(self.wall_clock() - self.started_at, 3),
            "retained_samples": len(self.samples),
            "retained_errors": len(self.errors),
            "cache": cache_stats,
            "cache_hit_rate": cache_stats["hit_rate"] if cache_stats else 0.0,
        }
