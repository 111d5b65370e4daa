"""
Unit tests for PerformanceMonitor.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import NotFound, RemoteUnavailable
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock, test_environment
from service_workspace.app.caching.smart_cache import SmartCache
from service_workspace.app.monitoring.performance import PerformanceMonitor
from service_workspace.app.results import ErrorKind, OperationResult


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    @pytest.fixture
    def clock(self):
        return FakeClock(start=0.0)

    @pytest.fixture
    def wall_clock(self):
        return FakeClock(start=1_700_000_000.0)

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("workspace-test")

    @pytest.fixture
    def monitor(self, clock, wall_clock, metrics):
        """Create a monitor with a 100ms slow threshold and short retention."""
        config = test_environment.make_config(
            slow_operation_threshold_ms=100,
            remote_call_threshold_ms=50,
            sample_retention=3,
            error_retention=2
        )
        return PerformanceMonitor(config, metrics, clock=clock, wall_clock=wall_clock)

    @pytest.mark.asyncio
    async def test_track_records_sample(self, monitor, clock, metrics):
        """Test a tracked block produces one sample with its duration."""
        async with monitor.track("read_range", item_count=4):
            clock.advance(0.025)

        sample = monitor.samples[-1]
        assert sample.operation == "read_range"
        assert sample.duration_ms == pytest.approx(25.0)
        assert sample.item_count == 4
        assert sample.success is True
        assert sample.slow is False
        assert metrics.registry.get_sample_value(
            "operations_total", {"operation": "read_range", "status": "success"}
        ) == 1

    @pytest.mark.asyncio
    async def test_slow_operation_is_flagged(self, monitor, clock, metrics):
        """Test crossing the threshold marks the sample slow."""
        async with monitor.track("search"):
            clock.advance(0.150)

        assert monitor.samples[-1].slow is True
        assert monitor.slow_operations == 1
        assert metrics.registry.get_sample_value("slow_operations_total", {"operation": "search"}) == 1

    @pytest.mark.asyncio
    async def test_threshold_override(self, monitor, clock):
        """Test a per-call threshold replaces the default."""
        async with monitor.track("bulk_insert", threshold_ms=monitor.remote_threshold_ms):
            clock.advance(0.075)

        assert monitor.samples[-1].slow is True

    @pytest.mark.asyncio
    async def test_tracker_can_amend_sample(self, monitor):
        """Test the yielded tracker sets item count and outcome."""
        async with monitor.track("search") as tracker:
            tracker.item_count = 7
            tracker.mark_failed()

        assert monitor.samples[-1].item_count == 7
        assert monitor.failed_operations == 1

    @pytest.mark.asyncio
    async def test_exception_is_recorded_and_reraised(self, monitor, metrics):
        """Test an escaping exception becomes an error record."""
        with pytest.raises(RemoteUnavailable):
            async with monitor.track("read_range"):
                raise RemoteUnavailable("memory-table", "read failed")

        assert monitor.samples[-1].success is False
        record = monitor.recent_errors()[-1]
        assert record.kind == ErrorKind.REMOTE_UNAVAILABLE.value
        assert record.component == "read_range"
        assert record.context["store"] == "memory-table"
        assert metrics.registry.get_sample_value(
            "errors_total", {"error_type": "RemoteUnavailable", "component": "read_range"}
        ) == 1

    @pytest.mark.asyncio
    async def test_record_result(self, monitor):
        """Test error results fail the sample and are recorded."""
        async with monitor.track("find_one") as tracker:
            result = monitor.record_result(tracker, OperationResult.from_exception(NotFound("no row")))

        assert result.error_kind == ErrorKind.NOT_FOUND
        assert monitor.samples[-1].success is False
        assert monitor.recent_errors()[-1].kind == "NotFound"

    @pytest.mark.asyncio
    async def test_partial_result_fails_sample_without_error(self, monitor):
        """Test a partial success counts as failed but records no error."""
        async with monitor.track("bulk_insert") as tracker:
            monitor.record_result(tracker, OperationResult.partial(["a"], ["b"]))

        assert monitor.failed_operations == 1
        assert monitor.total_errors == 0

    @pytest.mark.asyncio
    async def test_retention_is_bounded(self, monitor):
        """Test history keeps the newest entries while aggregates keep counting."""
        for number in range(5):
            async with monitor.track(f"op{number}"):
                pass
            monitor.record_error("RemoteUnavailable", f"failure {number}", "batch")

        assert [sample.operation for sample in monitor.samples] == ["op2", "op3", "op4"]
        assert [record.message for record in monitor.errors] == ["failure 3", "failure 4"]
        assert monitor.total_operations == 5
        assert monitor.total_errors == 5

    @pytest.mark.asyncio
    async def test_prune(self, monitor):
        """Test pruning below the retention limit."""
        for number in range(3):
            async with monitor.track(f"op{number}"):
                pass

        assert monitor.prune(keep_samples=1, keep_errors=0) == 2
        assert len(monitor.samples) == 1
        assert monitor.prune() == 0

    @pytest.mark.asyncio
    async def test_summary(self, monitor, clock, wall_clock):
        """Test aggregate statistics and the attached cache hit rate."""
        cache = SmartCache(clock=clock)
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        monitor.attach_cache(cache)

        async with monitor.track("read_range"):
            clock.advance(0.010)
        async with monitor.track("search") as tracker:
            clock.advance(0.030)
            tracker.mark_failed()
        wall_clock.advance(12)

        summary = monitor.summary()

        assert summary["total_operations"] == 2
        assert summary["failed_operations"] == 1
        assert summary["error_rate"] == 50.0
        assert summary["average_duration_ms"] == pytest.approx(20.0)
        assert summary["runtime_seconds"] == pytest.approx(12.0)
        assert summary["cache_hit_rate"] == 50.0
        assert summary["cache"]["size"] == 1

    def test_summary_when_idle(self, monitor):
        """Test an unused monitor reports zeros."""
        summary = monitor.summary()

        assert summary["total_operations"] == 0
        assert summary["error_rate"] == 0.0
        assert summary["average_duration_ms"] == 0.0
        assert summary["cache"] is None
        assert summary["cache_hit_rate"] == 0.0
