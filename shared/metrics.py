"""
Shared metrics configuration for the Trade Operations Workspace Layer.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, generate_latest


class MetricsCollector:
    """Centralized metrics collector for the workspace layer.

    Each collector owns its own ``CollectorRegistry`` unless one is passed in,
    so several collectors (one per test case, for instance) never clash on
    metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_checks_total"] = Counter(
            "health_checks_total",
            "Total health checks",
            ["status"],
            registry=self.registry
        )

        # Operation metrics
        self._metrics["operations_total"] = Counter(
            "operations_total",
            "Total monitored operations",
            ["operation", "status"],
            registry=self.registry
        )

        self._metrics["operation_duration_seconds"] = Histogram(
            "operation_duration_seconds",
            "Monitored operation duration in seconds",
            ["operation"],
            registry=self.registry
        )

        self._metrics["slow_operations_total"] = Counter(
            "slow_operations_total",
            "Operations exceeding their latency threshold",
            ["operation"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "component"],
            registry=self.registry
        )

        # Cache metrics
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            registry=self.registry
        )

        self._metrics["cache_evictions_total"] = Counter(
            "cache_evictions_total",
            "Total cache evictions",
            registry=self.registry
        )

        self._metrics["cache_entries"] = Gauge(
            "cache_entries",
            "Live cache entries",
            registry=self.registry
        )

        # Batch metrics
        self._metrics["batch_calls_total"] = Counter(
            "batch_calls_total",
            "Physical batch calls dispatched",
            ["store_kind"],
            registry=self.registry
        )

        self._metrics["batch_items_total"] = Counter(
            "batch_items_total",
            "Logical batch items processed",
            ["store_kind", "outcome"],
            registry=self.registry
        )

        self._metrics["remote_creates_total"] = Counter(
            "remote_creates_total",
            "Nodes created in the hierarchical store",
            ["kind"],
            registry=self.registry
        )

        self._metrics["index_builds_total"] = Counter(
            "index_builds_total",
            "Search index builds",
            registry=self.registry
        )

    def export(self) -> bytes:
        """Render the registry in the Prometheus exposition format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        """Record health check result."""
        self._metrics["health_checks_total"].labels(status=status).inc()

    def record_operation(self, operation: str, success: bool, duration: float, slow: bool = False):
        """Record a monitored operation."""
        status = "success" if success else "failure"
        self._metrics["operations_total"].labels(operation=operation, status=status).inc()
        self._metrics["operation_duration_seconds"].labels(operation=operation).observe(duration)
        if slow:
            self._metrics["slow_operations_total"].labels(operation=operation).inc()

    def record_error(self, error_type: str, component: Optional[str] = None):
        """Record error metrics."""
        self._metrics["errors_total"].labels(
            error_type=error_type,
            component=component or self.service_name
        ).inc()

    def increment_counter(self, metric_name: str, amount: float = 1, **labels):
        """Increment a counter metric."""
        with self._lock:
            metric = self._metrics.get(metric_name)
            if metric is None:
                return
            if labels:
                metric = metric.labels(**labels)
            metric.inc(amount)

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        if labels:
            metric = metric.labels(**labels)
        metric.set(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
