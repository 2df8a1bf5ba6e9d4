"""
Shared metrics configuration for the social graph sync layer.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Prometheus metrics for cache, fetch and mutation activity.

    Each collector owns its registry unless one is injected, so several
    sessions in one process never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None, enabled: bool = True):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self.enabled = enabled
        self._metrics: Dict[str, Any] = {}
        if enabled:
            self._setup_metrics()

    def _setup_metrics(self):
        """Set up sync layer metrics."""
        self._metrics["cache_reads_total"] = Counter(
            "sync_cache_reads_total",
            "Total cache reads by outcome",
            ["domain", "result"],
            registry=self.registry
        )

        self._metrics["remote_fetches_total"] = Counter(
            "sync_remote_fetches_total",
            "Total remote fetches issued",
            ["domain", "status"],
            registry=self.registry
        )

        self._metrics["remote_fetch_duration_seconds"] = Histogram(
            "sync_remote_fetch_duration_seconds",
            "Remote fetch duration in seconds",
            ["domain"],
            registry=self.registry
        )

        self._metrics["invalidations_total"] = Counter(
            "sync_invalidations_total",
            "Total cache entries marked stale",
            ["domain"],
            registry=self.registry
        )

        self._metrics["mutations_total"] = Counter(
            "sync_mutations_total",
            "Total mutations by kind and outcome",
            ["kind", "outcome"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "sync_errors_total",
            "Total classified errors",
            ["error_type"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def get_sample_value(self, metric_name: str, **labels) -> float:
        """Read back a sample from this collector's registry (0.0 if unset)."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)

    def record_cache_read(self, domain: str, result: str):
        """Record a cache read (hit, miss or joined)."""
        self.increment_counter("cache_reads_total", domain=domain, result=result)

    def record_fetch(self, domain: str, status: str, duration: float):
        """Record a completed remote fetch."""
        self.increment_counter("remote_fetches_total", domain=domain, status=status)
        self.observe_histogram("remote_fetch_duration_seconds", duration, domain=domain)

    def record_invalidation(self, domain: str):
        """Record one entry marked stale."""
        self.increment_counter("invalidations_total", domain=domain)

    def record_mutation(self, kind: str, outcome: str):
        """Record a finished mutation."""
        self.increment_counter("mutations_total", kind=kind, outcome=outcome)

    def record_error(self, error_type: str):
        """Record error metrics."""
        self.increment_counter("errors_total", error_type=error_type)

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start_time
            self.observe_histogram(operation_name, duration, **labels)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)


def get_metrics_collector(
    service_name: str,
    registry: Optional[CollectorRegistry] = None,
    enabled: bool = True,
) -> MetricsCollector:
    """Get a metrics collector for the sync layer."""
    return MetricsCollector(service_name, registry, enabled)
