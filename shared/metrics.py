"""
Prometheus metrics for the Props entitlement services.

Each collector owns its registry, so several service instances (tests,
embedded apps) never collide on metric names.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _counter(self, name: str, description: str, labels=()):
        self._metrics[name] = Counter(name, description, list(labels), registry=self.registry)

    def _histogram(self, name: str, description: str, labels=()):
        self._metrics[name] = Histogram(name, description, list(labels), registry=self.registry)

    def _setup_metrics(self):
        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": self.service_name, "version": "1.0.0"})

        # HTTP surface
        self._counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status_code"])
        self._histogram("http_request_duration_seconds", "HTTP request duration in seconds", ["method", "endpoint"])
        self._counter("health_check_total", "Total health check requests", ["status"])
        self._counter("errors_total", "Total errors", ["error_type", "service"])

        # Entitlement decisions
        self._counter("entitlement_checks_total", "Total entitlement checks", ["decision"])
        self._histogram("entitlement_check_duration_seconds", "Entitlement check duration in seconds")
        self._counter("limit_check_fail_open_total", "Limit checks that failed open", ["resource"])
        self._counter("data_view_cache_lookups_total", "Data view cache lookups", ["result"])

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            metric = self._metrics.get(operation_name)
            if metric is not None:
                if labels:
                    metric = metric.labels(**labels)
                metric.observe(duration)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric; unknown names are ignored."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def sample_value(self, metric_name: str, **labels) -> float:
        """Read the current value of a counter sample from the registry."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
