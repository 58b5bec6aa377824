"""
Shared metrics configuration for the query cacher.
"""

from typing import Any, Dict, Optional

from prometheus_client import Counter, Histogram, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for the cacher."""

    def __init__(self, service_name: str = "cacher", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache metrics."""
        for name, description in (
            ("cache_hits_total", "Total cache hits"),
            ("cache_misses_total", "Total cache misses"),
            ("cache_writes_total", "Total cache writes"),
            ("cache_clears_total", "Total explicit cache clears"),
        ):
            self._metrics[name] = Counter(
                name,
                description,
                ["collection", "operation"],
                registry=self.registry
            )

        self._metrics["cache_invalid_payloads_total"] = Counter(
            "cache_invalid_payloads_total",
            "Total cached payloads discarded as undecodable",
            ["collection", "operation"],
            registry=self.registry
        )

        self._metrics["cache_lookup_duration_seconds"] = Histogram(
            "cache_lookup_duration_seconds",
            "Cached call duration in seconds",
            ["collection", "operation", "result"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)
