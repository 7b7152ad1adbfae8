"""Prometheus metrics collection module."""

from typing import Any, Dict, List, Optional

from prometheus_client import Counter, Gauge, Histogram


class MetricsRegistry:
    """Registry for Prometheus metrics.

    Registering the same name twice returns the existing metric, so modules
    can be re-imported without tripping the collector registry.
    """

    def __init__(self):
        """Initialize metrics registry."""
        self._metrics: Dict[str, Any] = {}

    def register_counter(
        self, name: str, description: str, labels: Optional[List[str]] = None
    ) -> Counter:
        """Register a new counter metric."""
        if name in self._metrics:
            return self._metrics[name]

        counter = Counter(name, description, labels or [])
        self._metrics[name] = counter
        return counter

    def register_gauge(
        self, name: str, description: str, labels: Optional[List[str]] = None
    ) -> Gauge:
        """Register a new gauge metric."""
        if name in self._metrics:
            return self._metrics[name]

        gauge = Gauge(name, description, labels or [])
        self._metrics[name] = gauge
        return gauge

    def register_histogram(
        self, name: str, description: str, labels: Optional[List[str]] = None
    ) -> Histogram:
        """Register a new histogram metric."""
        if name in self._metrics:
            return self._metrics[name]

        histogram = Histogram(name, description, labels or [])
        self._metrics[name] = histogram
        return histogram

    def get_metric(self, name: str) -> Any:
        """Get a registered metric by name."""
        return self._metrics.get(name)

    def increment_counter(
        self, name: str, labels: Optional[Dict[str, str]] = None, amount: float = 1
    ) -> None:
        """Increment a counter, optionally for a label set."""
        counter = self._metrics[name]
        if labels:
            counter.labels(**labels).inc(amount)
        else:
            counter.inc(amount)

    def set_gauge(self, name: str, value: float) -> None:
        self._metrics[name].set(value)

    def observe_histogram(self, name: str, value: float) -> None:
        self._metrics[name].observe(value)


# Global metrics registry
metrics = MetricsRegistry()

metrics.register_counter(
    "feed_aggregator_submissions_total",
    "Submissions processed by the aggregator",
    ["outcome"],
)
metrics.register_counter(
    "feed_aggregator_cache_writes_total", "Entries written to the cache store"
)
metrics.register_counter(
    "feed_aggregator_store_write_failures_total", "Failed atomic writes to the cache store"
)
metrics.register_gauge("feed_aggregator_cached_items", "Items in the last rendered feed")
metrics.register_histogram(
    "feed_aggregator_flush_duration_seconds", "Duration of pending entry flushes"
)
