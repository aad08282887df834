"""Metrics collection for account search.

Thin convenience wrapper around ``prometheus_client`` so the search pipeline
records request, exact-match, backend and cache metrics consistently.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per service (can be injected for tests)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class SearchMetricsCollector:
    """Centralized metrics collection for account search.

    Parameters
    - service_name: Logical name of the service recording search metrics
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.search_requests = Counter(
            'account_search_requests_total',
            'Total account search requests',
            ['backend'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'account_search_duration_seconds',
            'Account search duration',
            ['backend'],
            registry=self.registry
        )

        self.exact_match_lookups = Counter(
            'account_search_exact_match_total',
            'Exact match lookups partitioned by outcome',
            ['outcome'],
            registry=self.registry
        )

        self.backend_failures = Counter(
            'account_search_backend_failures_total',
            'Ranked search failures raised by a backend',
            ['backend'],
            registry=self.registry
        )

        self.cache_hits = Counter(
            'account_search_cache_hits_total',
            'Total cache hits',
            ['cache_type'],
            registry=self.registry
        )

        self.cache_misses = Counter(
            'account_search_cache_misses_total',
            'Total cache misses',
            ['cache_type'],
            registry=self.registry
        )

    def record_search(self, backend: str, duration: float) -> None:
        """Record a completed search; duration is in seconds."""
        self.search_requests.labels(backend=backend).inc()
        self.search_duration.labels(backend=backend).observe(duration)

    def record_exact_match(self, outcome: str) -> None:
        """Record an exact match lookup (``found``, ``missing`` or ``failed``)."""
        self.exact_match_lookups.labels(outcome=outcome).inc()

    def record_backend_failure(self, backend: str) -> None:
        self.backend_failures.labels(backend=backend).inc()

    def record_cache_hit(self, cache_type: str) -> None:
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        self.cache_misses.labels(cache_type=cache_type).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


_metrics_collector: Optional[SearchMetricsCollector] = None


def get_metrics_collector(service_name: str = "account-search") -> SearchMetricsCollector:
    """Get or create the process-wide metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = SearchMetricsCollector(service_name)
    return _metrics_collector
