"""
Prometheus metrics for railcost runs.

Only low-cardinality labels: provider, outcome, rail, status. Never pair,
currency, amount or endpoint.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge
from prometheus_client.registry import CollectorRegistry

FORBIDDEN_LABELS = frozenset(
    {
        "pair",
        "currency",
        "amount",
        "endpoint",
        "path",
        "query",
        "profile_id",
        "token",
    }
)

REQUIRED_METRIC_NAMES = frozenset(
    {
        "railcost_requests_total",
        "railcost_retries_total",
        "railcost_records_total",
        "railcost_last_run_valid_records",
    }
)


class MetricsExporter:
    """
    Counters for provider requests and emitted records.

    Usage:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        exporter.record_request("wise", "ok")
        # generate_latest(registry) -> bytes
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

        self._requests = Counter(
            "railcost_requests",
            "Provider requests by final outcome",
            ["provider", "outcome"],
            registry=self._registry,
        )
        self._retries = Counter(
            "railcost_retries",
            "Retries issued after throttling or transient failures",
            ["provider"],
            registry=self._registry,
        )
        self._records = Counter(
            "railcost_records",
            "Output records by rail and status",
            ["rail", "status"],
            registry=self._registry,
        )
        self._last_valid = Gauge(
            "railcost_last_run_valid_records",
            "Number of status=ok records in the most recent run",
            ["rail"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, provider: str, outcome: str) -> None:
        self._requests.labels(provider=provider, outcome=outcome).inc()

    def record_retry(self, provider: str) -> None:
        self._retries.labels(provider=provider).inc()

    def record_records(self, rail: str, status_counts: dict[str, int]) -> None:
        """Count a finished run's records and publish its valid count."""
        for status, count in status_counts.items():
            if count > 0:
                self._records.labels(rail=rail, status=status).inc(count)
        self._last_valid.labels(rail=rail).set(status_counts.get("ok", 0))
