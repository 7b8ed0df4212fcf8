"""Connectors for quote and market-data providers."""

from railcost.connectors.backoff import (
    BackoffConfig,
    BackoffState,
    ProviderError,
    RateLimitError,
    RateLimitKind,
    RequestPacer,
    compute_backoff_delay,
    parse_retry_after,
)
from railcost.connectors.base import BaseRestClient
from railcost.connectors.exporter import MetricsExporter

__all__ = [
    "BackoffConfig",
    "BackoffState",
    "BaseRestClient",
    "MetricsExporter",
    "ProviderError",
    "RateLimitError",
    "RateLimitKind",
    "RequestPacer",
    "compute_backoff_delay",
    "parse_retry_after",
]
