"""Kraken spot order-book connector."""

from railcost.connectors.kraken.rest_client import KrakenRestClient
from railcost.connectors.kraken.signer import NonceSource, sign_request
from railcost.connectors.kraken.types import (
    FeeLookupError,
    KrakenConfig,
    PairDiscoveryError,
    find_pairs_by_wsname,
    parse_depth,
    parse_taker_fees,
)

__all__ = [
    "FeeLookupError",
    "KrakenConfig",
    "KrakenRestClient",
    "NonceSource",
    "PairDiscoveryError",
    "find_pairs_by_wsname",
    "parse_depth",
    "parse_taker_fees",
    "sign_request",
]
