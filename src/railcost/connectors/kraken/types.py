"""
Types, configuration and payload parsing for the Kraken spot REST API.

Kraken answers HTTP 200 even for failures and reports them in an ``error``
list, e.g. ``{"error": ["EAPI:Rate limit exceeded"], "result": {}}``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from railcost.contracts.book import BookLevel, OrderBookSnapshot

# Error prefixes that mean "slow down" rather than "this request is wrong".
THROTTLE_ERRORS = ("EAPI:Rate limit exceeded", "EGeneral:Too many requests", "EOrder:Rate limit exceeded")
# Transient venue-side errors worth retrying.
TRANSIENT_ERRORS = ("EService:Unavailable", "EService:Busy", "EGeneral:Temporary lockout")


class PairDiscoveryError(Exception):
    """Required trading pairs could not be discovered. Fatal for a run."""


class FeeLookupError(Exception):
    """Taker fees were required but could not be fetched."""


@dataclass
class KrakenConfig:
    """
    Kraken connector configuration.

    Attributes:
        base_url: REST base URL, from KRAKEN_BASE when not given.
        api_key: API key for private endpoints, from KRAKEN_API_KEY.
        api_secret: Base64 API secret, from KRAKEN_API_SECRET.
        request_delay_ms: Minimum spacing between requests, from CEX_REQ_DELAY_MS.
        depth_count: Levels requested per side from the Depth endpoint.
        request_timeout_ms: Total timeout per HTTP request.
    """

    base_url: str = ""
    api_key: str = ""
    api_secret: str = ""
    request_delay_ms: int | None = None
    depth_count: int = 1000
    request_timeout_ms: int = 10000

    def __post_init__(self) -> None:
        if not self.base_url:
            self.base_url = os.environ.get("KRAKEN_BASE", "https://api.kraken.com")
        if not self.api_key:
            self.api_key = os.environ.get("KRAKEN_API_KEY", "")
        if not self.api_secret:
            self.api_secret = os.environ.get("KRAKEN_API_SECRET", "")
        if self.request_delay_ms is None:
            raw = os.environ.get("CEX_REQ_DELAY_MS", "200")
            try:
                self.request_delay_ms = int(raw)
            except ValueError as e:
                raise ValueError(f"CEX_REQ_DELAY_MS must be an integer, got {raw!r}") from e
        if self.request_delay_ms < 0:
            raise ValueError(f"request_delay_ms must be >= 0, got {self.request_delay_ms}")
        if self.depth_count < 1:
            raise ValueError(f"depth_count must be >= 1, got {self.depth_count}")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)


def find_pairs_by_wsname(asset_pairs: dict[str, Any], wsnames: list[str]) -> dict[str, str]:
    """Map each wanted wsname (e.g. "USDC/USD") to its REST pair key."""
    found: dict[str, str] = {}
    for key, info in asset_pairs.items():
        if not isinstance(info, dict):
            continue
        wsname = info.get("wsname")
        if wsname in wsnames and wsname not in found:
            found[wsname] = key
    return found


def parse_depth(pair: str, result: Any) -> OrderBookSnapshot:
    """
    Parse a Depth ``result`` object into a snapshot.

    The result is keyed by Kraken's own pair name, which may differ from the
    requested one; the first entry is used.

    Raises:
        ValueError: Malformed levels (non-numeric, non-positive price).
    """
    if not isinstance(result, dict) or not result:
        return OrderBookSnapshot(pair=pair)

    book = next(iter(result.values()))
    if not isinstance(book, dict):
        raise ValueError(f"unexpected depth book for {pair}")

    try:
        asks = [BookLevel.from_pair(level) for level in book.get("asks") or []]
        bids = [BookLevel.from_pair(level) for level in book.get("bids") or []]
    except (ValidationError, ValueError, IndexError, KeyError, TypeError) as e:
        raise ValueError(f"malformed depth level for {pair}: {e}") from e

    return OrderBookSnapshot(pair=pair, asks=tuple(asks), bids=tuple(bids))


def parse_taker_fees(result: Any, pairs: list[str]) -> dict[str, float]:
    """Extract taker fee percentages (e.g. 0.26 for 0.26%) for the given pairs."""
    fees = result.get("fees") if isinstance(result, dict) else None
    if not isinstance(fees, dict):
        return {}

    parsed: dict[str, float] = {}
    for pair in pairs:
        entry = fees.get(pair)
        if not isinstance(entry, dict):
            continue
        try:
            parsed[pair] = float(entry["fee"])
        except (KeyError, TypeError, ValueError):
            continue
    return parsed
