"""
Async client for Kraken public market data and the TradeVolume fee endpoint.

fetch_book never raises; pair discovery and (required) fee lookup raise
their fatal errors so a run aborts before any per-amount work.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from railcost.connectors.backoff import (
    ProviderError,
    RateLimitError,
    RateLimitKind,
    RequestPacer,
)
from railcost.connectors.base import BaseRestClient
from railcost.connectors.kraken.signer import NonceSource, sign_request
from railcost.connectors.kraken.types import (
    THROTTLE_ERRORS,
    TRANSIENT_ERRORS,
    FeeLookupError,
    KrakenConfig,
    PairDiscoveryError,
    find_pairs_by_wsname,
    parse_depth,
    parse_taker_fees,
)
from railcost.contracts.book import BookResult, BookStatus

if TYPE_CHECKING:
    from railcost.connectors.backoff import BackoffConfig
    from railcost.connectors.exporter import MetricsExporter

logger = logging.getLogger(__name__)

_PRIVATE_PREFIX = "/0/private/"


class KrakenRestClient(BaseRestClient):
    """Order-book and fee client for Kraken spot."""

    provider = "kraken"

    def __init__(
        self,
        config: KrakenConfig | None = None,
        *,
        backoff_config: BackoffConfig | None = None,
        pacer: RequestPacer | None = None,
        metrics: MetricsExporter | None = None,
    ) -> None:
        self._config = config or KrakenConfig()
        super().__init__(
            self._config.base_url,
            request_timeout_ms=self._config.request_timeout_ms,
            backoff_config=backoff_config,
            pacer=pacer or RequestPacer(min_interval_ms=self._config.request_delay_ms or 0),
            metrics=metrics,
        )
        self._nonces = NonceSource()

    def _prepare_data(self, path: str, data: dict[str, str] | None) -> dict[str, str] | None:
        if not path.startswith(_PRIVATE_PREFIX):
            return data
        return {"nonce": self._nonces.next(), **(data or {})}

    def _headers(self, path: str, data: dict[str, str] | None) -> dict[str, str]:
        if not path.startswith(_PRIVATE_PREFIX) or data is None:
            return {}
        return {
            "API-Key": self._config.api_key,
            "API-Sign": sign_request(path, data, self._config.api_secret),
        }

    def _check_payload(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise ProviderError("Non-object response from Kraken")

        errors = [str(e) for e in data.get("error") or []]
        if not errors:
            return
        if any(e.startswith(THROTTLE_ERRORS) for e in errors):
            raise RateLimitError(
                f"Kraken throttled: {'; '.join(errors)}",
                kind=RateLimitKind.PROVIDER_PAYLOAD,
            )
        raise ProviderError(
            f"Kraken error: {'; '.join(errors)}",
            errors=errors,
            retryable=any(e.startswith(TRANSIENT_ERRORS) for e in errors),
        )

    async def discover_pairs(
        self,
        wsnames: list[str],
        *,
        require_all: bool = True,
    ) -> dict[str, str]:
        """
        Resolve REST pair keys for the given wsnames (e.g. "USDC/USD").

        Args:
            wsnames: Pair names as shown on the websocket API.
            require_all: Treat any missing wsname as fatal.

        Raises:
            PairDiscoveryError: Lookup failed, or a wsname is missing while
                require_all is set.
        """
        try:
            data = await self._request("GET", "/0/public/AssetPairs")
        except (ProviderError, RateLimitError) as e:
            raise PairDiscoveryError(f"AssetPairs lookup failed: {e}") from e

        result = data.get("result")
        found = find_pairs_by_wsname(result if isinstance(result, dict) else {}, wsnames)
        missing = [w for w in wsnames if w not in found]
        if missing and require_all:
            raise PairDiscoveryError(f"Could not find {', '.join(missing)} on Kraken")

        logger.info("Discovered Kraken pairs", extra={"pairs": list(found.values())})
        return found

    async def fetch_book(self, pair: str, count: int | None = None) -> BookResult:
        """
        Fetch one order-book snapshot.

        Returns:
            BookResult tagged ok, empty_book, provider_error or rate_limited.
        """
        params = {"pair": pair, "count": str(count or self._config.depth_count)}
        try:
            data = await self._request("GET", "/0/public/Depth", params=params)
        except RateLimitError as e:
            logger.warning("Depth rate limited", extra={"pair": pair, "error": str(e)})
            return BookResult(pair=pair, status=BookStatus.RATE_LIMITED, error=str(e))
        except ProviderError as e:
            logger.warning("Depth failed", extra={"pair": pair, "error": str(e)})
            return BookResult(pair=pair, status=BookStatus.PROVIDER_ERROR, error=str(e))

        try:
            snapshot = parse_depth(pair, data.get("result"))
        except ValueError as e:
            return BookResult(pair=pair, status=BookStatus.PROVIDER_ERROR, error=str(e))

        if not snapshot.is_usable:
            logger.warning(
                "Empty order book",
                extra={"pair": pair, "asks": len(snapshot.asks), "bids": len(snapshot.bids)},
            )
            return BookResult(
                pair=pair,
                status=BookStatus.EMPTY_BOOK,
                snapshot=snapshot,
                error="empty ask or bid side",
            )
        return BookResult(pair=pair, status=BookStatus.OK, snapshot=snapshot)

    async def get_taker_fees(self, pairs: list[str]) -> dict[str, float]:
        """
        Fetch the account's taker fee percentage per pair (0.26 means 0.26%).

        Raises:
            FeeLookupError: Missing credentials, failed request, or a pair
                without a fee in the response.
        """
        if not self._config.has_credentials:
            raise FeeLookupError("KRAKEN_API_KEY and KRAKEN_API_SECRET required for taker fees")

        form = {"pair": ",".join(pairs), "fee-info": "true"}
        try:
            data = await self._request("POST", "/0/private/TradeVolume", data=form)
        except (ProviderError, RateLimitError) as e:
            raise FeeLookupError(f"TradeVolume failed: {e}") from e

        fees = parse_taker_fees(data.get("result"), pairs)
        missing = [p for p in pairs if p not in fees]
        if missing:
            raise FeeLookupError(f"TradeVolume returned no fee for {', '.join(missing)}")

        logger.info("Fetched taker fees", extra={"fees_pct": [fees[p] for p in pairs]})
        return fees
