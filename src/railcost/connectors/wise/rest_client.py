"""
Async client for the Wise quote API.

fetch_quote never raises: throttling past the retry budget, transport
failures and error payloads all come back as tagged QuoteResults.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from railcost.connectors.backoff import ProviderError, RateLimitError
from railcost.connectors.base import BaseRestClient
from railcost.connectors.wise.types import (
    ProfileResolutionError,
    WiseConfig,
    parse_quote_response,
    pick_profile_id,
)
from railcost.contracts.quotes import QuoteRequest, QuoteResult, QuoteStatus

if TYPE_CHECKING:
    from railcost.connectors.backoff import BackoffConfig, RequestPacer
    from railcost.connectors.exporter import MetricsExporter

logger = logging.getLogger(__name__)


class WiseRestClient(BaseRestClient):
    """Priced-quote client for Wise."""

    provider = "wise"

    def __init__(
        self,
        config: WiseConfig | None = None,
        *,
        backoff_config: BackoffConfig | None = None,
        pacer: RequestPacer | None = None,
        metrics: MetricsExporter | None = None,
    ) -> None:
        self._config = config or WiseConfig()
        super().__init__(
            self._config.api_base,
            request_timeout_ms=self._config.request_timeout_ms,
            backoff_config=backoff_config,
            pacer=pacer,
            metrics=metrics,
        )
        self._profile_id = self._config.profile_id

    @property
    def profile_id(self) -> int | None:
        return self._profile_id

    def _headers(self, path: str, data: dict[str, str] | None) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._config.token}"}

    def _check_payload(self, data: Any) -> None:
        if isinstance(data, dict) and data.get("errors"):
            errors = data["errors"]
            messages = [
                str(e.get("message") or e.get("code")) if isinstance(e, dict) else str(e)
                for e in (errors if isinstance(errors, list) else [errors])
            ]
            raise ProviderError(f"Wise error: {'; '.join(messages)}", errors=messages)

    async def resolve_profile(self) -> int | None:
        """
        Return the profile id quotes are issued under.

        Uses the configured id when present, otherwise discovers one. With
        discovery disabled and no configured id, returns None and quotes go
        to the profile-less /v3/quotes endpoint.

        Raises:
            ProfileResolutionError: No usable profile (fatal for the run).
        """
        if self._profile_id is not None:
            return self._profile_id
        if not self._config.resolve_profile:
            return None

        try:
            profiles = await self._request("GET", "/v2/profiles")
        except (ProviderError, RateLimitError) as e:
            raise ProfileResolutionError(f"Profile lookup failed: {e}") from e

        profile_id = pick_profile_id(profiles)
        if profile_id is None:
            raise ProfileResolutionError("No usable Wise profile returned")

        logger.info("Resolved Wise profile", extra={"profiles_seen": len(profiles)})
        self._profile_id = profile_id
        return profile_id

    def _quote_path(self) -> str:
        if self._profile_id is None:
            return "/v3/quotes"
        return f"/v3/profiles/{self._profile_id}/quotes"

    async def fetch_quote(self, request: QuoteRequest) -> QuoteResult:
        """
        Fetch one priced quote.

        Args:
            request: Validated quote request.

        Returns:
            QuoteResult tagged ok, incomplete, provider_error or rate_limited.
        """
        body = {
            "sourceCurrency": request.source,
            "targetCurrency": request.target,
            "sourceAmount": request.source_amount,
            "payOut": request.pay_out.value,
        }
        try:
            data = await self._request("POST", self._quote_path(), json_body=body)
        except RateLimitError as e:
            logger.warning("Quote rate limited", extra={"pair": request.pair, "error": str(e)})
            return QuoteResult.failure(request, QuoteStatus.RATE_LIMITED, str(e))
        except ProviderError as e:
            logger.warning("Quote failed", extra={"pair": request.pair, "error": str(e)})
            return QuoteResult.failure(request, QuoteStatus.PROVIDER_ERROR, str(e))

        result = parse_quote_response(request, data)
        if result.status != QuoteStatus.OK:
            logger.info(
                "Quote not usable",
                extra={"pair": request.pair, "status": result.status.value, "error": result.error},
            )
        return result
