"""
Shared async REST plumbing for provider clients.

All retry and backoff policy lives here. Provider clients translate the two
exceptions raised by _request (RateLimitError, ProviderError) into tagged
results at their public boundary.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from railcost.connectors.backoff import (
    BackoffConfig,
    BackoffState,
    ProviderError,
    RateLimitError,
    RequestPacer,
    compute_backoff_delay,
    parse_retry_after,
)

if TYPE_CHECKING:
    from railcost.connectors.exporter import MetricsExporter

logger = logging.getLogger(__name__)


class BaseRestClient:
    """
    Async REST client with per-request backoff and a per-provider pacer.

    Subclasses set ``provider`` and may override ``_check_payload`` to turn
    error payloads delivered with a 2xx status into exceptions.
    """

    provider: str = "generic"

    def __init__(
        self,
        base_url: str,
        *,
        request_timeout_ms: int = 10000,
        backoff_config: BackoffConfig | None = None,
        pacer: RequestPacer | None = None,
        metrics: MetricsExporter | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._request_timeout_ms = request_timeout_ms
        self._backoff_config = backoff_config or BackoffConfig()
        self._pacer = pacer or RequestPacer()
        self._metrics = metrics
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._request_timeout_ms / 1000)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> BaseRestClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _headers(self, path: str, data: dict[str, str] | None) -> dict[str, str]:
        """Per-request headers (auth). Called once per attempt."""
        return {}

    def _prepare_data(self, path: str, data: dict[str, str] | None) -> dict[str, str] | None:
        """Per-attempt form body (e.g. a fresh nonce)."""
        return data

    def _check_payload(self, data: Any) -> None:
        """Raise on error payloads returned with a success status."""

    def _record(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_request(self.provider, outcome)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        """
        Make an HTTP request, retrying throttled and transient failures.

        Args:
            method: HTTP method.
            path: Endpoint path, appended to the base URL.
            params: Query parameters.
            json_body: JSON request body.
            data: Form-encoded request body.

        Returns:
            Decoded JSON response.

        Raises:
            RateLimitError: Throttled on every attempt of the budget.
            ProviderError: Non-retryable failure, or transient failures on
                every attempt of the budget.
        """
        state = BackoffState()
        retry_after_ms: int | None = None

        while True:
            delay_ms = compute_backoff_delay(self._backoff_config, state, retry_after_ms)
            if delay_ms > 0:
                logger.debug(
                    "Backing off before request",
                    extra={"provider": self.provider, "delay_ms": delay_ms, "attempt": state.attempt},
                )
                await asyncio.sleep(delay_ms / 1000)

            try:
                result = await self._send_once(method, path, params, json_body, data)
            except RateLimitError as e:
                state.record_error()
                retry_after_ms = e.retry_after_ms
                logger.warning(
                    "Rate limit hit",
                    extra={
                        "provider": self.provider,
                        "path": path,
                        "attempt": state.attempt,
                        "retry_after_ms": retry_after_ms,
                    },
                )
                if state.exhausted(self._backoff_config):
                    self._record("rate_limited")
                    raise RateLimitError(
                        f"Retry budget ({self._backoff_config.max_attempts} attempts) exhausted",
                        retry_after_ms=retry_after_ms,
                        kind=e.kind,
                    ) from e
            except ProviderError as e:
                if not e.retryable:
                    self._record("provider_error")
                    raise
                state.record_error()
                retry_after_ms = None
                logger.warning(
                    "Request failed",
                    extra={"provider": self.provider, "error": str(e), "attempt": state.attempt},
                )
                if state.exhausted(self._backoff_config):
                    self._record("provider_error")
                    raise
            else:
                self._record("ok")
                return result

            if self._metrics is not None:
                self._metrics.record_retry(self.provider)

    async def _send_once(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None,
        json_body: dict[str, Any] | None,
        data: dict[str, str] | None,
    ) -> Any:
        """Single attempt: one paced HTTP round trip."""
        url = f"{self._base_url}{path}"
        body = self._prepare_data(path, data)
        headers = self._headers(path, body)

        async with self._pacer.permit():
            try:
                session = await self._get_session()
                async with session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    data=body,
                    headers=headers,
                ) as response:
                    if response.status == 429:
                        raise RateLimitError(
                            "Rate limit exceeded (429)",
                            retry_after_ms=parse_retry_after(response.headers),
                        )

                    if response.status >= 400:
                        text = await response.text(errors="replace")
                        logger.error(
                            "HTTP error",
                            extra={"provider": self.provider, "status": response.status, "body": text},
                        )
                        raise ProviderError(
                            f"HTTP {response.status}: {text[:200]}",
                            status=response.status,
                            retryable=response.status >= 500,
                        )

                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        raise ProviderError(f"Non-JSON response: {e}", status=response.status) from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise ProviderError(f"Transport error: {e}", retryable=True) from e

        self._check_payload(payload)
        return payload
