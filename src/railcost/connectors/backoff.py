"""
Backoff and pacing for quote/market-data providers.

- On "too many requests": back off exponentially, never hammer the limiter
- A server-provided wait hint (Retry-After) wins over the computed delay
- Attempt budget is small and fixed; exhausting it is a typed failure
- One RequestPacer per provider enforces the inter-request delay shared by
  every request to that provider
"""

from __future__ import annotations

import asyncio
import contextlib
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping


class RateLimitKind(str, Enum):
    """Type of throttling signal."""

    HTTP_429 = "HTTP_429"
    PROVIDER_PAYLOAD = "PROVIDER_PAYLOAD"  # e.g. Kraken "EAPI:Rate limit exceeded"


class RateLimitError(Exception):
    """Raised when a provider throttles a request."""

    def __init__(
        self,
        message: str,
        retry_after_ms: int | None = None,
        kind: RateLimitKind = RateLimitKind.HTTP_429,
    ) -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms
        self.kind = kind


class ProviderError(Exception):
    """Raised on transport failures or explicit provider error payloads."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        errors: list[str] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.errors = errors or []
        self.retryable = retryable


@dataclass
class BackoffConfig:
    """Configuration for exponential backoff.

    Delay for attempt n (1-based, after the first failure) is
    base_delay_ms * multiplier ** (n - 1), jittered, capped at max_delay_ms.
    """

    base_delay_ms: int = 1000
    max_delay_ms: int = 60000
    multiplier: float = 2.0
    jitter_factor: float = 0.0  # 0.5 = ±50% jitter
    max_attempts: int = 6

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if not 0.0 <= self.jitter_factor < 1.0:
            raise ValueError(f"jitter_factor must be in [0, 1), got {self.jitter_factor}")


@dataclass
class BackoffState:
    """Per-request backoff tracking. Never shared between requests."""

    attempt: int = 0
    last_error_time_ms: int = 0

    def record_error(self) -> None:
        self.attempt += 1
        self.last_error_time_ms = int(time.time() * 1000)

    def exhausted(self, config: BackoffConfig) -> bool:
        return self.attempt >= config.max_attempts


def compute_backoff_delay(
    config: BackoffConfig,
    state: BackoffState,
    retry_after_ms: int | None = None,
    *,
    rng: random.Random | None = None,
) -> int:
    """
    Compute the delay before the next attempt.

    Args:
        config: Backoff configuration.
        state: Current backoff state (attempt counts failures so far).
        retry_after_ms: Server-provided wait hint.
        rng: Optional seeded Random for deterministic jitter.

    Returns:
        Delay in milliseconds (0 before the first failure).
    """
    if state.attempt == 0:
        return 0

    delay = config.base_delay_ms * (config.multiplier ** (state.attempt - 1))

    if config.jitter_factor > 0:
        low = 1.0 - config.jitter_factor
        high = 1.0 + config.jitter_factor
        delay *= rng.uniform(low, high) if rng is not None else random.uniform(low, high)

    delay = min(delay, config.max_delay_ms)

    if retry_after_ms is not None and retry_after_ms > 0:
        delay = max(delay, retry_after_ms)

    return int(delay)


def parse_retry_after(headers: Mapping[str, str]) -> int | None:
    """Parse a Retry-After header given in seconds into milliseconds."""
    raw = headers.get("Retry-After")
    if raw is None:
        return None
    with contextlib.suppress(ValueError):
        return int(float(raw) * 1000)
    return None


@dataclass
class RequestPacer:
    """
    Shared per-provider request cadence.

    Every request to a provider goes through permit(); consecutive permits
    are spaced by at least min_interval_ms and at most max_concurrent
    requests are in flight. Sharing one pacer across tasks keeps a global
    budget even if pairs are fetched concurrently.
    """

    min_interval_ms: int = 0
    max_concurrent: int = 1

    _last_start_ms: int | None = field(default=None)
    _lock: asyncio.Lock | None = field(default=None)
    _semaphore: asyncio.Semaphore | None = field(default=None)
    _time_fn: Callable[[], int] | None = field(default=None)

    def __post_init__(self) -> None:
        if self.min_interval_ms < 0:
            raise ValueError(f"min_interval_ms must be >= 0, got {self.min_interval_ms}")
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")

    def _now_ms(self) -> int:
        if self._time_fn is not None:
            return self._time_fn()
        return int(time.monotonic() * 1000)

    def wait_time_ms(self) -> int:
        """Milliseconds until the next request may start."""
        if self._last_start_ms is None:
            return 0
        elapsed = self._now_ms() - self._last_start_ms
        return max(0, self.min_interval_ms - elapsed)

    @contextlib.asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        """Wait for a slot, then hold it for the duration of one request."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)

        async with self._semaphore:
            async with self._lock:
                wait_ms = self.wait_time_ms()
                if wait_ms > 0:
                    await asyncio.sleep(wait_ms / 1000)
                self._last_start_ms = self._now_ms()
            yield
