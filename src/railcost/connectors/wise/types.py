"""
Types, configuration and response parsing for the Wise quote API.

Quote responses carry a reference ``rate`` and a list of ``paymentOptions``,
one per pay-in/pay-out combination, each with ``fee.total`` (source units)
and ``targetAmount``.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Any

from railcost.contracts.quotes import (
    PaymentOption,
    PayMode,
    QuoteRequest,
    QuoteResult,
    QuoteStatus,
)


class ProfileResolutionError(Exception):
    """No usable Wise profile could be resolved. Fatal for a run."""


@dataclass
class WiseConfig:
    """
    Wise connector configuration.

    Attributes:
        token: API token, from WISE_TOKEN when not given.
        api_base: API base URL, from WISE_API_BASE when not given.
        profile_id: Profile to quote under. Resolved from WISE_PROFILE_ID or
            discovered via the profiles endpoint when resolve_profile is set.
        resolve_profile: Discover a profile id when none is configured.
        request_timeout_ms: Total timeout per HTTP request.
    """

    token: str = ""
    api_base: str = ""
    profile_id: int | None = None
    resolve_profile: bool = True
    request_timeout_ms: int = 10000

    def __post_init__(self) -> None:
        if not self.token:
            self.token = os.environ.get("WISE_TOKEN", "")
        if not self.token:
            raise ValueError("WISE_TOKEN required for the Wise quote API")
        if not self.api_base:
            self.api_base = os.environ.get("WISE_API_BASE", "https://api.transferwise.com")
        if self.profile_id is None:
            raw = os.environ.get("WISE_PROFILE_ID", "").strip()
            if raw:
                try:
                    self.profile_id = int(raw)
                except ValueError as e:
                    raise ValueError(f"WISE_PROFILE_ID must be an integer, got {raw!r}") from e
        if self.request_timeout_ms <= 0:
            raise ValueError(f"request_timeout_ms must be > 0, got {self.request_timeout_ms}")


def to_float(value: Any) -> float | None:
    """Parse a numeric field; None for missing, non-numeric or non-finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def _fee_total(option: dict[str, Any]) -> float | None:
    fee = option.get("fee")
    if not isinstance(fee, dict):
        return None
    return to_float(fee.get("total"))


def _cheapest(options: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Lowest fee.total; options without a parsable fee sort last."""
    if not options:
        return None
    return min(options, key=lambda o: (_fee_total(o) is None, _fee_total(o) or 0.0))


def select_option(
    options: list[dict[str, Any]],
    pay_out: PayMode,
    pay_in: PayMode = PayMode.BALANCE,
) -> dict[str, Any] | None:
    """
    Pick the option to price a request with.

    Preference order:
    1. pay_in and pay_out both match, cheapest
    2. pay_in matches, cheapest
    3. cheapest of anything
    """
    candidates = [o for o in options if isinstance(o, dict)]
    matching_in = [o for o in candidates if o.get("payIn") == pay_in.value]
    exact = [o for o in matching_in if o.get("payOut") == pay_out.value]
    return _cheapest(exact) or _cheapest(matching_in) or _cheapest(candidates)


def parse_quote_response(request: QuoteRequest, data: Any) -> QuoteResult:
    """
    Turn a quote payload into a QuoteResult.

    Anything short of a rate plus an option with both a fee total and a
    target amount is ``incomplete``; whatever did parse is kept.
    """
    if not isinstance(data, dict):
        return QuoteResult.failure(request, QuoteStatus.PROVIDER_ERROR, "quote payload is not an object")

    rate = to_float(data.get("rate"))
    raw_options = data.get("paymentOptions")
    options = raw_options if isinstance(raw_options, list) else []
    chosen = select_option(options, request.pay_out, request.pay_in)

    option: PaymentOption | None = None
    if chosen is not None:
        option = PaymentOption(
            pay_in=str(chosen.get("payIn", "")),
            pay_out=str(chosen.get("payOut", "")),
            target_amount=to_float(chosen.get("targetAmount")),
            fee_total=_fee_total(chosen),
        )

    missing = []
    if rate is None:
        missing.append("rate")
    if option is None:
        missing.append("paymentOptions")
    else:
        if option.fee_total is None:
            missing.append("fee.total")
        if option.target_amount is None:
            missing.append("targetAmount")

    if missing:
        return QuoteResult(
            request=request,
            status=QuoteStatus.INCOMPLETE,
            rate=rate,
            option=option,
            error=f"missing {', '.join(missing)}",
        )
    return QuoteResult(request=request, status=QuoteStatus.OK, rate=rate, option=option)


def pick_profile_id(profiles: Any) -> int | None:
    """Prefer a personal profile, else the first one listed."""
    if not isinstance(profiles, list):
        return None
    usable = [p for p in profiles if isinstance(p, dict) and isinstance(p.get("id"), int)]
    for profile in usable:
        if str(profile.get("type", "")).lower() == "personal":
            return int(profile["id"])
    return int(usable[0]["id"]) if usable else None
