"""
Priced-quote contracts.

A QuoteRequest is validated at construction so that malformed currency codes,
identical source/target and non-positive amounts never reach the network or
the cost normalizer.
"""

from __future__ import annotations

import re
from enum import Enum

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_CURRENCY_RE = re.compile(r"^[A-Z]{3,5}$")


def normalize_currency(code: str) -> str:
    """Upper-case and validate an ISO-style alphabetic currency code."""
    value = code.strip().upper()
    if not _CURRENCY_RE.match(value):
        raise ValueError(f"invalid currency code: {code!r}")
    return value


class PayMode(str, Enum):
    """Wise pay-in / pay-out methods used by the ladder runs."""

    BALANCE = "BALANCE"
    BANK_TRANSFER = "BANK_TRANSFER"


class QuoteStatus(str, Enum):
    """Outcome of a single priced-quote request."""

    OK = "ok"
    INCOMPLETE = "incomplete"
    PROVIDER_ERROR = "provider_error"
    RATE_LIMITED = "rate_limited"


class QuoteRequest(BaseModel):
    """
    One priced-quote request.

    Attributes:
        source: Source currency code (e.g., "USD").
        target: Target currency code (e.g., "EUR").
        source_amount: Amount to send, in source units. Must be > 0.
        pay_out: Requested pay-out mode.
        pay_in: Preferred pay-in mode.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str = Field(..., description="Source currency code")
    target: str = Field(..., description="Target currency code")
    source_amount: float = Field(..., gt=0, allow_inf_nan=False, description="Amount in source units")
    pay_out: PayMode = Field(default=PayMode.BALANCE)
    pay_in: PayMode = Field(default=PayMode.BALANCE)

    @field_validator("source", "target")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)

    @model_validator(mode="after")
    def validate_distinct(self) -> QuoteRequest:
        if self.source == self.target:
            raise ValueError(f"source and target must differ, got {self.source}")
        return self

    @property
    def pair(self) -> str:
        return f"{self.source}->{self.target}"


class PaymentOption(BaseModel):
    """The priced option chosen out of a provider quote."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pay_in: str
    pay_out: str
    target_amount: float | None = None
    fee_total: float | None = Field(default=None, description="Total fee in source units")


class QuoteResult(BaseModel):
    """
    Normalized result of fetch_quote.

    Attributes:
        request: The request that produced this result.
        status: Outcome tag.
        rate: Reference price, target units per source unit.
        option: Chosen payment option, if any was returned.
        error: Short error description for failures.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    request: QuoteRequest
    status: QuoteStatus
    rate: float | None = None
    option: PaymentOption | None = None
    error: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.status == QuoteStatus.OK

    @property
    def is_failure(self) -> bool:
        """True for failures that carry no usable numeric data."""
        return self.status in (QuoteStatus.PROVIDER_ERROR, QuoteStatus.RATE_LIMITED)

    @classmethod
    def failure(cls, request: QuoteRequest, status: QuoteStatus, error: str) -> QuoteResult:
        return cls(request=request, status=status, error=error)

    def to_json(self) -> bytes:
        """Serialize to JSON bytes using orjson."""
        return orjson.dumps(self.model_dump(mode="json"))
