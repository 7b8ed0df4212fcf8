"""
Output records, one per (pair, amount, mode).

Numeric fields are nullable on purpose: a failed request still produces a
record with its identifying fields so that "no data" is distinguishable from
"zero cost".
"""

from __future__ import annotations

from enum import Enum
from typing import Self

import orjson
from pydantic import BaseModel, ConfigDict, Field


class RecordStatus(str, Enum):
    """Status tag of an output record."""

    OK = "ok"
    INCOMPLETE = "incomplete"
    ERROR = "error"


class _RecordBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_json(self) -> bytes:
        """Serialize to JSON bytes using orjson."""
        return orjson.dumps(self.model_dump(mode="json"))

    @classmethod
    def from_json(cls, data: bytes | str) -> Self:
        """Deserialize from JSON."""
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))


class CostRecord(_RecordBase):
    """
    Priced-quote path record.

    Attributes:
        ts: Run timestamp (unix seconds).
        src: Source currency.
        tgt: Target currency.
        mode: Requested pay-out mode.
        amount: Source amount requested.
        rate: Provider reference rate (target per source).
        pay_in: Pay-in mode of the chosen option.
        pay_out: Pay-out mode of the chosen option.
        fee_source: Fee total in source units.
        recv_target: Target amount quoted by the provider.
        mid_target: amount * rate.
        fee_bps: fee_source / amount * 10000.
        fee_bps_vs_mid: Shortfall of the fee-deducted effective target vs mid.
        rounding_bps: Residual between quoted and effective target vs mid.
        anchor: Reference-currency anchor the amount was derived from.
        status: ok | incomplete | error.
        error: Failure tag / message for non-ok records.
    """

    ts: int = Field(..., ge=0)
    rail: str = Field(default="fx_quote")
    src: str
    tgt: str
    mode: str
    amount: float
    rate: float | None = None
    pay_in: str | None = None
    pay_out: str | None = None
    fee_source: float | None = None
    recv_target: float | None = None
    mid_target: float | None = None
    fee_bps: float | None = None
    fee_bps_vs_mid: float | None = None
    rounding_bps: float | None = None
    anchor: float | None = None
    status: RecordStatus
    error: str | None = None


class PathCostRecord(_RecordBase):
    """
    Book-walk path record.

    Attributes:
        ts: Run timestamp (ISO-8601, UTC).
        venue: Exchange name.
        path: Human-readable path, e.g. "USD->USDC->GBP".
        amount: Source amount walked.
        mid_path: Composed mid, target per source.
        out_book: Walked proceeds, no fees applied.
        bps_vs_mid_book: Book-only cost vs composed mid.
        taker_bps: Per-leg taker fee in bps, in leg order.
        out_final: Proceeds after per-leg fees.
        bps_total_final: Fee-inclusive cost vs composed mid.
        underfilled: True if any leg ran out of book depth.
    """

    ts: str
    rail: str = Field(default="cex_simple")
    venue: str
    path: str
    src: str
    tgt: str
    amount: float
    mid_path: float | None = None
    out_book: float | None = None
    bps_vs_mid_book: float | None = None
    taker_bps: list[float] | None = None
    out_final: float | None = None
    bps_total_final: float | None = None
    underfilled: bool | None = None
    status: RecordStatus
    error: str | None = None
