"""
Result assembly: one record per (pair, amount, mode).

Failures are never dropped. They become status=error records with null
numerics and their identifying fields intact.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from railcost.contracts.quotes import QuoteStatus
from railcost.contracts.records import CostRecord, PathCostRecord, RecordStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from railcost.contracts.quotes import QuoteResult
    from railcost.cost_model.normalizer import PathCosts, QuoteCosts

_QUOTE_STATUS_TO_RECORD: dict[QuoteStatus, RecordStatus] = {
    QuoteStatus.OK: RecordStatus.OK,
    QuoteStatus.INCOMPLETE: RecordStatus.INCOMPLETE,
    QuoteStatus.PROVIDER_ERROR: RecordStatus.ERROR,
    QuoteStatus.RATE_LIMITED: RecordStatus.ERROR,
}


def build_quote_record(
    result: QuoteResult,
    costs: QuoteCosts,
    *,
    ts: int,
    anchor: float | None = None,
) -> CostRecord:
    """Record for one priced quote; numeric fields come from ``costs``."""
    request = result.request
    status = _QUOTE_STATUS_TO_RECORD[result.status]

    if result.is_failure:
        return quote_failure_record(
            src=request.source,
            tgt=request.target,
            mode=request.pay_out.value,
            amount=request.source_amount,
            ts=ts,
            error=f"{result.status.value}: {result.error}" if result.error else result.status.value,
            anchor=anchor,
        )

    option = result.option
    return CostRecord(
        ts=ts,
        src=request.source,
        tgt=request.target,
        mode=request.pay_out.value,
        amount=request.source_amount,
        rate=result.rate,
        pay_in=option.pay_in if option else None,
        pay_out=option.pay_out if option else None,
        fee_source=option.fee_total if option else None,
        recv_target=option.target_amount if option else None,
        mid_target=costs.mid_target,
        fee_bps=costs.fee_bps,
        fee_bps_vs_mid=costs.fee_bps_vs_mid,
        rounding_bps=costs.rounding_bps,
        anchor=anchor,
        status=status,
        error=result.error if status != RecordStatus.OK else None,
    )


def quote_failure_record(
    *,
    src: str,
    tgt: str,
    mode: str,
    amount: float,
    ts: int,
    error: str,
    anchor: float | None = None,
) -> CostRecord:
    return CostRecord(
        ts=ts,
        src=src,
        tgt=tgt,
        mode=mode,
        amount=amount,
        anchor=anchor,
        status=RecordStatus.ERROR,
        error=error,
    )


def build_path_record(
    costs: PathCosts,
    *,
    ts: str,
    venue: str,
    path: str,
    src: str,
    tgt: str,
    amount: float,
) -> PathCostRecord:
    """Record for one walked path at one amount."""
    return PathCostRecord(
        ts=ts,
        venue=venue,
        path=path,
        src=src,
        tgt=tgt,
        amount=amount,
        mid_path=costs.mid_path,
        out_book=costs.out_book,
        bps_vs_mid_book=costs.bps_vs_mid_book,
        taker_bps=list(costs.taker_bps) if costs.taker_bps is not None else None,
        out_final=costs.out_final,
        bps_total_final=costs.bps_total_final,
        underfilled=costs.underfilled,
        status=RecordStatus.OK if costs.bps_vs_mid_book is not None else RecordStatus.INCOMPLETE,
    )


def path_failure_record(
    *,
    ts: str,
    venue: str,
    path: str,
    src: str,
    tgt: str,
    amount: float,
    error: str,
) -> PathCostRecord:
    return PathCostRecord(
        ts=ts,
        venue=venue,
        path=path,
        src=src,
        tgt=tgt,
        amount=amount,
        status=RecordStatus.ERROR,
        error=error,
    )


@dataclass(frozen=True)
class RunSummary:
    """Diagnostic counts for a finished run."""

    total: int
    valid: int
    by_status: dict[str, int] = field(default_factory=dict)

    @property
    def has_valid(self) -> bool:
        return self.valid > 0


def summarize(records: Sequence[CostRecord | PathCostRecord]) -> RunSummary:
    """Count records by status; valid means status=ok."""
    counts = Counter(record.status.value for record in records)
    by_status = {status.value: counts.get(status.value, 0) for status in RecordStatus}
    return RunSummary(total=len(records), valid=by_status[RecordStatus.OK.value], by_status=by_status)
