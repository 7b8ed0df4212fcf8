"""
Normalization of raw quote and walk outputs into comparable bps figures.

Priced-quote path (fees deducted on the source side before conversion):
- fee_bps        = fee_total / source_amount * 10000
- mid_target     = rate * source_amount
- effective      = (source_amount - fee_total) * rate
- fee_bps_vs_mid = (1 - effective / mid_target) * 10000
- rounding_bps   = (actual_target - effective) / mid_target * 10000

Book-walk path:
- composed mid   = product of per-leg mid conversion factors
- bps_vs_mid     = (1 - proceeds / (amount * composed_mid)) * 10000
- fee-inclusive proceeds = proceeds * prod(1 - fee_k)

Every metric guards its own inputs and returns None instead of raising, so
one bad metric never suppresses the rest of a record.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from railcost.cost_model.walker import LegSide

if TYPE_CHECKING:
    from collections.abc import Sequence

    from railcost.contracts.quotes import QuoteResult
    from railcost.cost_model.walker import PathWalk

BPS = 10_000.0


@dataclass(frozen=True)
class NormalizerConfig:
    """Configuration for the cost normalizer.

    Attributes:
        include_fees: Compute fee-inclusive book-walk figures when per-leg
            taker fees are supplied. Book-only figures are always computed.
        round_digits: Round bps outputs to this many decimals (None keeps
            full precision).
    """

    include_fees: bool = True
    round_digits: int | None = None


def _finite(value: float | None) -> float | None:
    """Pass finite values through; None for None, NaN and infinities."""
    if value is None or not math.isfinite(value):
        return None
    return value


def _round(value: float | None, config: NormalizerConfig) -> float | None:
    if value is None or config.round_digits is None:
        return value
    return round(value, config.round_digits)


def fee_bps(fee_total: float | None, source_amount: float | None) -> float | None:
    """Fee as bps of the source amount."""
    if fee_total is None or source_amount is None or source_amount <= 0:
        return None
    return _finite(fee_total / source_amount * BPS)


def mid_target(rate: float | None, source_amount: float | None) -> float | None:
    """Proceeds at the unperturbed reference rate."""
    if rate is None or source_amount is None:
        return None
    return _finite(rate * source_amount)


def effective_target(
    source_amount: float | None,
    fee_total: float | None,
    rate: float | None,
) -> float | None:
    """Proceeds net of the fee, before provider-side rounding."""
    if source_amount is None or fee_total is None or rate is None:
        return None
    return _finite((source_amount - fee_total) * rate)


def fee_bps_vs_mid(effective: float | None, mid: float | None) -> float | None:
    if effective is None or mid is None or mid <= 0:
        return None
    return _finite((1.0 - effective / mid) * BPS)


def rounding_bps(
    actual_target: float | None,
    effective: float | None,
    mid: float | None,
) -> float | None:
    """Residual attributable to provider rounding rather than the fee."""
    if actual_target is None or effective is None or mid is None or mid <= 0:
        return None
    return _finite((actual_target - effective) / mid * BPS)


@dataclass(frozen=True)
class QuoteCosts:
    """Normalized metrics for one priced quote."""

    mid_target: float | None
    effective_target: float | None
    fee_bps: float | None
    fee_bps_vs_mid: float | None
    rounding_bps: float | None


def normalize_quote(result: QuoteResult, config: NormalizerConfig | None = None) -> QuoteCosts:
    """Derive every quote metric that the result's data supports."""
    config = config or NormalizerConfig()
    amount = result.request.source_amount
    fee_total = result.option.fee_total if result.option else None
    actual = result.option.target_amount if result.option else None

    mid = mid_target(result.rate, amount)
    effective = effective_target(amount, fee_total, result.rate)

    return QuoteCosts(
        mid_target=mid,
        effective_target=effective,
        fee_bps=_round(fee_bps(fee_total, amount), config),
        fee_bps_vs_mid=_round(fee_bps_vs_mid(effective, mid), config),
        rounding_bps=_round(rounding_bps(actual, effective, mid), config),
    )


def pct_to_fraction(pct: float) -> float:
    """Venue fee percentage (0.26 means 0.26%) to a fraction."""
    return pct / 100.0


def pct_to_bps(pct: float) -> float:
    return pct * 100.0


def leg_mid_factor(mid: float | None, side: LegSide) -> float | None:
    """Units received per unit given at mid for one leg."""
    if mid is None or not math.isfinite(mid) or mid <= 0:
        return None
    return 1.0 / mid if side == LegSide.BUY else mid


def composed_mid(mids: Sequence[float | None], sides: Sequence[LegSide]) -> float | None:
    """
    Path mid in target per source.

    For a buy leg followed by a sell leg sharing a base currency this is
    mid_2 / mid_1 (e.g. GBP-per-USDC / USD-per-USDC = GBP per USD).
    """
    if len(mids) != len(sides) or not mids:
        return None
    composed = 1.0
    for mid, side in zip(mids, sides, strict=True):
        factor = leg_mid_factor(mid, side)
        if factor is None:
            return None
        composed *= factor
    return composed


def bps_vs_mid(proceeds: float | None, amount: float | None, mid: float | None) -> float | None:
    """Cost of actual proceeds vs amount converted at mid."""
    if proceeds is None or amount is None or mid is None:
        return None
    expected = amount * mid
    if not math.isfinite(expected) or expected <= 0:
        return None
    return _finite((1.0 - proceeds / expected) * BPS)


def apply_leg_fees(proceeds: float | None, fee_fractions: Sequence[float]) -> float | None:
    """Deduct each leg's fee multiplicatively from the walked proceeds."""
    if proceeds is None:
        return None
    result = proceeds
    for fraction in fee_fractions:
        result *= 1.0 - fraction
    return _finite(result)


@dataclass(frozen=True)
class PathCosts:
    """Normalized metrics for one book-walk path at one amount."""

    mid_path: float | None
    out_book: float | None
    bps_vs_mid_book: float | None
    taker_bps: tuple[float, ...] | None
    out_final: float | None
    bps_total_final: float | None
    underfilled: bool


def normalize_path(
    walk: PathWalk,
    mids: Sequence[float | None],
    sides: Sequence[LegSide],
    taker_pcts: Sequence[float] | None = None,
    config: NormalizerConfig | None = None,
) -> PathCosts:
    """
    Book-only and (optionally) fee-inclusive bps for a walked path.

    Args:
        walk: Result of walk_path.
        mids: Top-of-book mid per leg, in leg order.
        sides: Leg sides, in leg order.
        taker_pcts: Per-leg taker fee percentages; None for book-only.
        config: Normalizer configuration.
    """
    config = config or NormalizerConfig()
    mid = composed_mid(mids, sides)
    out_book = walk.amount_out
    bps_book = bps_vs_mid(out_book, walk.amount_in, mid)

    taker_bps: tuple[float, ...] | None = None
    out_final: float | None = None
    bps_final: float | None = None
    if config.include_fees and taker_pcts is not None and len(taker_pcts) == len(walk.legs):
        taker_bps = tuple(pct_to_bps(p) for p in taker_pcts)
        out_final = apply_leg_fees(out_book, [pct_to_fraction(p) for p in taker_pcts])
        bps_final = bps_vs_mid(out_final, walk.amount_in, mid)

    return PathCosts(
        mid_path=mid,
        out_book=out_book,
        bps_vs_mid_book=_round(bps_book, config),
        taker_bps=taker_bps,
        out_final=out_final,
        bps_total_final=_round(bps_final, config),
        underfilled=walk.underfilled,
    )
