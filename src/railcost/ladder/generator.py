"""
Amount ladder generation.

Turns a reference-currency anchor ladder (e.g. USD 10 ... 10,000,000) into
request sizes in a local currency so that comparisons across currencies are
made at comparable economic size:

    amount = ceil_to_step(anchor / reference_rate)

where reference_rate is reference units per one local unit and the step is
picked by magnitude bracket to keep amounts human-readable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DEFAULT_ANCHORS: tuple[float, ...] = (10, 100, 1_000, 10_000, 100_000, 1_000_000, 10_000_000)

# Used when a currency has no known reference rate.
FALLBACK_LADDER: tuple[float, ...] = (10, 100, 1_000, 10_000, 100_000)

# (exclusive upper bound, step), checked in order; values beyond the last
# bound use _TOP_STEP.
_STEP_BRACKETS: tuple[tuple[float, float], ...] = (
    (100, 1),
    (1_000, 10),
    (10_000, 100),
    (100_000, 1_000),
    (1_000_000, 10_000),
    (10_000_000, 100_000),
)
_TOP_STEP = 1_000_000.0
# Absorbs float noise in value / step (e.g. 1.1 / 0.1 == 11.000000000000002).
_CEIL_TOLERANCE = 1e-9


@dataclass(frozen=True)
class LadderEntry:
    """Anchor value and the local amount derived from it."""

    anchor: float
    amount: float


def nice_step(value: float) -> float:
    """Rounding step for a raw amount, by magnitude bracket."""
    for upper, step in _STEP_BRACKETS:
        if value < upper:
            return float(step)
    return _TOP_STEP


def ceil_to_step(value: float) -> float:
    """
    Round a positive raw amount up to its nice step.

    Always at least one step, so small brackets never produce zero.

    Example:
        >>> ceil_to_step(92.3)
        93.0
        >>> ceil_to_step(1234.5)
        1300.0
    """
    step = nice_step(value)
    return max(step, math.ceil(value / step - _CEIL_TOLERANCE) * step)


def _usable_rate(reference_rate: float | None) -> bool:
    return reference_rate is not None and math.isfinite(reference_rate) and reference_rate > 0


def ladder_entries(
    anchors: Iterable[float],
    reference_rate: float | None,
) -> list[LadderEntry]:
    """
    Anchor/amount pairs, ascending by amount, one per distinct amount.

    On an amount collision the smallest anchor is kept. Without a usable
    reference rate the fallback ladder is returned with anchor == amount.
    """
    if not _usable_rate(reference_rate):
        return [LadderEntry(anchor=a, amount=a) for a in FALLBACK_LADDER]

    assert reference_rate is not None
    by_amount: dict[float, float] = {}
    for anchor in sorted(float(a) for a in anchors if a > 0):
        amount = ceil_to_step(anchor / reference_rate)
        by_amount.setdefault(amount, anchor)

    return [LadderEntry(anchor=anchor, amount=amount) for amount, anchor in sorted(by_amount.items())]


def generate_ladder(anchors: Sequence[float], reference_rate: float | None) -> list[float]:
    """
    Local request sizes for the given anchors.

    Args:
        anchors: Reference-currency anchor values.
        reference_rate: Reference units per local unit; None when the
            reference lookup failed.

    Returns:
        Sorted, deduplicated amounts. Cardinality may be lower than
        len(anchors).
    """
    return [entry.amount for entry in ladder_entries(anchors, reference_rate)]
