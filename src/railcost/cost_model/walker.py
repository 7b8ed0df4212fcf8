"""
Volume-weighted order-book walks.

Simulates a market order against a static snapshot:
- walk_buy spends quote currency against asks (ascending price)
- walk_sell disposes of base currency against bids (descending price)

Both are pure: the snapshot is never mutated, and running out of levels is
an under-fill flag, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from railcost.contracts.book import BookLevel

# Fill tolerance: spent/used within this of the request counts as filled.
FILL_EPSILON = 1e-9


class LegSide(str, Enum):
    """Direction of one leg relative to its trading pair."""

    BUY = "buy"  # spend quote, acquire base (walk asks)
    SELL = "sell"  # dispose of base, receive quote (walk bids)


@dataclass(frozen=True)
class WalkResult:
    """
    Outcome of one walk.

    Attributes:
        acquired: Amount received (base for a buy, quote for a sell).
        consumed: Amount given up (quote spent for a buy, base used for a sell).
        requested: Budget (buy) or base amount (sell) that was requested.
        fully_filled: consumed reached requested within FILL_EPSILON.
    """

    acquired: float
    consumed: float
    requested: float
    fully_filled: bool

    @property
    def underfilled(self) -> bool:
        return not self.fully_filled

    @property
    def avg_price(self) -> float | None:
        """Volume-weighted price in quote per base, None if nothing filled."""
        if self.acquired <= 0 or self.consumed <= 0:
            return None
        return self.consumed / self.acquired


def walk_buy(budget_quote: float, asks: Sequence[BookLevel]) -> WalkResult:
    """
    Spend up to budget_quote against ask levels.

    Args:
        budget_quote: Quote-currency budget.
        asks: Ask levels sorted ascending by price.

    Returns:
        WalkResult with acquired = base bought, consumed = quote spent.

    Example:
        >>> walk_buy(50, [BookLevel(price=1.0, volume=100)])
        WalkResult(acquired=50.0, consumed=50.0, requested=50, fully_filled=True)
    """
    base = 0.0
    spent = 0.0

    for level in asks:
        remaining = budget_quote - spent
        if remaining <= 0:
            break
        cost = level.price * level.volume
        if cost <= remaining:
            base += level.volume
            spent = min(spent + cost, budget_quote)
        else:
            base += remaining / level.price
            spent = budget_quote
            break

    return WalkResult(
        acquired=base,
        consumed=spent,
        requested=budget_quote,
        fully_filled=spent + FILL_EPSILON >= budget_quote,
    )


def walk_sell(base_amount: float, bids: Sequence[BookLevel]) -> WalkResult:
    """
    Sell up to base_amount against bid levels.

    Args:
        base_amount: Base-currency amount to dispose of.
        bids: Bid levels sorted descending by price.

    Returns:
        WalkResult with acquired = quote received, consumed = base used.
    """
    received = 0.0
    used = 0.0

    for level in bids:
        remaining = base_amount - used
        if remaining <= 0:
            break
        take = min(level.volume, remaining)
        received += take * level.price
        used += take

    return WalkResult(
        acquired=received,
        consumed=used,
        requested=base_amount,
        fully_filled=used + FILL_EPSILON >= base_amount,
    )


@dataclass(frozen=True)
class Leg:
    """One directional conversion step against one book side."""

    pair: str
    side: LegSide
    levels: Sequence[BookLevel]


@dataclass(frozen=True)
class PathWalk:
    """Outcome of a multi-leg walk."""

    amount_in: float
    amount_out: float
    legs: tuple[WalkResult, ...]

    @property
    def underfilled(self) -> bool:
        return any(leg.underfilled for leg in self.legs)


def walk_leg(amount: float, leg: Leg) -> WalkResult:
    if leg.side == LegSide.BUY:
        return walk_buy(amount, leg.levels)
    return walk_sell(amount, leg.levels)


def walk_path(amount: float, legs: Sequence[Leg]) -> PathWalk:
    """
    Walk legs in order; each leg's acquired amount funds the next leg.

    Example (USD -> USDC -> GBP):
        legs = [Leg("USDCUSD", LegSide.BUY, asks), Leg("USDCGBP", LegSide.SELL, bids)]
    """
    results: list[WalkResult] = []
    current = amount
    for leg in legs:
        result = walk_leg(current, leg)
        results.append(result)
        current = result.acquired

    return PathWalk(amount_in=amount, amount_out=current, legs=tuple(results))
