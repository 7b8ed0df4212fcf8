"""
Order-book contracts.

Levels are stored the way the walker consumes them: asks ascending by price,
bids descending by price. The snapshot sorts whatever the venue returned.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookStatus(str, Enum):
    """Outcome of a single order-book request."""

    OK = "ok"
    EMPTY_BOOK = "empty_book"
    PROVIDER_ERROR = "provider_error"
    RATE_LIMITED = "rate_limited"


class BookLevel(BaseModel):
    """Single price level (price, volume)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    price: float = Field(..., gt=0, allow_inf_nan=False, description="Price in quote units per base unit")
    volume: float = Field(..., ge=0, allow_inf_nan=False, description="Base volume available at this price")

    @classmethod
    def from_pair(cls, raw: list[str] | tuple[str, ...]) -> BookLevel:
        """Parse a venue level like ["1.0001", "2500.0", 1700000000]."""
        if not isinstance(raw, (list, tuple)):
            raise TypeError(f"book level must be a list, got {type(raw).__name__}")
        return cls(price=float(raw[0]), volume=float(raw[1]))


class OrderBookSnapshot(BaseModel):
    """
    Static two-sided book.

    Attributes:
        pair: Venue pair key (e.g., "USDCUSD").
        asks: Ask levels, ascending by price.
        bids: Bid levels, descending by price.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pair: str = Field(..., min_length=1)
    asks: tuple[BookLevel, ...] = Field(default=())
    bids: tuple[BookLevel, ...] = Field(default=())

    @field_validator("asks")
    @classmethod
    def sort_asks(cls, v: tuple[BookLevel, ...]) -> tuple[BookLevel, ...]:
        return tuple(sorted(v, key=lambda level: level.price))

    @field_validator("bids")
    @classmethod
    def sort_bids(cls, v: tuple[BookLevel, ...]) -> tuple[BookLevel, ...]:
        return tuple(sorted(v, key=lambda level: level.price, reverse=True))

    @property
    def is_usable(self) -> bool:
        return bool(self.asks) and bool(self.bids)

    @property
    def best_ask(self) -> float | None:
        return self.asks[0].price if self.asks else None

    @property
    def best_bid(self) -> float | None:
        return self.bids[0].price if self.bids else None

    @property
    def mid(self) -> float | None:
        """Top-of-book mid price, None for a one-sided book."""
        if not self.is_usable:
            return None
        return (self.asks[0].price + self.bids[0].price) / 2


class BookResult(BaseModel):
    """Normalized result of fetch_book."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pair: str
    status: BookStatus
    snapshot: OrderBookSnapshot | None = None
    error: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.status == BookStatus.OK
