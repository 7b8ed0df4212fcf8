"""
Per-run context: reference rates and ladder cache.

Lifecycle: built once at run start (one reference-rate lookup and one ladder
per currency), then frozen. After freeze() the context is read-only and is
shared by the ladder lookups and the normalization of every record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from railcost.contracts.quotes import QuoteRequest
from railcost.ladder.generator import LadderEntry, ladder_entries

if TYPE_CHECKING:
    from collections.abc import Iterable

    from railcost.contracts.quotes import QuoteResult

logger = logging.getLogger(__name__)


class QuoteSource(Protocol):
    """Anything that can price a QuoteRequest without raising."""

    async def fetch_quote(self, request: QuoteRequest) -> QuoteResult: ...


class ContextFrozenError(RuntimeError):
    """Raised on writes to a frozen RunContext."""


@dataclass
class RunContext:
    """
    Reference-rate lookup and ladder cache for one run.

    Attributes:
        reference_currency: Currency the anchors are denominated in.
        anchors: Reference-currency anchor ladder.
    """

    reference_currency: str
    anchors: tuple[float, ...]
    _reference_rates: dict[str, float | None] = field(default_factory=dict)
    _ladders: dict[str, tuple[LadderEntry, ...]] = field(default_factory=dict)
    _frozen: bool = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def set_reference_rate(self, currency: str, rate: float | None) -> None:
        """Record a currency's reference rate and build its ladder."""
        if self._frozen:
            raise ContextFrozenError(f"context is frozen, cannot set rate for {currency}")
        self._reference_rates[currency] = rate
        self._ladders[currency] = tuple(ladder_entries(self.anchors, rate))

    def reference_rate(self, currency: str) -> float | None:
        """Reference units per one unit of currency; None if unknown."""
        return self._reference_rates.get(currency)

    def ladder(self, currency: str) -> tuple[LadderEntry, ...]:
        """Cached ladder for a currency registered during build."""
        try:
            return self._ladders[currency]
        except KeyError:
            raise KeyError(f"no ladder for {currency}; it was not registered at run start") from None

    @property
    def currencies(self) -> list[str]:
        return list(self._ladders)

    @classmethod
    def fixed(cls, currencies: Iterable[str], amounts: tuple[float, ...]) -> RunContext:
        """Context whose ladders are the given amounts, for every currency."""
        context = cls(reference_currency="", anchors=amounts)
        for currency in currencies:
            context._reference_rates[currency] = None
            context._ladders[currency] = tuple(
                LadderEntry(anchor=a, amount=a) for a in sorted(set(amounts))
            )
        context.freeze()
        return context

    @classmethod
    async def build(
        cls,
        source: QuoteSource,
        currencies: Iterable[str],
        *,
        reference_currency: str,
        anchors: tuple[float, ...],
        probe_amount: float = 100.0,
    ) -> RunContext:
        """
        Look up every currency's reference rate once, then freeze.

        A currency whose lookup fails keeps a None rate and gets the
        fallback ladder; the run goes on.
        """
        context = cls(reference_currency=reference_currency, anchors=anchors)

        for currency in currencies:
            if currency == reference_currency:
                context.set_reference_rate(currency, 1.0)
                continue

            request = QuoteRequest(source=currency, target=reference_currency, source_amount=probe_amount)
            result = await source.fetch_quote(request)
            rate = result.rate if result.rate is not None and result.rate > 0 else None
            if rate is None:
                logger.warning(
                    "Reference rate unavailable, using fallback ladder",
                    extra={"currency": currency, "status": result.status.value},
                )
            context.set_reference_rate(currency, rate)

        context.freeze()
        logger.info(
            "Run context ready",
            extra={
                "reference_currency": reference_currency,
                "currencies": context.currencies,
                "ladder_sizes": [len(context.ladder(c)) for c in context.currencies],
            },
        )
        return context
