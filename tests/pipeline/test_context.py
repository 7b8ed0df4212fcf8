"""Tests for the per-run reference-rate and ladder context."""

from __future__ import annotations

import pytest

from railcost.contracts.quotes import QuoteRequest, QuoteResult, QuoteStatus
from railcost.ladder import FALLBACK_LADDER, LadderEntry
from railcost.pipeline import ContextFrozenError, RunContext


class FakeQuoteSource:
    """Answers reference-rate lookups from a fixed table."""

    def __init__(self, rates: dict[str, float | None]) -> None:
        self.rates = rates
        self.requests: list[QuoteRequest] = []

    async def fetch_quote(self, request: QuoteRequest) -> QuoteResult:
        self.requests.append(request)
        rate = self.rates.get(request.source)
        if rate is None:
            return QuoteResult.failure(request, QuoteStatus.PROVIDER_ERROR, "no route")
        return QuoteResult(request=request, status=QuoteStatus.OK, rate=rate)


class TestRunContextBuild:
    """Tests for RunContext.build."""

    @pytest.mark.asyncio
    async def test_reference_currency_not_looked_up(self) -> None:
        source = FakeQuoteSource({})
        context = await RunContext.build(source, ["USD"], reference_currency="USD", anchors=(10, 100))

        assert source.requests == []
        assert context.reference_rate("USD") == 1.0
        assert [e.amount for e in context.ladder("USD")] == [10.0, 100.0]

    @pytest.mark.asyncio
    async def test_one_lookup_per_currency(self) -> None:
        """Local -> reference quote at the lookup amount, once per currency."""
        source = FakeQuoteSource({"GBP": 1.27, "EUR": 1.08})
        context = await RunContext.build(
            source, ["GBP", "EUR"], reference_currency="USD", anchors=(10, 100, 1000), probe_amount=50.0
        )

        assert [(r.source, r.target, r.source_amount) for r in source.requests] == [
            ("GBP", "USD", 50.0),
            ("EUR", "USD", 50.0),
        ]
        assert context.reference_rate("GBP") == 1.27
        assert [e.amount for e in context.ladder("EUR")] == [10.0, 93.0, 930.0]
        assert context.ladder("GBP")[1] == LadderEntry(anchor=100.0, amount=79.0)

    @pytest.mark.asyncio
    async def test_failed_lookup_uses_fallback(self) -> None:
        source = FakeQuoteSource({})
        context = await RunContext.build(source, ["SGD"], reference_currency="USD", anchors=(10, 100))

        assert context.reference_rate("SGD") is None
        assert [e.amount for e in context.ladder("SGD")] == list(FALLBACK_LADDER)

    @pytest.mark.asyncio
    async def test_frozen_after_build(self) -> None:
        """Read-only once built."""
        context = await RunContext.build(FakeQuoteSource({}), ["USD"], reference_currency="USD", anchors=(10,))

        assert context.frozen
        with pytest.raises(ContextFrozenError):
            context.set_reference_rate("EUR", 1.08)


class TestRunContextLookup:
    """Tests for lookups and the fixed-amount constructor."""

    def test_unknown_currency(self) -> None:
        context = RunContext.fixed(["USD"], (10.0,))
        with pytest.raises(KeyError, match="JPY"):
            context.ladder("JPY")
        assert context.reference_rate("JPY") is None

    def test_fixed_amounts(self) -> None:
        """Anchors are used verbatim, sorted and deduplicated."""
        context = RunContext.fixed(["USD", "GBP"], (1000.0, 10.0, 100.0, 10.0))

        assert context.frozen
        assert context.currencies == ["USD", "GBP"]
        assert [e.amount for e in context.ladder("GBP")] == [10.0, 100.0, 1000.0]
        assert all(e.anchor == e.amount for e in context.ladder("USD"))

    def test_set_before_freeze(self) -> None:
        context = RunContext(reference_currency="USD", anchors=(10.0, 100.0))
        context.set_reference_rate("EUR", 1.08)
        assert [e.amount for e in context.ladder("EUR")] == [10.0, 93.0]
        context.freeze()
        assert context.frozen
