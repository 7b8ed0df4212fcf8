"""
Run orchestration for the priced-quote (FX) and order-book (CEX) rails.

Both runners are sequential: one request in flight at a time, paced by the
client's RequestPacer. Per-item failures become error records; only the
setup failures (profile, pair discovery, required fees) abort a run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from railcost.assembler import (
    RunSummary,
    build_path_record,
    build_quote_record,
    path_failure_record,
    summarize,
)
from railcost.connectors.kraken.types import FeeLookupError, PairDiscoveryError
from railcost.contracts.quotes import QuoteRequest
from railcost.cost_model.normalizer import NormalizerConfig, normalize_path, normalize_quote
from railcost.cost_model.walker import Leg, LegSide, walk_path
from railcost.pipeline.context import RunContext

if TYPE_CHECKING:
    from collections.abc import Callable

    from railcost.connectors.exporter import MetricsExporter
    from railcost.contracts.book import BookResult
    from railcost.contracts.quotes import QuoteResult
    from railcost.contracts.records import CostRecord, PathCostRecord
    from railcost.pipeline.config import CexRunConfig, FxRunConfig

logger = logging.getLogger(__name__)


class QuoteClient(Protocol):
    async def resolve_profile(self) -> int | None: ...

    async def fetch_quote(self, request: QuoteRequest) -> QuoteResult: ...


class BookClient(Protocol):
    async def discover_pairs(self, wsnames: list[str], *, require_all: bool = True) -> dict[str, str]: ...

    async def fetch_book(self, pair: str, count: int | None = None) -> BookResult: ...

    async def get_taker_fees(self, pairs: list[str]) -> dict[str, float]: ...


@dataclass(frozen=True)
class FxRunResult:
    records: list[CostRecord]
    summary: RunSummary


@dataclass(frozen=True)
class CexRunResult:
    records: list[PathCostRecord]
    summary: RunSummary
    pairs: tuple[str, ...]
    taker_pcts: tuple[float, ...] | None


class FxRunner:
    """
    Priced-quote run: every (pair, ladder amount, pay-out mode).

    Raises ProfileResolutionError from run() if no profile can be resolved;
    every other failure is recorded and the run continues.
    """

    rail = "fx_quote"

    def __init__(
        self,
        client: QuoteClient,
        config: FxRunConfig,
        *,
        normalizer_config: NormalizerConfig | None = None,
        metrics: MetricsExporter | None = None,
        time_fn: Callable[[], float] | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._normalizer_config = normalizer_config or NormalizerConfig()
        self._metrics = metrics
        self._time_fn = time_fn or time.time

    async def build_context(self) -> RunContext:
        config = self._config
        if not config.size_normalized:
            return RunContext.fixed(config.source_currencies, config.anchors)
        return await RunContext.build(
            self._client,
            config.source_currencies,
            reference_currency=config.reference_currency,
            anchors=config.anchors,
            probe_amount=config.probe_amount,
        )

    async def run(self) -> FxRunResult:
        config = self._config
        profile_id = await self._client.resolve_profile()
        logger.info("FX run starting", extra={"pairs": len(config.pairs), "profile_set": profile_id is not None})

        context = await self.build_context()
        ts = int(self._time_fn())
        records: list[CostRecord] = []

        for source, target in config.pairs:
            for entry in context.ladder(source):
                for pay_out in config.pay_outs:
                    request = QuoteRequest(
                        source=source,
                        target=target,
                        source_amount=entry.amount,
                        pay_out=pay_out,
                        pay_in=config.pay_in,
                    )
                    result = await self._client.fetch_quote(request)
                    costs = normalize_quote(result, self._normalizer_config)
                    records.append(build_quote_record(result, costs, ts=ts, anchor=entry.anchor))

        summary = _finish(self.rail, records, self._metrics)
        return FxRunResult(records=records, summary=summary)


def hop_wsnames(source: str, target: str) -> tuple[str, str]:
    """
    Candidate wsnames for a hop, as (buy_name, sell_name).

    Going source -> target either buys target with source (book "target/source",
    walk asks) or sells source for target (book "source/target", walk bids).
    """
    return f"{target}/{source}", f"{source}/{target}"


class CexRunner:
    """
    Order-book run: walk one multi-hop path at every anchor amount.

    Raises PairDiscoveryError (and FeeLookupError when fees are required)
    from run(). Unusable books turn every record into an error record.
    """

    rail = "cex_simple"

    def __init__(
        self,
        client: BookClient,
        config: CexRunConfig,
        *,
        normalizer_config: NormalizerConfig | None = None,
        metrics: MetricsExporter | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._normalizer_config = normalizer_config or NormalizerConfig(include_fees=config.include_fees)
        self._metrics = metrics
        self._now_fn = now_fn or (lambda: datetime.now(UTC))

    async def resolve_legs(self) -> list[tuple[str, LegSide]]:
        """Map each hop to a (pair, side), preferring the buy-side book."""
        hops = self._config.hops
        candidates: list[str] = []
        for source, target in hops:
            candidates.extend(hop_wsnames(source, target))

        found = await self._client.discover_pairs(candidates, require_all=False)

        legs: list[tuple[str, LegSide]] = []
        for source, target in hops:
            buy_name, sell_name = hop_wsnames(source, target)
            if buy_name in found:
                legs.append((found[buy_name], LegSide.BUY))
            elif sell_name in found:
                legs.append((found[sell_name], LegSide.SELL))
            else:
                raise PairDiscoveryError(f"No {self._config.venue} pair for hop {source}->{target}")
        return legs

    async def _fetch_fees(self, pairs: list[str]) -> tuple[float, ...] | None:
        if not self._normalizer_config.include_fees:
            return None
        try:
            fees = await self._client.get_taker_fees(pairs)
        except FeeLookupError as e:
            if self._config.require_fees:
                raise
            logger.warning("Taker fees unavailable, continuing book-only", extra={"error": str(e)})
            return None
        return tuple(fees[p] for p in pairs)

    async def run(self) -> CexRunResult:
        config = self._config
        resolved = await self.resolve_legs()
        pairs = [pair for pair, _ in resolved]
        logger.info("CEX run starting", extra={"path": config.label, "pairs": pairs})

        books: list[BookResult] = []
        for pair in pairs:
            books.append(await self._client.fetch_book(pair))
        taker_pcts = await self._fetch_fees(pairs)

        ts = self._now_fn().isoformat()
        failed = [b for b in books if not b.is_ok or b.snapshot is None]
        if failed:
            error = "; ".join(f"{b.pair} {b.status.value}: {b.error}" for b in failed)
            records = [
                path_failure_record(
                    ts=ts,
                    venue=config.venue,
                    path=config.label,
                    src=config.source,
                    tgt=config.target,
                    amount=amount,
                    error=error,
                )
                for amount in sorted(config.anchors)
            ]
        else:
            records = self._walk_records(resolved, books, taker_pcts, ts)

        summary = _finish(self.rail, records, self._metrics)
        return CexRunResult(records=records, summary=summary, pairs=tuple(pairs), taker_pcts=taker_pcts)

    def _walk_records(
        self,
        resolved: list[tuple[str, LegSide]],
        books: list[BookResult],
        taker_pcts: tuple[float, ...] | None,
        ts: str,
    ) -> list[PathCostRecord]:
        config = self._config
        legs: list[Leg] = []
        mids: list[float | None] = []
        sides: list[LegSide] = []
        for (pair, side), book in zip(resolved, books, strict=True):
            snapshot = book.snapshot
            assert snapshot is not None
            levels = snapshot.asks if side == LegSide.BUY else snapshot.bids
            legs.append(Leg(pair=pair, side=side, levels=levels))
            mids.append(snapshot.mid)
            sides.append(side)

        records: list[PathCostRecord] = []
        for amount in sorted(config.anchors):
            walk = walk_path(amount, legs)
            costs = normalize_path(walk, mids, sides, taker_pcts, self._normalizer_config)
            if walk.underfilled:
                logger.warning("Path under-filled", extra={"path": config.label, "amount": amount})
            records.append(
                build_path_record(
                    costs,
                    ts=ts,
                    venue=config.venue,
                    path=config.label,
                    src=config.source,
                    tgt=config.target,
                    amount=amount,
                )
            )
        return records


def _finish(
    rail: str,
    records: list[CostRecord] | list[PathCostRecord],
    metrics: MetricsExporter | None,
) -> RunSummary:
    summary = summarize(records)
    logger.info(
        "Run finished",
        extra={"rail": rail, "total": summary.total, "valid": summary.valid, "by_status": summary.by_status},
    )
    if not summary.has_valid:
        logger.warning("Run produced no valid records", extra={"rail": rail, "total": summary.total})
    if metrics is not None:
        metrics.record_records(rail, summary.by_status)
    return summary
