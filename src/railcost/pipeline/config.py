"""
Run configuration for the two rails.

Connector settings (credentials, base URLs) live with each connector; these
dataclasses only describe what a run asks for.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from railcost.contracts.quotes import PayMode, normalize_currency
from railcost.ladder.generator import DEFAULT_ANCHORS

logger = logging.getLogger(__name__)

DEFAULT_FX_PAIRS: tuple[tuple[str, str], ...] = (
    ("USD", "EUR"),
    ("USD", "GBP"),
    ("USD", "SGD"),
    ("GBP", "USD"),
)
DEFAULT_CEX_ANCHORS: tuple[float, ...] = (1_000, 10_000, 100_000, 1_000_000)


def parse_pairs(raw: str) -> tuple[tuple[str, str], ...]:
    """Parse "USD:EUR,GBP:USD" into validated (source, target) tuples."""
    pairs = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        source, sep, target = item.partition(":")
        if not sep:
            raise ValueError(f"pair must look like SRC:TGT, got {item!r}")
        pairs.append((normalize_currency(source), normalize_currency(target)))
    return tuple(pairs)


def parse_anchors(raw: str) -> tuple[float, ...]:
    """Parse "1000,10000" into positive floats."""
    anchors = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            value = float(item)
        except ValueError as e:
            raise ValueError(f"anchor must be numeric, got {item!r}") from e
        anchors.append(value)
    return tuple(anchors)


def _validate_anchors(anchors: tuple[float, ...]) -> None:
    if not anchors:
        raise ValueError("anchors must not be empty")
    if any(a <= 0 for a in anchors):
        raise ValueError(f"anchors must be > 0, got {anchors}")


@dataclass
class FxRunConfig:
    """
    Priced-quote (FX) run configuration.

    Attributes:
        pairs: (source, target) currency pairs.
        pay_outs: Pay-out modes quoted per amount.
        pay_in: Preferred pay-in mode for option selection.
        anchors: Reference-currency anchor ladder.
        reference_currency: Currency the anchors are denominated in.
        size_normalized: Convert anchors into local amounts via the reference
            rate. When False the anchors are used as source amounts directly.
        probe_amount: Source amount used for the reference-rate lookup.
        request_delay_ms: Minimum spacing between quote requests, from
            FX_REQ_DELAY_MS when not given.
    """

    pairs: tuple[tuple[str, str], ...] = DEFAULT_FX_PAIRS
    pay_outs: tuple[PayMode, ...] = (PayMode.BALANCE, PayMode.BANK_TRANSFER)
    pay_in: PayMode = PayMode.BALANCE
    anchors: tuple[float, ...] = DEFAULT_ANCHORS
    reference_currency: str = "USD"
    size_normalized: bool = True
    probe_amount: float = 100.0
    request_delay_ms: int | None = None

    def __post_init__(self) -> None:
        if not self.pairs:
            raise ValueError("pairs must not be empty")
        self.pairs = tuple((normalize_currency(s), normalize_currency(t)) for s, t in self.pairs)
        for source, target in self.pairs:
            if source == target:
                raise ValueError(f"pair source and target must differ, got {source}:{target}")
        if not self.pay_outs:
            raise ValueError("pay_outs must not be empty")
        _validate_anchors(self.anchors)
        self.reference_currency = normalize_currency(self.reference_currency)
        if self.probe_amount <= 0:
            raise ValueError(f"probe_amount must be > 0, got {self.probe_amount}")
        if self.request_delay_ms is None:
            raw = os.environ.get("FX_REQ_DELAY_MS", "200")
            try:
                self.request_delay_ms = int(raw)
            except ValueError as e:
                raise ValueError(f"FX_REQ_DELAY_MS must be an integer, got {raw!r}") from e
        if self.request_delay_ms < 0:
            raise ValueError(f"request_delay_ms must be >= 0, got {self.request_delay_ms}")

    @property
    def source_currencies(self) -> list[str]:
        """Distinct source currencies, in pair order."""
        return list(dict.fromkeys(source for source, _ in self.pairs))


@dataclass
class CexRunConfig:
    """
    Order-book (CEX) run configuration.

    Attributes:
        venue: Venue name written into records.
        path: Currencies from source to target, e.g. ("USD", "USDC", "GBP").
        anchors: Amounts to walk, in units of path[0] and used as given (no
            reference-rate scaling). Read from USD_ANCHORS when not given, so set
            explicit anchors for a path that does not start in USD.
        include_fees: Fetch taker fees and emit fee-inclusive figures.
        require_fees: Abort the run if fees were requested but unavailable.
    """

    venue: str = "kraken"
    path: tuple[str, ...] = ("USD", "USDC", "GBP")
    anchors: tuple[float, ...] = field(default_factory=tuple)
    include_fees: bool = True
    require_fees: bool = True

    def __post_init__(self) -> None:
        if len(self.path) < 2:
            raise ValueError(f"path needs at least two currencies, got {self.path}")
        self.path = tuple(normalize_currency(c) for c in self.path)
        for a, b in zip(self.path, self.path[1:], strict=False):
            if a == b:
                raise ValueError(f"path has a no-op hop {a}->{b}")
        if not self.anchors:
            raw = os.environ.get("USD_ANCHORS", "")
            self.anchors = parse_anchors(raw) if raw.strip() else DEFAULT_CEX_ANCHORS
            if self.path[0] != "USD":
                logger.warning(
                    "USD anchors used as literal source amounts",
                    extra={"source": self.path[0], "anchors": list(self.anchors)},
                )
        _validate_anchors(self.anchors)

    @property
    def source(self) -> str:
        return self.path[0]

    @property
    def target(self) -> str:
        return self.path[-1]

    @property
    def label(self) -> str:
        return "->".join(self.path)

    @property
    def hops(self) -> list[tuple[str, str]]:
        return list(zip(self.path, self.path[1:], strict=False))
