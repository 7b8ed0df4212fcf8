"""Data contracts shared by the connectors, the cost model and the assembler."""

from railcost.contracts.book import (
    BookLevel,
    BookResult,
    BookStatus,
    OrderBookSnapshot,
)
from railcost.contracts.quotes import (
    PaymentOption,
    PayMode,
    QuoteRequest,
    QuoteResult,
    QuoteStatus,
    normalize_currency,
)
from railcost.contracts.records import CostRecord, PathCostRecord, RecordStatus

__all__ = [
    "BookLevel",
    "BookResult",
    "BookStatus",
    "CostRecord",
    "OrderBookSnapshot",
    "PathCostRecord",
    "PayMode",
    "PaymentOption",
    "QuoteRequest",
    "QuoteResult",
    "QuoteStatus",
    "RecordStatus",
    "normalize_currency",
]
