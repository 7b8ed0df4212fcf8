"""Record persistence: a JSON array per run and an optional daily JSONL history."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import orjson

if TYPE_CHECKING:
    from collections.abc import Sequence

    from railcost.contracts.records import CostRecord, PathCostRecord

logger = logging.getLogger(__name__)


def write_records(path: Path, records: Sequence[CostRecord | PathCostRecord]) -> Path:
    """Write records as an indented JSON array, replacing any previous file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [record.model_dump(mode="json") for record in records]
    with open(path, "wb") as f:
        f.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    logger.info("Wrote records", extra={"path": str(path), "count": len(records)})
    return path


def append_history(
    directory: Path,
    records: Sequence[CostRecord | PathCostRecord],
    day: date | None = None,
) -> Path:
    """Append records, one JSON object per line, to ``directory/YYYY-MM-DD.jsonl``."""
    day = day or datetime.now(UTC).date()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{day.isoformat()}.jsonl"
    with open(path, "ab") as f:
        for record in records:
            f.write(record.to_json())
            f.write(b"\n")
    return path
