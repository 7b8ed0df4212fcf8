"""Notional amount ladders comparable across currencies."""

from railcost.ladder.generator import (
    DEFAULT_ANCHORS,
    FALLBACK_LADDER,
    LadderEntry,
    ceil_to_step,
    generate_ladder,
    ladder_entries,
    nice_step,
)

__all__ = [
    "DEFAULT_ANCHORS",
    "FALLBACK_LADDER",
    "LadderEntry",
    "ceil_to_step",
    "generate_ladder",
    "ladder_entries",
    "nice_step",
]
