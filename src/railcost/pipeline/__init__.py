"""Run orchestration: configuration, per-run context and the two rail runners."""

from railcost.pipeline.config import (
    DEFAULT_CEX_ANCHORS,
    DEFAULT_FX_PAIRS,
    CexRunConfig,
    FxRunConfig,
    parse_anchors,
    parse_pairs,
)
from railcost.pipeline.context import ContextFrozenError, RunContext
from railcost.pipeline.runner import CexRunner, CexRunResult, FxRunner, FxRunResult, hop_wsnames

__all__ = [
    "DEFAULT_CEX_ANCHORS",
    "DEFAULT_FX_PAIRS",
    "CexRunConfig",
    "CexRunResult",
    "CexRunner",
    "ContextFrozenError",
    "FxRunConfig",
    "FxRunResult",
    "FxRunner",
    "RunContext",
    "hop_wsnames",
    "parse_anchors",
    "parse_pairs",
]
