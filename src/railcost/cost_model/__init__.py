"""Cost model: order-book walks and bps normalization."""

from railcost.cost_model.normalizer import (
    NormalizerConfig,
    PathCosts,
    QuoteCosts,
    apply_leg_fees,
    bps_vs_mid,
    composed_mid,
    effective_target,
    fee_bps,
    fee_bps_vs_mid,
    mid_target,
    normalize_path,
    normalize_quote,
    rounding_bps,
)
from railcost.cost_model.walker import (
    Leg,
    LegSide,
    PathWalk,
    WalkResult,
    walk_buy,
    walk_path,
    walk_sell,
)

__all__ = [
    "Leg",
    "LegSide",
    "NormalizerConfig",
    "PathCosts",
    "PathWalk",
    "QuoteCosts",
    "WalkResult",
    "apply_leg_fees",
    "bps_vs_mid",
    "composed_mid",
    "effective_target",
    "fee_bps",
    "fee_bps_vs_mid",
    "mid_target",
    "normalize_path",
    "normalize_quote",
    "rounding_bps",
    "walk_buy",
    "walk_path",
    "walk_sell",
]
