#!/usr/bin/env python3
"""
CLI script for the priced-quote (FX) rail.

Fetches Wise quotes across a size-normalized amount ladder and writes one
cost record per (pair, amount, pay-out mode).

Usage:
    # Default pairs, USD-anchored ladder:
    WISE_TOKEN=... python scripts/run_fx.py --output data/fx_costs.json

    # Fixed amounts, no reference-rate lookup:
    python scripts/run_fx.py --pairs USD:EUR,GBP:USD --anchors 10,100,1000 --fixed-amounts

Exit codes: 0 ok, 1 fatal setup error, 2 no valid records.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from prometheus_client import CollectorRegistry, write_to_textfile

from railcost.connectors.backoff import RequestPacer
from railcost.connectors.exporter import MetricsExporter
from railcost.connectors.wise import ProfileResolutionError, WiseConfig, WiseRestClient
from railcost.contracts.quotes import PayMode
from railcost.cost_model.normalizer import NormalizerConfig
from railcost.ladder import DEFAULT_ANCHORS
from railcost.logging_config import setup_logging
from railcost.output import append_history, write_records
from railcost.pipeline import FxRunConfig, FxRunner, parse_anchors, parse_pairs

logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> int:
    try:
        wise_config = WiseConfig(resolve_profile=not args.no_profile)
        run_config = FxRunConfig(
            pairs=parse_pairs(args.pairs),
            pay_outs=tuple(PayMode(m.strip()) for m in args.pay_outs.split(",") if m.strip()),
            anchors=parse_anchors(args.anchors) if args.anchors else DEFAULT_ANCHORS,
            reference_currency=args.reference,
            size_normalized=not args.fixed_amounts,
        )
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    registry = CollectorRegistry()
    exporter = MetricsExporter(registry=registry)
    pacer = RequestPacer(min_interval_ms=run_config.request_delay_ms or 0)

    async with WiseRestClient(wise_config, pacer=pacer, metrics=exporter) as client:
        runner = FxRunner(
            client,
            run_config,
            normalizer_config=NormalizerConfig(round_digits=args.round_digits),
            metrics=exporter,
        )
        try:
            result = await runner.run()
        except ProfileResolutionError as e:
            logger.error("Aborting FX run: %s", e)
            return 1

    write_records(args.output, result.records)
    if args.history_dir is not None:
        append_history(args.history_dir, result.records)
    if args.metrics_textfile is not None:
        write_to_textfile(str(args.metrics_textfile), registry)

    logger.info("FX records: %d total, %d valid", result.summary.total, result.summary.valid)
    return 0 if result.summary.has_valid else 2


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Estimate priced-quote FX costs in bps.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--pairs",
        type=str,
        default="USD:EUR,USD:GBP,USD:SGD,GBP:USD",
        help="Comma-separated SRC:TGT pairs (default: USD:EUR,USD:GBP,USD:SGD,GBP:USD)",
    )
    parser.add_argument(
        "--pay-outs",
        type=str,
        default="BALANCE,BANK_TRANSFER",
        help="Comma-separated pay-out modes (default: BALANCE,BANK_TRANSFER)",
    )
    parser.add_argument(
        "--anchors",
        type=str,
        default=None,
        help="Comma-separated reference-currency anchors (default: 10 to 10,000,000)",
    )
    parser.add_argument(
        "--reference",
        type=str,
        default="USD",
        help="Reference currency for the anchors (default: USD)",
    )
    parser.add_argument(
        "--fixed-amounts",
        action="store_true",
        help="Use anchors as source amounts directly, skipping reference-rate lookup",
    )
    parser.add_argument(
        "--no-profile",
        action="store_true",
        help="Quote via the profile-less endpoint unless WISE_PROFILE_ID is set",
    )
    parser.add_argument(
        "--round-digits",
        type=int,
        default=None,
        help="Round bps fields to N digits (default: no rounding)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("data/fx_costs.json"),
        help="Output JSON path (default: data/fx_costs.json)",
    )
    parser.add_argument(
        "--history-dir",
        type=Path,
        default=None,
        help="Append records to DIR/YYYY-MM-DD.jsonl",
    )
    parser.add_argument(
        "--metrics-textfile",
        type=Path,
        default=None,
        help="Write Prometheus metrics to this file at exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--plain-logs",
        action="store_true",
        help="Human-readable logs instead of JSON",
    )

    args = parser.parse_args()
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, json_format=not args.plain_logs)

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
