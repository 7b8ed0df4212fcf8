#!/usr/bin/env python3
"""
CLI script for the order-book (CEX) rail.

Walks Kraken order books along a multi-hop path (default USD -> USDC -> GBP)
at each anchor amount and writes one cost record per amount.

Usage:
    # Book-only and fee-inclusive (needs KRAKEN_API_KEY / KRAKEN_API_SECRET):
    python scripts/run_cex.py --output data/cex_costs.json

    # Book-only, no credentials:
    python scripts/run_cex.py --no-fees

Exit codes: 0 ok, 1 fatal setup error, 2 no valid records.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from prometheus_client import CollectorRegistry, write_to_textfile

from railcost.connectors.exporter import MetricsExporter
from railcost.connectors.kraken import FeeLookupError, KrakenConfig, KrakenRestClient, PairDiscoveryError
from railcost.cost_model.normalizer import NormalizerConfig
from railcost.logging_config import setup_logging
from railcost.output import append_history, write_records
from railcost.pipeline import CexRunConfig, CexRunner, parse_anchors

logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> int:
    try:
        kraken_config = KrakenConfig()
        run_config = CexRunConfig(
            path=tuple(c.strip() for c in args.path.split(",") if c.strip()),
            anchors=parse_anchors(args.anchors) if args.anchors else (),
            include_fees=not args.no_fees,
            require_fees=not args.allow_missing_fees,
        )
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    registry = CollectorRegistry()
    exporter = MetricsExporter(registry=registry)

    async with KrakenRestClient(kraken_config, metrics=exporter) as client:
        runner = CexRunner(
            client,
            run_config,
            normalizer_config=NormalizerConfig(
                include_fees=run_config.include_fees,
                round_digits=args.round_digits,
            ),
            metrics=exporter,
        )
        try:
            result = await runner.run()
        except (PairDiscoveryError, FeeLookupError) as e:
            logger.error("Aborting CEX run: %s", e)
            return 1

    write_records(args.output, result.records)
    if args.history_dir is not None:
        append_history(args.history_dir, result.records)
    if args.metrics_textfile is not None:
        write_to_textfile(str(args.metrics_textfile), registry)

    logger.info("CEX records: %d total, %d valid", result.summary.total, result.summary.valid)
    return 0 if result.summary.has_valid else 2


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Estimate order-book conversion costs in bps.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--path",
        type=str,
        default="USD,USDC,GBP",
        help="Comma-separated currencies from source to target (default: USD,USDC,GBP)",
    )
    parser.add_argument(
        "--anchors",
        type=str,
        default=None,
        help=(
            "Comma-separated amounts in the first path currency, used as given "
            "(default: USD_ANCHORS or 1000,10000,100000,1000000; pass explicit "
            "amounts when the path does not start in USD)"
        ),
    )
    parser.add_argument(
        "--no-fees",
        action="store_true",
        help="Skip the taker-fee lookup and emit book-only figures",
    )
    parser.add_argument(
        "--allow-missing-fees",
        action="store_true",
        help="Continue book-only if the taker-fee lookup fails",
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
        default=Path("data/cex_costs.json"),
        help="Output JSON path (default: data/cex_costs.json)",
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
