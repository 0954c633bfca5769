"""
Script to transform every pending captured item of one or all sources
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.logging import setup_logging
from ingestion.runtime import build_runtime
from ingestion.transformers import CURATED_TRANSFORMERS
from models.base import SourceName

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Backfill the listing pipeline")
    parser.add_argument(
        "--source",
        choices=[s.value for s in CURATED_TRANSFORMERS],
        help="Only backfill this source (default: all transformable sources)",
    )
    parser.add_argument("--force", action="store_true", help="Re-run already transformed items")
    parser.add_argument("--limit", type=int, default=None, help="Maximum items per source")
    parser.add_argument("--delay", type=float, default=None, help="Seconds between items")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


async def run_backfill(args) -> int:
    """Run the backfill; returns the number of failed items"""
    runtime = build_runtime()
    sources = [SourceName(args.source)] if args.source else list(CURATED_TRANSFORMERS)
    failed = 0

    try:
        runner = runtime.backfill_runner(item_delay=args.delay)
        for source in sources:
            summary = await runner.run(source, force=args.force, limit=args.limit)
            failed += summary.failed

            print(f"\n{'='*60}")
            print(f"Source: {source.value}")
            print(f"Total: {summary.total}")
            print(f"Succeeded: {summary.succeeded}")
            print(f"Failed: {summary.failed}")
            print(f"Skipped: {summary.skipped}")
            for failure in summary.failures:
                print(f"  - {failure['item_key']}: {failure['error']}")
            print(f"{'='*60}\n")
    finally:
        await runtime.dispose()

    return failed


if __name__ == "__main__":
    args = parse_args()
    setup_logging(args.log_level)
    failures = asyncio.run(run_backfill(args))
    sys.exit(1 if failures else 0)
