"""
Script to link evaluation-roll owners to registry companies by name
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import create_engine, create_session_factory
from core.logging import setup_logging
from ingestion.matching import CompanyLinker, ExactNameMatcher, SubstringRatioMatcher, get_matcher

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Link property owners to companies")
    parser.add_argument(
        "--strategy",
        choices=[ExactNameMatcher.name, SubstringRatioMatcher.name],
        default=None,
        help="Matching strategy (default from NAME_MATCH_STRATEGY)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Length ratio for substring matches (default from NAME_MATCH_THRESHOLD)",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


async def link_companies(args):
    engine = create_engine()
    session_factory = create_session_factory(engine)

    try:
        async with session_factory() as session:
            linker = CompanyLinker(session, get_matcher(args.strategy, args.threshold))
            stats = await linker.link_all()
    finally:
        await engine.dispose()

    print(f"\n{'='*60}")
    print(f"Links created: {stats['created']} (exact={stats['exact']}, fuzzy={stats['fuzzy']})")
    print(f"Already linked: {stats['existing']}")
    print(f"Individual owners skipped: {stats['non_corporate']}")
    print(f"{'='*60}\n")


if __name__ == "__main__":
    args = parse_args()
    setup_logging(args.log_level)
    asyncio.run(link_companies(args))
