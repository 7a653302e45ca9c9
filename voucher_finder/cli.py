"""
CLI commands for the Voucher Finder.

Provides command-line interface for:
- Running a scrape cycle (for cron jobs)
- Looking up the best voucher in the persisted snapshot
- Serving the API

Usage:
    python -m voucher_finder.cli crawl
    python -m voucher_finder.cli match "amazon gift"
    python -m voucher_finder.cli serve --port 3000
    python -m voucher_finder.cli --help
"""
import argparse
import json
import sys

import uvicorn

from voucher_finder.config import settings
from voucher_finder.errors import CycleInProgressError, QueryError
from voucher_finder.services.crawler import (
    cycle_lock,
    get_last_cycle_result,
    get_registered_sources,
    run_cycle_sync,
)
from voucher_finder.services.matching import NotFound, best_match
from voucher_finder.services.storage import SnapshotStorage
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)


def cmd_crawl(args: argparse.Namespace) -> int:
    """
    Run a complete scrape cycle of all sources.

    Returns:
        0 on success (even with partial failures)
        1 if every source failed or on exception
        2 if another cycle is already running
    """
    storage = SnapshotStorage()
    owner = cycle_lock(storage).holder()
    if owner is not None:
        print(f"Crawl skipped - another cycle is already running: {owner.describe()}", file=sys.stderr)
        logger.warning(f"CLI crawl skipped - lock held by: {owner.describe()}")
        return 2

    logger.info("Starting scrape cycle from CLI")
    print("Starting scrape cycle...")

    try:
        store = run_cycle_sync("cli", storage=storage)
    except CycleInProgressError as e:
        print(f"Crawl skipped - another cycle started: {e}", file=sys.stderr)
        logger.warning(f"CLI crawl aborted due to lock: {e}")
        return 2
    except Exception as e:
        logger.exception(f"Scrape cycle failed with exception: {e}")
        print(f"\nScrape cycle failed with error: {e}", file=sys.stderr)
        return 1

    result = get_last_cycle_result()

    print("\n" + "=" * 50)
    print("SCRAPE CYCLE COMPLETE")
    print("=" * 50)
    if result is not None:
        print(f"Sources attempted: {result.sources_attempted}")
        print(f"Sources succeeded: {result.sources_succeeded}")
        print(f"Sources failed: {result.sources_failed}")
        for source_name, count in result.records_by_source.items():
            print(f"  {source_name}: {count} records")
        print(f"Duration: {result.duration_seconds:.1f} seconds")
        if result.failed_sources:
            print(f"\nFailed sources: {', '.join(result.failed_sources)}")
    print(f"Records published: {len(store)}")
    print("=" * 50)

    if result is not None and result.sources_attempted > 0 and result.sources_succeeded == 0:
        print("\nScrape cycle failed - all sources failed.")
        return 1
    return 0


def cmd_match(args: argparse.Namespace) -> int:
    """
    Print the best voucher for a query from the persisted snapshot.

    Returns:
        0 if a voucher was found, 1 otherwise
    """
    records = SnapshotStorage().read_all(get_registered_sources())
    min_score = settings.MIN_MATCH_SCORE if args.min_score is None else args.min_score

    try:
        outcome = best_match(records, args.query, min_score)
    except QueryError as e:
        print(f"Info: {e}", file=sys.stderr)
        return 1

    if isinstance(outcome, NotFound):
        print(outcome.message, file=sys.stderr)
        return 1

    print(json.dumps(outcome.to_dict(), indent=4, ensure_ascii=False))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the API server (including the daily scheduler) under uvicorn."""
    host = args.host or settings.HOST
    port = args.port or settings.PORT
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run("voucher_finder.main:app", host=host, port=port, log_config=None)
    return 0


def main(argv=None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="voucher-finder",
        description="Voucher Finder CLI"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    crawl_parser = subparsers.add_parser(
        "crawl",
        help="Scrape all sources and update the snapshot files"
    )
    crawl_parser.set_defaults(func=cmd_crawl)

    match_parser = subparsers.add_parser(
        "match",
        help="Find the best voucher for a name in the snapshot files"
    )
    match_parser.add_argument("query", help="Voucher name, e.g. \"amazon gift\"")
    match_parser.add_argument(
        "--min-score", type=int, default=None,
        help=f"Minimum match score (default: {settings.MIN_MATCH_SCORE})"
    )
    match_parser.set_defaults(func=cmd_match)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the API server"
    )
    serve_parser.add_argument("--host", default=None, help=f"Bind address (default: {settings.HOST})")
    serve_parser.add_argument("--port", type=int, default=None, help=f"Port (default: {settings.PORT})")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
