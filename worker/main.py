"""
Command-line entrypoint for the classifieds crawler.

Commands:
    crawl [SESSION_ID]   start a new session, or resume an unfinished one
    extract SESSION_ID   extract classifieds from a crawled session
    list-sessions        print every session with its counts
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from shared.config import AppConfig, get_config
from shared.db import create_engine_from_config, make_session_factory
from shared.logging import configure_logging, get_logger
from worker.errors import CrawlerError
from worker.extract_pool import extract
from worker.fetcher import PageFetcher
from worker.sessions import crawl, format_session_row, list_sessions, parse_session_id

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="classifieds",
        description="Crawl real-estate classifieds into Postgres and extract them.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser("crawl", help="Start or resume a crawl session")
    crawl_parser.add_argument(
        "session_id",
        nargs="?",
        default=None,
        help="UUID v4 of an unfinished session to resume (omit to start a new one)",
    )

    extract_parser = subparsers.add_parser("extract", help="Extract classifieds from a crawled session")
    extract_parser.add_argument("session_id", help="UUID v4 of a crawled session")

    subparsers.add_parser("list-sessions", help="List sessions with queue and extraction counts")
    return parser


async def run_command(args: argparse.Namespace, config: AppConfig) -> None:
    """Run one CLI command against a dedicated engine, disposed on exit."""
    engine = create_engine_from_config(config)
    session_factory = make_session_factory(engine)
    try:
        if args.command == "crawl":
            existing_id = parse_session_id(args.session_id) if args.session_id else None
            async with PageFetcher.from_config(config) as fetcher:
                session, stats = await crawl(
                    existing_id,
                    session_factory=session_factory,
                    fetcher=fetcher,
                    config=config,
                )
            print(session["id"])
            print(
                f"completed={stats.completed} retrying={stats.retrying} failed={stats.failed}",
                file=sys.stderr,
            )
        elif args.command == "extract":
            session_id = parse_session_id(args.session_id)
            stats = await extract(session_id, session_factory=session_factory, config=config)
            print(f"extracted={stats.extracted} failed_workers={stats.failed_workers}")
        elif args.command == "list-sessions":
            for row in await list_sessions(session_factory=session_factory):
                print(format_session_row(row))
    finally:
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = get_config()
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(
        level=logging.getLevelName(config.log_level.upper()),
        log_file=config.log_file,
        log_stdout=config.log_stdout,
    )
    logger = get_logger(__name__)

    if not config.database_url:
        logger.error("database_url_not_configured")
        print("ERROR: DATABASE_URL environment variable is required.", file=sys.stderr)
        sys.exit(1)

    logger.info("command_starting", command=args.command)
    try:
        asyncio.run(run_command(args, config))
    except (CrawlerError, SQLAlchemyError) as e:
        logger.error("command_failed", command=args.command, error=str(e), error_type=type(e).__name__)
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("command_interrupted", command=args.command)
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    logger.info("command_finished", command=args.command)


if __name__ == "__main__":
    main()
