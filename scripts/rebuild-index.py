#!/usr/bin/env python3
"""CLI tool for rebuilding the blind search index of one or more owners.

Regenerates every index row from the current (decrypted) bookmark content.
Safe to re-run: bookmarks that fail are reported and can be retried.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

# Allow running from repo root: add backend/ to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from pinref.config import get_settings
from pinref.db import create_db_and_tables, create_db_engine
from pinref.services.bookmarks import BookmarkService


async def _rebuild(service: BookmarkService, owner_ids: list[str]) -> int:
    exit_code = 0
    for owner_id in owner_ids:
        result = await service.rebuild_index(owner_id)
        print(
            f"{owner_id}: rebuilt {result.success_count} bookmarks "
            f"({result.rows_written} index rows), {result.failure_count} failed"
        )
        for record_id in result.failed_ids:
            print(f"  failed: {record_id}", file=sys.stderr)
        if result.failure_count:
            exit_code = 1
    return exit_code


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Rebuild the encrypted search index for bookmark owners."
    )
    parser.add_argument(
        "owner_ids",
        nargs="+",
        metavar="OWNER_ID",
        help="Owner id(s) whose index should be rebuilt",
    )
    parser.add_argument(
        "--db-url",
        type=str,
        default=None,
        help="Database URL (default: DB_URL from the environment / .env)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log per-page progress",
    )

    args = parser.parse_args()

    try:
        settings = get_settings()
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_db_engine(args.db_url or settings.db_url)
    create_db_and_tables(engine)
    service = BookmarkService.from_settings(engine, settings)

    try:
        return asyncio.run(_rebuild(service, args.owner_ids))
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
