# maintenance_hub/check_batches.py
# -*- coding: utf-8 -*-
"""
check-batches: report duplicate and orphaned inventory batches.

Exit codes:
  0  no duplicates and no orphans
  1  the check could not run (credentials, network, database)
  2  integrity issues found
"""
from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from maintenance_hub.logging_setup import setup_logging
from maintenance_hub.models import IntegrityReport
from maintenance_hub.services.batch_integrity import run_check, render_report
from maintenance_hub.services.table_sources import open_source
from maintenance_hub.settings import Settings, load_settings

logger = logging.getLogger("maintenance_hub.check_batches")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ISSUES = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="check-batches",
        description="Report duplicate batch numbers and orphaned batches.",
    )
    ap.add_argument("--source", choices=["rest", "sql"], default=None,
                    help="Row source (default: CHECK_SOURCE setting)")
    ap.add_argument("--json", action="store_true", help="Print the report as JSON")
    return ap.parse_args(argv)


async def collect(settings: Settings, source: Optional[str] = None) -> IntegrityReport:
    kind = source or settings.CHECK_SOURCE
    try:
        async with open_source(settings, kind) as src:
            return await run_check(
                src,
                page_size=settings.CHECK_PAGE_SIZE,
                orphan_cap=settings.CHECK_ORPHAN_CAP,
                null_batch_number_as_empty=settings.NULL_BATCH_NUMBER_AS_EMPTY,
            )
    finally:
        if kind == "sql":
            from maintenance_hub.database import close_db
            await close_db()


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = parse_args(argv)
    try:
        settings = settings or load_settings()
        setup_logging(settings)
        report = asyncio.run(collect(settings, args.source))
    except Exception as e:
        logger.exception("batch integrity check failed")
        print(f"Check failed: {e}", file=sys.stderr)
        return EXIT_FAILED

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        print(render_report(report, limit=settings.CHECK_PRINT_LIMIT))

    return EXIT_ISSUES if report.has_issues else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
