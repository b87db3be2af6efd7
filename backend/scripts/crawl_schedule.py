#!/usr/bin/env python3
"""
Crawl Schedule Script - Hourly cron that recomputes the crawl schedule

Prints the schedule for the external job runner. With --previous, also
reports frequency changes against an earlier run's JSON output.

Usage:
    python scripts/crawl_schedule.py > schedule.json
    python scripts/crawl_schedule.py --categories deadlines,fees
    python scripts/crawl_schedule.py --previous last_schedule.json --changes-only

Environment:
    DATABASE_URL: Required - PostgreSQL connection string

Exit Codes:
    0: Success
    1: Failure
"""

import argparse
import json
import logging
import os
import sys

# Add backend to path for imports
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from sqlalchemy.exc import SQLAlchemyError

from app import create_app
from models.database import db
from scrapers.airlock.errors import AirlockError
from scrapers.crawl_scheduler import DataCategory, diff_schedules, schedule_from_dict
from services.crawl_planning import plan_crawls

logger = logging.getLogger("scripts.crawl_schedule")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Compute the adaptive crawl schedule')
    parser.add_argument(
        '--categories',
        help='Comma-separated categories (default: deadlines,fees,regulations,draw_odds)'
    )
    parser.add_argument(
        '--previous',
        help='Path to a previous run\'s JSON output, to report frequency changes'
    )
    parser.add_argument(
        '--changes-only',
        action='store_true',
        help='Print only the frequency changes (requires --previous)'
    )
    args = parser.parse_args(argv)

    try:
        categories = (
            [DataCategory(c.strip()) for c in args.categories.split(',') if c.strip()]
            if args.categories else None
        )
    except ValueError as e:
        logger.error(f"Invalid --categories: {e}")
        return 1

    previous = None
    if args.previous:
        try:
            with open(args.previous, 'r') as f:
                previous = schedule_from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Could not read previous schedule {args.previous}: {e}")
            return 1

    app = create_app()
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)

    with app.app_context():
        try:
            schedule = plan_crawls(db.session, categories=categories)
        except (AirlockError, SQLAlchemyError) as e:
            logger.exception(f"Crawl planning failed: {e}")
            return 1

    changes = diff_schedules(previous, schedule)
    for change in changes:
        logger.info(
            f"{change.state_id} {change.category.value}: "
            f"{change.old_frequency.value} -> {change.new_frequency.value}"
        )

    if args.changes_only:
        print(json.dumps([c.to_dict() for c in changes], indent=2))
    else:
        print(json.dumps(schedule.to_dict(), indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
