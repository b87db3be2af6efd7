#!/usr/bin/env python3
"""
Airlock Sweep Script - Entry point for the reconciliation cron

Evaluates every staging batch that never got a queue entry (lost webhook,
crashed evaluation). Safe to run concurrently with the webhook: a batch
is evaluated at most once.

Usage:
    python scripts/airlock_sweep.py
    python scripts/airlock_sweep.py --limit 50

Environment:
    DATABASE_URL: Required - PostgreSQL connection string
    AIRLOCK_SWEEP_BATCH_LIMIT: Optional - default batch cap (200)
    AIRLOCK_AUTO_PROMOTE_ENABLED: Optional - 'false' quarantines every batch

Exit Codes:
    0: Success (every batch evaluated or skipped)
    1: Failure (at least one batch failed, or the sweep crashed)
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
from services.airlock_service import AirlockService

logger = logging.getLogger("scripts.airlock_sweep")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Airlock reconciliation sweep')
    parser.add_argument(
        '--limit',
        type=int,
        help='Max batches to evaluate (default: AIRLOCK_SWEEP_BATCH_LIMIT)'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the result as JSON'
    )
    args = parser.parse_args(argv)

    app = create_app()
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)

    with app.app_context():
        try:
            result = AirlockService(db.session).run_reconciliation_sweep(args.limit)
        except SQLAlchemyError as e:
            logger.exception(f"Airlock sweep crashed: {e}")
            return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print("=" * 70)
        print("AIRLOCK SWEEP RESULT")
        print("=" * 70)
        print(f"Evaluated:   {result.evaluated}")
        print(f"Promoted:    {result.promoted}")
        print(f"Quarantined: {result.quarantined}")
        print(f"Skipped:     {result.skipped}")
        print(f"Failed:      {result.failed}")
        for error in result.errors:
            print(f"  - {error['state_id']} {error['batch_id']}: {error['error']}")

    return 0 if result.success else 1


if __name__ == '__main__':
    sys.exit(main())
