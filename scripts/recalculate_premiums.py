#!/usr/bin/env python3
"""
Recompute the stored premium of every insurance request.

premium = min(quantity * rate * 0.002, 99999999.99)

Uses DATABASE_URL environment variable. Pass --dry-run to only report changes.
"""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# Make sure src is on sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.insurance.premium import calculate_premium, to_decimal

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def recalculate(db, dry_run: bool = False) -> dict:
    """Returns counts of examined, updated and unchanged requests."""
    stats = {"examined": 0, "updated": 0, "unchanged": 0}
    for req in db.iter_all_requests():
        stats["examined"] += 1
        premium = calculate_premium(req.quantity, req.rate)
        if req.premium_amount is not None and to_decimal(req.premium_amount) == premium:
            stats["unchanged"] += 1
            continue
        logger.info("Request %s: premium %s -> %s", req.id, req.premium_amount, premium)
        if not dry_run:
            db.set_premium(req.id, premium)
        stats["updated"] += 1
    return stats


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate stored insurance premiums")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing them")
    args = parser.parse_args(argv)

    url = os.environ.get("DATABASE_URL")
    if not url:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 1

    from src.database.postgres_real import PostgresDB

    stats = recalculate(PostgresDB(connection_string=url), dry_run=args.dry_run)
    print(f"✅ Examined {stats['examined']} requests: {stats['updated']} updated, {stats['unchanged']} unchanged")
    return 0


if __name__ == "__main__":
    sys.exit(main())
