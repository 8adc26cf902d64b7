#!/usr/bin/env python3
"""Midnight maintenance by hand: complete stale auctions from earlier days and delete today's auctions
so the day can be initialized again.
Run from backend: python scripts/reset_daily_auctions.py [--date YYYY-MM-DD] [--dry-run]
"""
import argparse
import sys
from datetime import date
from pathlib import Path

# Ensure backend is on path when run as script
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from auction_scheduler.db.session import SessionLocal
from auction_scheduler.services.auctions.lifecycle import summarize_day
from auction_scheduler.services.auctions.service import auction_today, list_day, reset_day


def main():
    parser = argparse.ArgumentParser(description="Reset the daily auction cycle (destructive for the given day)")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Day treated as today (default: today)")
    parser.add_argument("--dry-run", action="store_true", help="Only report what would be deleted")
    args = parser.parse_args()

    today = args.date or auction_today()
    db = SessionLocal()
    try:
        stats = summarize_day(list_day(db, today))
        print(f"{today}: {stats['total']} auctions (live={stats['live']} upcoming={stats['upcoming']} completed={stats['completed']})")
        if args.dry_run:
            print("Dry run: no changes made.")
            return
        counts = reset_day(db, today)
        print(f"Completed {counts['updated_count']} stale auctions from earlier days.")
        print(f"Deleted {counts['deleted_count']} auctions for {today}.")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
