#!/usr/bin/env python3
"""Run one auction rotation by hand (same as the hourly progression job), or repair a stuck day.
Run from backend: python scripts/progress_auctions.py [--date YYYY-MM-DD] [--reconcile]
"""
import argparse
import sys
from datetime import date
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from auction_scheduler.core.errors import AuctionSchedulerError
from auction_scheduler.db.session import SessionLocal
from auction_scheduler.services.auctions.service import auction_today, progress_round, reconcile_day


def main():
    parser = argparse.ArgumentParser(description="Progress (rotate) the day's auctions")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Day to progress (default: today)")
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Repair instead: promote earliest UPCOMING when no LIVE, or keep only the latest LIVE",
    )
    args = parser.parse_args()

    day = args.date or auction_today()
    db = SessionLocal()
    try:
        if args.reconcile:
            result = reconcile_day(db, day)
            completed = [r.auction_number for r in result["completed"]]
            promoted = result["promoted"].auction_number if result["promoted"] is not None else None
            if not completed and promoted is None:
                print(f"{day}: nothing to reconcile.")
            else:
                print(f"{day}: completed {completed}, promoted #{promoted}")
            return
        result = progress_round(db, day)
        print(f"{day}: #{result['completed'].auction_number} COMPLETED")
        print(f"{day}: #{result['live'].auction_number} LIVE at {result['live'].time_slot}")
        print(f"{day}: #{result['new_upcoming'].auction_number} UPCOMING at {result['new_upcoming'].time_slot}")
    except AuctionSchedulerError as e:
        print(f"{e.code}: {e.message}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
