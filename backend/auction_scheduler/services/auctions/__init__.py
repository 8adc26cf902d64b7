"""
Daily auctions: lifecycle engine (pure) + scheduler operations (DB-bound).

- lifecycle: statuses, time slots, seeding plan, rotation/reconcile plans. No DB, no clock.
- service: initialize / progress / reset / reconcile a day, read projections, day_lock.
- heartbeat: in-memory last-run state for the cron jobs.
"""
from auction_scheduler.services.auctions.service import (
    auction_to_dict,
    auction_today,
    day_status,
    initialize_day,
    list_day,
    progress_round,
    reconcile_day,
    reset_day,
)

__all__ = [
    "auction_to_dict",
    "auction_today",
    "day_status",
    "initialize_day",
    "list_day",
    "progress_round",
    "reconcile_day",
    "reset_day",
]
