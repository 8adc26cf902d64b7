"""
Centralized constants for the auction scheduler (Encapsulate What Changes).

Change job IDs or slot defaults here instead of scattering literals across main, jobs and routes.
Cron hours, timezone and round timing come from scheduler_config (env-driven).
"""

# Scheduler job IDs (must match ids used in main.py add_job)
DAILY_INIT_JOB_ID = "daily_auction_init"
PROGRESS_JOB_ID = "daily_auction_progress"
DAILY_RESET_JOB_ID = "daily_auction_reset"
ALL_JOB_IDS = (DAILY_INIT_JOB_ID, PROGRESS_JOB_ID, DAILY_RESET_JOB_ID)

# Route prefix for the scheduler API (kept stable for the frontend)
SCHEDULER_API_PREFIX = "/api/v1/scheduler"

# First three slots of every day: (auction_number, time_slot, auction_name); first one goes LIVE
INITIAL_DAY_SLOTS = (
    (1, "09:00", "Morning Auction 1"),
    (2, "10:00", "Morning Auction 2"),
    (3, "11:00", "Morning Auction 3"),
)

# Economic defaults for seeded slots and for fields missing on a rotated slot
DEFAULT_AUCTION_NAME = "Auction"
DEFAULT_PRIZE_VALUE = 1000
DEFAULT_MAX_DISCOUNT = 50
DEFAULT_ENTRY_FEE_TYPE = "RANDOM"
DEFAULT_MIN_ENTRY_FEE = 10
DEFAULT_MAX_ENTRY_FEE = 100
DEFAULT_FEE_SPLIT_BOX_A = 50
DEFAULT_FEE_SPLIT_BOX_B = 50
DEFAULT_ROUND_COUNT = 3
