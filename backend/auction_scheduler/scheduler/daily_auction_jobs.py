"""
Timed jobs for the daily auction cycle (registered in main.py on the BackgroundScheduler):

- daily_auction_init      once a day at AUCTION_INIT_HOUR: seed today's first three auctions
- daily_auction_progress  hourly over AUCTION_PROGRESS_HOURS: rotate LIVE -> COMPLETED, next UPCOMING -> LIVE
- daily_auction_reset     once a day at AUCTION_RESET_HOUR: reconcile stale days, clear today

Each job opens its own session and never lets an exception escape into APScheduler. No retries:
a failed run is logged and recorded in the heartbeat; the next cron tick tries again.
"""
import logging
from datetime import datetime, timezone

from auction_scheduler.config import settings
from auction_scheduler.core.constants import DAILY_INIT_JOB_ID, DAILY_RESET_JOB_ID, PROGRESS_JOB_ID
from auction_scheduler.core.errors import NEEDS_ATTENTION_ERRORS, AlreadyInitializedError
from auction_scheduler.db.session import SessionLocal
from auction_scheduler.services.auctions.heartbeat import set_job_heartbeat
from auction_scheduler.services.auctions.service import (
    auction_today,
    initialize_day,
    progress_round,
    reset_day,
)

logger = logging.getLogger(__name__)


def run_daily_initialization_job() -> None:
    master_id = settings.default_master_id
    if not master_id:
        logger.warning("Daily auction init: DEFAULT_MASTER_ID not set; skipping")
        return
    now = datetime.now(timezone.utc)
    today = auction_today(now)
    set_job_heartbeat(DAILY_INIT_JOB_ID, started=now, running=True)
    db = SessionLocal()
    try:
        rows = initialize_day(db, master_id, today, now=now)
        set_job_heartbeat(DAILY_INIT_JOB_ID, result={"date": today.isoformat(), "created": len(rows)})
    except AlreadyInitializedError as e:
        logger.info("Daily auction init: %s", e.message)
        set_job_heartbeat(DAILY_INIT_JOB_ID, result={"date": today.isoformat(), "created": 0, "code": e.code})
    except Exception as e:
        logger.exception("Daily auction init failed for %s: %s", today, e)
        set_job_heartbeat(DAILY_INIT_JOB_ID, error=str(e))
    finally:
        db.close()
        set_job_heartbeat(DAILY_INIT_JOB_ID, finished=datetime.now(timezone.utc), running=False)


def run_progression_job() -> None:
    now = datetime.now(timezone.utc)
    today = auction_today(now)
    set_job_heartbeat(PROGRESS_JOB_ID, started=now, running=True)
    db = SessionLocal()
    try:
        result = progress_round(db, today, now=now)
        set_job_heartbeat(
            PROGRESS_JOB_ID,
            result={
                "date": today.isoformat(),
                "completed": result["completed"].auction_number,
                "live": result["live"].auction_number,
                "new_upcoming": result["new_upcoming"].auction_number,
            },
        )
    except NEEDS_ATTENTION_ERRORS as e:
        # Scheduler needs attention (e.g. day never initialized or interrupted); see POST /reconcile
        logger.warning("Auction progression for %s: %s (%s)", today, e.message, e.code)
        set_job_heartbeat(PROGRESS_JOB_ID, error=e.code)
    except Exception as e:
        logger.exception("Auction progression failed for %s: %s", today, e)
        set_job_heartbeat(PROGRESS_JOB_ID, error=str(e))
    finally:
        db.close()
        set_job_heartbeat(PROGRESS_JOB_ID, finished=datetime.now(timezone.utc), running=False)


def run_daily_reset_job() -> None:
    now = datetime.now(timezone.utc)
    today = auction_today(now)
    set_job_heartbeat(DAILY_RESET_JOB_ID, started=now, running=True)
    db = SessionLocal()
    try:
        counts = reset_day(db, today, now=now)
        set_job_heartbeat(DAILY_RESET_JOB_ID, result={"date": today.isoformat(), **counts})
    except Exception as e:
        logger.exception("Daily auction reset failed for %s: %s", today, e)
        set_job_heartbeat(DAILY_RESET_JOB_ID, error=str(e))
    finally:
        db.close()
        set_job_heartbeat(DAILY_RESET_JOB_ID, finished=datetime.now(timezone.utc), running=False)
