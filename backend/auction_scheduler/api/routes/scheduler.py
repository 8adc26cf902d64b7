"""
Daily auction scheduler API. Mounted under /api/v1/scheduler.

Called by the external scheduler / admin tools (initialize, progress, reset, reconcile) and by the
UI (current-auctions, status). Every route accepts an explicit date; when omitted, "today" is
derived here in AUCTION_TIMEZONE and passed down, never inside the service.
"""
import logging
from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auction_scheduler.core.constants import ALL_JOB_IDS, PROGRESS_JOB_ID
from auction_scheduler.core.errors import (
    AuctionSchedulerError,
    SchedulerNotRunningError,
    scheduler_error_to_http,
)
from auction_scheduler.core.scheduler_config import get_scheduler_config
from auction_scheduler.db.session import get_db
from auction_scheduler.services.auctions.heartbeat import get_job_heartbeat
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

router = APIRouter()
logger = logging.getLogger(__name__)


def _day(value: date | None) -> date:
    return value or auction_today()


def _job_next_run_iso(request: Request, job_id: str) -> str | None:
    """Next run time (ISO) of a scheduler job, or None when the scheduler is not running."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if not scheduler:
        return None
    job = scheduler.get_job(job_id)
    at = getattr(job, "next_run_time", None) if job else None
    if at is None:
        return None
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.isoformat()


# --- Initialize ---


class InitializeDayRequest(BaseModel):
    master_id: str | None = Field(None, description="Master auction the day's slots belong to")
    scheduled_date: date | None = Field(None, description="Day to initialize (default: today)")


@router.post("/initialize-daily-auctions", status_code=201)
def initialize_daily_auctions(
    body: InitializeDayRequest | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Create the day's first three auctions (#1 LIVE, #2 and #3 UPCOMING). Fails if the day already has any."""
    day = _day(body.scheduled_date if body else None)
    try:
        rows = initialize_day(db, body.master_id if body else None, day)
    except AuctionSchedulerError as e:
        raise scheduler_error_to_http(e)
    except Exception as e:
        logger.exception("initialize-daily-auctions failed for %s: %s", day, e)
        raise scheduler_error_to_http(e)
    return {
        "success": True,
        "message": "Daily auctions initialized successfully",
        "date": day.isoformat(),
        "slots": [auction_to_dict(r) for r in rows],
        "count": len(rows),
    }


# --- Progress ---


class DayRequest(BaseModel):
    scheduled_date: date | None = Field(None, description="Day to operate on (default: today)")


@router.post("/progress-auctions")
def progress_auctions(
    body: DayRequest | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Rotate the day: LIVE -> COMPLETED, earliest UPCOMING -> LIVE, append a new UPCOMING."""
    day = _day(body.scheduled_date if body else None)
    try:
        result = progress_round(db, day)
    except AuctionSchedulerError as e:
        raise scheduler_error_to_http(e)
    except Exception as e:
        logger.exception("progress-auctions failed for %s: %s", day, e)
        raise scheduler_error_to_http(e)
    return {
        "success": True,
        "message": "Auctions progressed successfully",
        "date": day.isoformat(),
        "completed": auction_to_dict(result["completed"]),
        "live": auction_to_dict(result["live"]),
        "new_upcoming": auction_to_dict(result["new_upcoming"]),
    }


# --- Reset ---


class ResetDayRequest(BaseModel):
    today: date | None = Field(None, description="Day treated as today (default: today)")


@router.post("/reset-daily")
def reset_daily(
    body: ResetDayRequest | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Maintenance: mark earlier days' unfinished auctions COMPLETED and delete today's auctions
    so the day can be initialized again. Irreversible for today's data.
    """
    day = _day(body.today if body else None)
    try:
        counts = reset_day(db, day)
    except Exception as e:
        logger.exception("reset-daily failed for %s: %s", day, e)
        raise scheduler_error_to_http(e)
    return {
        "success": True,
        "message": "Daily cycle reset successfully",
        "date": day.isoformat(),
        **counts,
    }


# --- Reconcile ---


@router.post("/reconcile")
def reconcile(
    body: DayRequest | None = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Repair a day with no LIVE auction (promote earliest UPCOMING) or several (keep the latest)."""
    day = _day(body.scheduled_date if body else None)
    try:
        result = reconcile_day(db, day)
    except Exception as e:
        logger.exception("reconcile failed for %s: %s", day, e)
        raise scheduler_error_to_http(e)
    return {
        "success": True,
        "date": day.isoformat(),
        "completed": [auction_to_dict(r) for r in result["completed"]],
        "promoted": auction_to_dict(result["promoted"]),
    }


# --- Read-only ---


@router.get("/current-auctions")
def current_auctions(
    db: Session = Depends(get_db),
    day: date | None = Query(None, alias="date"),
) -> dict[str, Any]:
    """All auctions for the day ordered by auction_number. Safe to poll."""
    day = _day(day)
    try:
        rows = list_day(db, day)
    except Exception as e:
        logger.exception("current-auctions failed for %s: %s", day, e)
        raise scheduler_error_to_http(e)
    return {
        "success": True,
        "date": day.isoformat(),
        "auctions": [auction_to_dict(r) for r in rows],
        "count": len(rows),
    }


@router.get("/status")
def status(
    request: Request,
    db: Session = Depends(get_db),
    day: date | None = Query(None, alias="date"),
) -> dict[str, Any]:
    """Counts per status, the LIVE auction, next auction time and master id for the day."""
    now = datetime.now(timezone.utc)
    day = day or auction_today(now)
    try:
        view = day_status(db, day)
    except Exception as e:
        logger.exception("status failed for %s: %s", day, e)
        raise scheduler_error_to_http(e)
    return {
        "success": True,
        "current_time": now.isoformat(),
        "current_date": day.isoformat(),
        **view,
        "next_progression_at": _job_next_run_iso(request, PROGRESS_JOB_ID),
    }


def _running_scheduler(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if not scheduler or not scheduler.running:
        raise SchedulerNotRunningError()
    return scheduler


def _jobs_view(request: Request) -> list[dict[str, Any]]:
    scheduler = getattr(request.app.state, "scheduler", None)
    out = []
    for job_id in ALL_JOB_IDS:
        job = scheduler.get_job(job_id) if scheduler else None
        out.append(
            {
                "id": job_id,
                "next_run_time": _job_next_run_iso(request, job_id),
                # APScheduler keeps a paused job with next_run_time=None
                "paused": None if job is None else getattr(job, "next_run_time", None) is None,
                "heartbeat": get_job_heartbeat(job_id),
            }
        )
    return out


@router.get("/jobs")
def jobs(request: Request) -> dict[str, Any]:
    """Cron jobs with next run time, paused flag and last-run heartbeat, plus the effective schedule config."""
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "success": True,
        "scheduler_running": bool(scheduler and scheduler.running),
        "config": asdict(get_scheduler_config()),
        "jobs": _jobs_view(request),
    }


@router.post("/jobs/start")
def start_jobs(request: Request) -> dict[str, Any]:
    """Resume the daily cron jobs (init, progression, reset). Idempotent."""
    try:
        scheduler = _running_scheduler(request)
        for job_id in ALL_JOB_IDS:
            scheduler.resume_job(job_id)
    except AuctionSchedulerError as e:
        raise scheduler_error_to_http(e)
    except Exception as e:
        logger.exception("jobs/start failed: %s", e)
        raise scheduler_error_to_http(e)
    logger.info("Auction cron jobs resumed: %s", ", ".join(ALL_JOB_IDS))
    return {"success": True, "message": "All cron jobs started", "jobs": _jobs_view(request)}


@router.post("/jobs/stop")
def stop_jobs(request: Request) -> dict[str, Any]:
    """Pause the daily cron jobs; the API keeps working and manual calls still apply. Idempotent."""
    try:
        scheduler = _running_scheduler(request)
        for job_id in ALL_JOB_IDS:
            scheduler.pause_job(job_id)
    except AuctionSchedulerError as e:
        raise scheduler_error_to_http(e)
    except Exception as e:
        logger.exception("jobs/stop failed: %s", e)
        raise scheduler_error_to_http(e)
    logger.warning("Auction cron jobs paused: %s", ", ".join(ALL_JOB_IDS))
    return {"success": True, "message": "All cron jobs stopped", "jobs": _jobs_view(request)}
