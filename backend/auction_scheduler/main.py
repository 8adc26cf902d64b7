"""
FastAPI app entrypoint.

Daily auction scheduler: lifecycle API under /api/v1/scheduler plus the cron jobs that drive it
(initialize at AUCTION_INIT_HOUR, progress over AUCTION_PROGRESS_HOURS, reset at AUCTION_RESET_HOUR).
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from auction_scheduler.api.routes import scheduler
from auction_scheduler.config import settings
from auction_scheduler.core.constants import (
    DAILY_INIT_JOB_ID,
    DAILY_RESET_JOB_ID,
    PROGRESS_JOB_ID,
    SCHEDULER_API_PREFIX,
)
from auction_scheduler.core.scheduler_config import (
    AUCTION_INIT_HOUR,
    AUCTION_PROGRESS_HOURS,
    AUCTION_RESET_HOUR,
    AUCTION_TIMEZONE,
)
from auction_scheduler.scheduler.daily_auction_jobs import (
    run_daily_initialization_job,
    run_daily_reset_job,
    run_progression_job,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_scheduler() -> BackgroundScheduler:
    """Cron jobs for the daily cycle, all in AUCTION_TIMEZONE. Not started here."""
    sched = BackgroundScheduler(timezone=AUCTION_TIMEZONE)
    sched.add_job(
        run_daily_initialization_job,
        "cron",
        hour=AUCTION_INIT_HOUR,
        minute=0,
        id=DAILY_INIT_JOB_ID,
        coalesce=True,
        max_instances=1,
    )
    sched.add_job(
        run_progression_job,
        "cron",
        hour=AUCTION_PROGRESS_HOURS,
        minute=0,
        id=PROGRESS_JOB_ID,
        coalesce=True,
        max_instances=1,
    )
    sched.add_job(
        run_daily_reset_job,
        "cron",
        hour=AUCTION_RESET_HOUR,
        minute=0,
        id=DAILY_RESET_JOB_ID,
        coalesce=True,
        max_instances=1,
    )
    return sched


@asynccontextmanager
async def lifespan(app: FastAPI):
    sched = None
    if settings.scheduler_enabled:
        sched = create_scheduler()
        sched.start()
        app.state.scheduler = sched
        logger.info(
            "Auction scheduler started (tz=%s): init %02d:00, progress hours %s, reset %02d:00",
            AUCTION_TIMEZONE, AUCTION_INIT_HOUR, AUCTION_PROGRESS_HOURS, AUCTION_RESET_HOUR,
        )
        if not settings.default_master_id:
            logger.warning("DEFAULT_MASTER_ID not set; daily initialization job will skip")
    else:
        logger.info("SCHEDULER_ENABLED=false; cron jobs not registered (API only)")
    yield
    if sched is not None:
        sched.shutdown(wait=False)


app = FastAPI(title="Daily Auction Scheduler", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(scheduler.router, prefix=SCHEDULER_API_PREFIX, tags=["scheduler"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Daily Auction Scheduler API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
