"""
Auction scheduler workload config. .env is the source of truth; these defaults apply only when
the env var is unset. All values read at import time.

Env vars: AUCTION_TIMEZONE, AUCTION_INIT_HOUR, AUCTION_PROGRESS_HOURS, AUCTION_RESET_HOUR,
AUCTION_SLOT_STEP_HOURS, AUCTION_PROGRESS_INTERVAL_HOURS, AUCTION_ROUND_COUNT,
AUCTION_ROUND_DURATION_SECONDS.

AUCTION_TIMEZONE decides what "today" means for routes and jobs and is also the timezone the
cron triggers fire in. Verify with GET /api/v1/scheduler/jobs.
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load backend/.env so scheduler config sees env vars regardless of entry point
# (scripts and tests import this module without going through main.py)
_backend_dir = Path(__file__).resolve().parent.parent.parent
_env_path = _backend_dir / ".env"
_env_paths = [_env_path]
if Path.cwd() != _backend_dir:
    _env_paths.extend([Path.cwd() / ".env", Path.cwd() / "backend" / ".env"])
for _p in _env_paths:
    if _p.exists():
        load_dotenv(_p, override=False)
        break
else:
    load_dotenv(_env_path, override=False)  # load_dotenv no-ops if file missing

_log = logging.getLogger(__name__)

# Cron "hour" field: single hour, range or comma list (e.g. "10-23", "9,12,15")
_CRON_HOURS_RE = re.compile(r"^\d{1,2}(-\d{1,2})?(,\d{1,2}(-\d{1,2})?)*$")


def _int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = os.environ.get(key)
    if raw is None:
        v = default
    else:
        try:
            v = int(raw.strip())
        except ValueError:
            v = default
    if min_val is not None and v < min_val:
        v = min_val
    if max_val is not None and v > max_val:
        v = max_val
    return v


def _timezone(key: str, default: str) -> str:
    raw = (os.environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError):
        _log.warning("%s=%r is not a known timezone; using %s", key, raw, default)
        return default
    return raw


def _cron_hours(key: str, default: str) -> str:
    raw = (os.environ.get(key) or "").replace(" ", "")
    if not raw:
        return default
    if not _CRON_HOURS_RE.match(raw):
        _log.warning("%s=%r is not a cron hour expression; using %s", key, raw, default)
        return default
    return raw


# -----------------------------------------------------------------------------
# Day boundary and cron schedule (set in .env; defaults below only when unset)
# -----------------------------------------------------------------------------
AUCTION_TIMEZONE = _timezone("AUCTION_TIMEZONE", "UTC")
AUCTION_INIT_HOUR = _int("AUCTION_INIT_HOUR", 9, min_val=0, max_val=23)
AUCTION_PROGRESS_HOURS = _cron_hours("AUCTION_PROGRESS_HOURS", "10-23")
AUCTION_RESET_HOUR = _int("AUCTION_RESET_HOUR", 0, min_val=0, max_val=23)

# -----------------------------------------------------------------------------
# Slot generation
# -----------------------------------------------------------------------------
# Each replacement slot starts this many hours after the slot that was just promoted
AUCTION_SLOT_STEP_HOURS = _int("AUCTION_SLOT_STEP_HOURS", 3, min_val=1, max_val=23)
# Hours between progression runs; used for next_auction_time in the status view
AUCTION_PROGRESS_INTERVAL_HOURS = _int("AUCTION_PROGRESS_INTERVAL_HOURS", 1, min_val=1, max_val=23)
AUCTION_ROUND_COUNT = _int("AUCTION_ROUND_COUNT", 3, min_val=1, max_val=10)
AUCTION_ROUND_DURATION_SECONDS = _int("AUCTION_ROUND_DURATION_SECONDS", 300, min_val=30, max_val=3600)

# Log effective config at import so each environment can verify env vars are applied
_log.info(
    "Auction scheduler config (from env): timezone=%s init_hour=%s progress_hours=%s reset_hour=%s "
    "slot_step_hours=%s round_count=%s round_duration_sec=%s",
    AUCTION_TIMEZONE,
    AUCTION_INIT_HOUR,
    AUCTION_PROGRESS_HOURS,
    AUCTION_RESET_HOUR,
    AUCTION_SLOT_STEP_HOURS,
    AUCTION_ROUND_COUNT,
    AUCTION_ROUND_DURATION_SECONDS,
)


@dataclass(frozen=True)
class SchedulerConfig:
    """Snapshot of scheduler config for passing around (e.g. the jobs endpoint)."""
    timezone: str
    init_hour: int
    progress_hours: str
    reset_hour: int
    slot_step_hours: int
    progress_interval_hours: int
    round_count: int
    round_duration_seconds: int


def get_scheduler_config() -> SchedulerConfig:
    return SchedulerConfig(
        timezone=AUCTION_TIMEZONE,
        init_hour=AUCTION_INIT_HOUR,
        progress_hours=AUCTION_PROGRESS_HOURS,
        reset_hour=AUCTION_RESET_HOUR,
        slot_step_hours=AUCTION_SLOT_STEP_HOURS,
        progress_interval_hours=AUCTION_PROGRESS_INTERVAL_HOURS,
        round_count=AUCTION_ROUND_COUNT,
        round_duration_seconds=AUCTION_ROUND_DURATION_SECONDS,
    )
