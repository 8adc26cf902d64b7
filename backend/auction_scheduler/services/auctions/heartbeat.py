"""
Scheduler job heartbeat (in-memory, per job id).

Set by the jobs in auction_scheduler.scheduler.daily_auction_jobs; read by GET /jobs.
Restarting the backend clears it.
"""
import threading
from datetime import datetime, timezone

_lock = threading.Lock()
_heartbeats: dict[str, dict] = {}


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def set_job_heartbeat(
    job_id: str,
    started: datetime | None = None,
    finished: datetime | None = None,
    error: str | None = None,
    result: dict | None = None,
    running: bool | None = None,
) -> None:
    with _lock:
        hb = _heartbeats.setdefault(
            job_id,
            {
                "last_started_at": None,
                "last_finished_at": None,
                "last_error": None,
                "last_result": None,
                "is_running": False,
                "run_count": 0,
            },
        )
        if started is not None:
            hb["last_started_at"] = started
            hb["run_count"] += 1
            # A new run clears the previous run's error
            hb["last_error"] = None
        if finished is not None:
            hb["last_finished_at"] = finished
        if error is not None:
            hb["last_error"] = error
        if result is not None:
            hb["last_result"] = result
        if running is not None:
            hb["is_running"] = running


def get_job_heartbeat(job_id: str) -> dict:
    """Last run times, error and result for one job. Empty shape if the job never ran."""
    with _lock:
        hb = dict(_heartbeats.get(job_id) or {})
    started = hb.get("last_started_at")
    finished = hb.get("last_finished_at")
    out = {
        "last_started_at": _iso(started),
        "last_finished_at": _iso(finished),
        "last_error": hb.get("last_error"),
        "last_result": hb.get("last_result"),
        "is_running": hb.get("is_running", False),
        "run_count": hb.get("run_count", 0),
    }
    if started is not None and finished is not None and finished >= started:
        out["last_run_duration_seconds"] = (finished - started).total_seconds()
    else:
        out["last_run_duration_seconds"] = None
    return out


def reset_job_heartbeats() -> None:
    with _lock:
        _heartbeats.clear()
