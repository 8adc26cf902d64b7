"""
Daily auction scheduler operations (DB-bound). Decisions come from lifecycle; this module loads
a day's rows, applies the decision and commits once.

Every mutating operation runs under day_lock(date): a process-local lock per scheduled_date plus,
on PostgreSQL, a transaction-scoped advisory lock, so two progressions for the same day can
never interleave. Any exception rolls the session back (all-or-nothing) and propagates.

"Today" is never read inside an operation: callers pass scheduled_date (routes and jobs use
auction_today()).
"""
import hashlib
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auction_scheduler.core.errors import AlreadyInitializedError
from auction_scheduler.core.scheduler_config import AUCTION_PROGRESS_INTERVAL_HOURS, AUCTION_TIMEZONE
from auction_scheduler.models.daily_auction import DailyAuction
from auction_scheduler.services.auctions.lifecycle import (
    ACTIVE_STATUSES,
    AuctionStatus,
    carry_forward,
    initial_day_plan,
    new_auction_id,
    parse_time_slot,
    plan_reconcile,
    plan_rotation,
    summarize_day,
)

logger = logging.getLogger(__name__)

# Fixed pool of process-local locks; a scheduled_date always maps to the same stripe
DAY_LOCK_STRIPES = 64
_day_locks = tuple(threading.Lock() for _ in range(DAY_LOCK_STRIPES))


def auction_today(now: datetime | None = None) -> date:
    """Calendar day in AUCTION_TIMEZONE (UTC by default). The only place 'today' is derived."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(AUCTION_TIMEZONE)).date()


def _date_str(scheduled_date: date | str) -> str:
    if isinstance(scheduled_date, date):
        return scheduled_date.isoformat()
    return date.fromisoformat(scheduled_date).isoformat()


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def _advisory_lock_key(date_str: str) -> int:
    """Deterministic bigint for PostgreSQL advisory lock (one scheduled_date = one writer)."""
    h = hashlib.sha256(f"daily_auctions:{date_str}".encode()).digest()[:8]
    return int.from_bytes(h, "big") % (2**63)


def _day_lock_for(date_str: str) -> threading.Lock:
    return _day_locks[_advisory_lock_key(date_str) % DAY_LOCK_STRIPES]


@contextmanager
def day_lock(db: Session, date_str: str):
    """Serialize mutating operations for one scheduled_date. Commit inside the block releases the PG lock."""
    with _day_lock_for(date_str):
        bind = db.get_bind()
        if bind is not None and bind.dialect.name == "postgresql":
            db.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": _advisory_lock_key(date_str)})
        yield


def _day_rows(db: Session, date_str: str, for_update: bool = False) -> list[DailyAuction]:
    q = (
        db.query(DailyAuction)
        .filter(DailyAuction.scheduled_date == date_str)
        .order_by(DailyAuction.auction_number.asc())
    )
    if for_update:
        q = q.with_for_update()
    return q.all()


def auction_to_dict(row: DailyAuction | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {
        "id": row.id,
        "master_id": row.master_id,
        "auction_number": row.auction_number,
        "auction_id": row.auction_id,
        "time_slot": row.time_slot,
        "auction_name": row.auction_name,
        "image_url": row.image_url,
        "prize_value": row.prize_value,
        "max_discount": row.max_discount,
        "status": row.status,
        "entry_fee_type": row.entry_fee_type,
        "min_entry_fee": row.min_entry_fee,
        "max_entry_fee": row.max_entry_fee,
        "fee_split_box_a": row.fee_split_box_a,
        "fee_split_box_b": row.fee_split_box_b,
        "round_count": row.round_count,
        "round_config": list(row.round_config or []),
        "scheduled_date": row.scheduled_date,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


# --- InitializeDay ---


def initialize_day(
    db: Session,
    master_id: str | None,
    scheduled_date: date | str,
    now: datetime | None = None,
) -> list[DailyAuction]:
    """
    Seed a day with its first three slots (#1 LIVE 09:00, #2/#3 UPCOMING 10:00/11:00).
    Raises MissingMasterIdError before touching the DB, AlreadyInitializedError if the day has
    any slot (or a concurrent initializer won the unique constraint).
    """
    date_str = _date_str(scheduled_date)
    plan = initial_day_plan(master_id, date_str)
    now = _now(now)
    with day_lock(db, date_str):
        try:
            existing = (
                db.query(DailyAuction.id)
                .filter(DailyAuction.scheduled_date == date_str)
                .first()
            )
            if existing is not None:
                raise AlreadyInitializedError(f"Auctions already initialized for {date_str}")
            rows = [DailyAuction(**fields, created_at=now, updated_at=now) for fields in plan]
            db.add_all(rows)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning("initialize_day %s: unique constraint tripped (%s)", date_str, e.orig)
            raise AlreadyInitializedError(f"Auctions already initialized for {date_str}") from e
        except Exception:
            db.rollback()
            raise
    logger.info(
        "Initialized %s auctions for %s (master_id=%s, live=#%s)",
        len(rows), date_str, plan[0]["master_id"], rows[0].auction_number,
    )
    return rows


# --- ProgressRound ---


def progress_round(
    db: Session,
    scheduled_date: date | str,
    now: datetime | None = None,
) -> dict[str, DailyAuction]:
    """
    One rotation: LIVE -> COMPLETED, earliest UPCOMING -> LIVE, append a new UPCOMING slot that
    carries the completed slot's configuration forward. NoLiveAuctionError / NoUpcomingAuctionError
    are raised before any write, so a failed call leaves the day unchanged.
    """
    date_str = _date_str(scheduled_date)
    now = _now(now)
    with day_lock(db, date_str):
        try:
            rows = _day_rows(db, date_str, for_update=True)
            rotation = plan_rotation(rows)
            completed, promoted = rotation.completed, rotation.promoted

            completed.status = AuctionStatus.COMPLETED.value
            completed.updated_at = now
            promoted.status = AuctionStatus.LIVE.value
            promoted.updated_at = now

            new_upcoming = DailyAuction(
                **carry_forward(completed),
                auction_id=new_auction_id(),
                auction_number=rotation.auction_number,
                time_slot=rotation.time_slot,
                status=AuctionStatus.UPCOMING.value,
                scheduled_date=date_str,
                created_at=now,
                updated_at=now,
            )
            db.add(new_upcoming)
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.info(
        "Progressed %s: #%s COMPLETED, #%s LIVE (%s), new #%s UPCOMING at %s",
        date_str,
        completed.auction_number,
        promoted.auction_number,
        promoted.time_slot,
        new_upcoming.auction_number,
        new_upcoming.time_slot,
    )
    return {"completed": completed, "live": promoted, "new_upcoming": new_upcoming}


# --- ResetDay ---


def reset_day(db: Session, today: date | str, now: datetime | None = None) -> dict[str, int]:
    """
    Maintenance: force-complete non-terminal slots from days before `today`, then delete every slot
    dated `today` so InitializeDay can run again. Destructive for today's data.
    """
    date_str = _date_str(today)
    now = _now(now)
    with day_lock(db, date_str):
        try:
            updated = (
                db.query(DailyAuction)
                .filter(
                    DailyAuction.scheduled_date < date_str,
                    DailyAuction.status.in_(sorted(ACTIVE_STATUSES)),
                )
                .update(
                    {DailyAuction.status: AuctionStatus.COMPLETED.value, DailyAuction.updated_at: now},
                    synchronize_session=False,
                )
            )
            deleted = (
                db.query(DailyAuction)
                .filter(DailyAuction.scheduled_date == date_str)
                .delete(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.warning(
        "reset_day %s: completed %s stale auctions from earlier days, deleted %s auctions for today",
        date_str, updated, deleted,
    )
    return {"updated_count": updated, "deleted_count": deleted}


# --- Read projections ---


def list_day(db: Session, scheduled_date: date | str) -> list[DailyAuction]:
    """All slots for the day ordered by auction_number. Read-only."""
    return _day_rows(db, _date_str(scheduled_date))


def day_status(db: Session, scheduled_date: date | str) -> dict[str, Any]:
    """
    Status view for admin screens: counts per status, the LIVE slot, when the next auction is due
    (LIVE time + progression interval, None past midnight) and the master id used by the day.
    """
    rows = list_day(db, scheduled_date)
    live = next((r for r in rows if r.status == AuctionStatus.LIVE.value), None)
    next_auction_time = None
    if live is not None and live.time_slot:
        hours, minutes = parse_time_slot(live.time_slot)
        next_hour = hours + AUCTION_PROGRESS_INTERVAL_HOURS
        if next_hour < 24:
            next_auction_time = f"{next_hour:02d}:{minutes:02d}"
    return {
        "today_stats": summarize_day(rows),
        "current_live_auction": auction_to_dict(live),
        "next_auction_time": next_auction_time,
        "master_id_in_use": rows[0].master_id if rows else None,
    }


# --- ReconcileDay ---


def reconcile_day(
    db: Session,
    scheduled_date: date | str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Repair a day that lost its single-LIVE shape: complete surplus LIVE slots or promote the
    earliest UPCOMING when none is LIVE. No-op (and no commit) when the day is healthy.
    """
    date_str = _date_str(scheduled_date)
    now = _now(now)
    with day_lock(db, date_str):
        try:
            rows = _day_rows(db, date_str, for_update=True)
            plan = plan_reconcile(rows)
            if plan.is_noop:
                db.rollback()
                return {"completed": [], "promoted": None}
            for row in plan.to_complete:
                row.status = AuctionStatus.COMPLETED.value
                row.updated_at = now
            if plan.to_promote is not None:
                plan.to_promote.status = AuctionStatus.LIVE.value
                plan.to_promote.updated_at = now
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.warning(
        "reconcile_day %s: completed %s, promoted %s",
        date_str,
        [r.auction_number for r in plan.to_complete],
        plan.to_promote.auction_number if plan.to_promote is not None else None,
    )
    return {"completed": plan.to_complete, "promoted": plan.to_promote}
