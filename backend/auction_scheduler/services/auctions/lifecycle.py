"""
Auction lifecycle engine: pure decisions over one day's slots. No DB, no wall clock.

- Status machine: UPCOMING -> LIVE -> COMPLETED. CANCELLED is terminal and never produced here.
- Rotation = complete the LIVE slot, promote the earliest UPCOMING slot (by auction_number),
  append one UPCOMING slot so the queue keeps its size. The new slot starts
  AUCTION_SLOT_STEP_HOURS after the promoted one (mod 24h) and takes max(auction_number) + 1.
- Reconcile = repair a day left with zero or several LIVE slots.

Functions accept any objects exposing status, auction_number and time_slot (ORM rows in the
service, plain dataclasses in tests).
"""
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterable, Protocol

from auction_scheduler.core.constants import (
    DEFAULT_AUCTION_NAME,
    DEFAULT_ENTRY_FEE_TYPE,
    DEFAULT_FEE_SPLIT_BOX_A,
    DEFAULT_FEE_SPLIT_BOX_B,
    DEFAULT_MAX_DISCOUNT,
    DEFAULT_MAX_ENTRY_FEE,
    DEFAULT_MIN_ENTRY_FEE,
    DEFAULT_PRIZE_VALUE,
    DEFAULT_ROUND_COUNT,
    INITIAL_DAY_SLOTS,
)
from auction_scheduler.core.errors import (
    InvalidTimeSlotError,
    MissingMasterIdError,
    NoLiveAuctionError,
    NoUpcomingAuctionError,
)
from auction_scheduler.core.scheduler_config import (
    AUCTION_ROUND_COUNT,
    AUCTION_ROUND_DURATION_SECONDS,
    AUCTION_SLOT_STEP_HOURS,
)


class AuctionStatus(str, Enum):
    UPCOMING = "UPCOMING"
    LIVE = "LIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_STATUSES = frozenset({AuctionStatus.UPCOMING.value, AuctionStatus.LIVE.value})


class SlotLike(Protocol):
    status: str
    auction_number: int
    time_slot: str


_TIME_SLOT_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


# --- Time slots ---


def parse_time_slot(label: str) -> tuple[int, int]:
    """'HH:MM' -> (hours, minutes). Raises InvalidTimeSlotError for anything else."""
    m = _TIME_SLOT_RE.match((label or "").strip())
    if not m:
        raise InvalidTimeSlotError(f"Invalid time slot {label!r} (expected HH:MM)")
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTimeSlotError(f"Invalid time slot {label!r} (out of range)")
    return hours, minutes


def format_time_slot(hours: int, minutes: int) -> str:
    return f"{hours:02d}:{minutes:02d}"


def shift_time_slot(label: str, hours: int) -> str:
    """Add whole hours to a slot label, wrapping past midnight. Minutes are preserved."""
    h, m = parse_time_slot(label)
    return format_time_slot((h + hours) % 24, m)


def next_time_slot(label: str, step_hours: int = AUCTION_SLOT_STEP_HOURS) -> str:
    """Start time of the slot generated after `label` is promoted. 10:00 -> 13:00, 22:30 -> 01:30."""
    return shift_time_slot(label, step_hours)


# --- Slot field plans ---


def default_round_config(
    round_count: int = AUCTION_ROUND_COUNT,
    duration_seconds: int = AUCTION_ROUND_DURATION_SECONDS,
) -> list[dict[str, int]]:
    return [
        {"round_number": n, "duration_seconds": duration_seconds}
        for n in range(1, round_count + 1)
    ]


def new_auction_id() -> str:
    return str(uuid.uuid4())


def _date_str(scheduled_date: date | str) -> str:
    if isinstance(scheduled_date, date):
        return scheduled_date.isoformat()
    return date.fromisoformat(scheduled_date).isoformat()


def initial_day_plan(master_id: str | None, scheduled_date: date | str) -> list[dict[str, Any]]:
    """
    Field dicts for the first three slots of a day: numbers 1-3 at 09:00/10:00/11:00, the first
    LIVE and the rest UPCOMING, all with the same economic defaults and equal-length rounds.
    """
    master_id = (master_id or "").strip()
    if not master_id:
        raise MissingMasterIdError()
    date_str = _date_str(scheduled_date)
    rounds = default_round_config()
    plan = []
    for index, (number, time_slot, name) in enumerate(INITIAL_DAY_SLOTS):
        plan.append(
            {
                "master_id": master_id,
                "auction_number": number,
                "auction_id": new_auction_id(),
                "time_slot": time_slot,
                "auction_name": name,
                "image_url": None,
                "prize_value": DEFAULT_PRIZE_VALUE,
                "max_discount": DEFAULT_MAX_DISCOUNT,
                "status": (AuctionStatus.LIVE if index == 0 else AuctionStatus.UPCOMING).value,
                "entry_fee_type": DEFAULT_ENTRY_FEE_TYPE,
                "min_entry_fee": DEFAULT_MIN_ENTRY_FEE,
                "max_entry_fee": DEFAULT_MAX_ENTRY_FEE,
                "fee_split_box_a": DEFAULT_FEE_SPLIT_BOX_A,
                "fee_split_box_b": DEFAULT_FEE_SPLIT_BOX_B,
                "round_count": len(rounds),
                "round_config": [dict(r) for r in rounds],
                "scheduled_date": date_str,
            }
        )
    return plan


# Fields copied from the completed slot onto its replacement, with the default used when absent
CARRY_FORWARD_DEFAULTS: dict[str, Any] = {
    "auction_name": DEFAULT_AUCTION_NAME,
    "image_url": None,
    "prize_value": DEFAULT_PRIZE_VALUE,
    "max_discount": DEFAULT_MAX_DISCOUNT,
    "entry_fee_type": DEFAULT_ENTRY_FEE_TYPE,
    "min_entry_fee": DEFAULT_MIN_ENTRY_FEE,
    "max_entry_fee": DEFAULT_MAX_ENTRY_FEE,
    "fee_split_box_a": DEFAULT_FEE_SPLIT_BOX_A,
    "fee_split_box_b": DEFAULT_FEE_SPLIT_BOX_B,
    "round_count": DEFAULT_ROUND_COUNT,
}


def carry_forward(source: Any) -> dict[str, Any]:
    """Configuration fields for the slot that replaces `source`. None means absent -> default."""
    out: dict[str, Any] = {"master_id": getattr(source, "master_id", None)}
    for name, default in CARRY_FORWARD_DEFAULTS.items():
        value = getattr(source, name, None)
        out[name] = default if value is None else value
    rounds = getattr(source, "round_config", None)
    out["round_config"] = [dict(r) for r in rounds] if rounds else []
    return out


def next_auction_number(current_max: int | None) -> int:
    return 1 if current_max is None else current_max + 1


# --- Rotation ---


@dataclass
class Rotation:
    """Outcome of plan_rotation; the caller applies it in one transaction."""
    completed: Any
    promoted: Any
    auction_number: int
    time_slot: str


def _by_number(slots: Iterable[SlotLike], status: AuctionStatus) -> list:
    return sorted((s for s in slots if s.status == status.value), key=lambda s: s.auction_number)


def plan_rotation(slots: Iterable[SlotLike], step_hours: int = AUCTION_SLOT_STEP_HOURS) -> Rotation:
    """
    Decide one rotation for a day's slots. Raises NoLiveAuctionError / NoUpcomingAuctionError
    before anything is decided, so callers never mutate on failure.
    """
    slots = list(slots)
    live = _by_number(slots, AuctionStatus.LIVE)
    if not live:
        raise NoLiveAuctionError()
    upcoming = _by_number(slots, AuctionStatus.UPCOMING)
    if not upcoming:
        raise NoUpcomingAuctionError()
    promoted = upcoming[0]
    current_max = max(s.auction_number for s in slots)
    return Rotation(
        completed=live[0],
        promoted=promoted,
        auction_number=next_auction_number(current_max),
        time_slot=next_time_slot(promoted.time_slot, step_hours),
    )


# --- Reconcile ---


@dataclass
class ReconcilePlan:
    to_complete: list = field(default_factory=list)
    to_promote: Any = None

    @property
    def is_noop(self) -> bool:
        return not self.to_complete and self.to_promote is None


def plan_reconcile(slots: Iterable[SlotLike]) -> ReconcilePlan:
    """
    Repair plan for a day that lost its single-LIVE shape (e.g. an interrupted rotation):
    several LIVE -> keep the most recently promoted (highest number), complete the rest;
    no LIVE but UPCOMING left -> promote the earliest UPCOMING.
    """
    slots = list(slots)
    live = _by_number(slots, AuctionStatus.LIVE)
    if len(live) > 1:
        return ReconcilePlan(to_complete=live[:-1])
    if not live:
        upcoming = _by_number(slots, AuctionStatus.UPCOMING)
        if upcoming:
            return ReconcilePlan(to_promote=upcoming[0])
    return ReconcilePlan()


def summarize_day(slots: Iterable[SlotLike]) -> dict[str, int]:
    """Counts per status for a day (live, upcoming, completed, cancelled, total)."""
    counts = {s.value.lower(): 0 for s in AuctionStatus}
    total = 0
    for s in slots:
        total += 1
        key = (s.status or "").lower()
        if key in counts:
            counts[key] += 1
    counts["total"] = total
    return counts
