"""
Centralized error handling for scheduler failures.
Domain exceptions carry a machine-readable code and an HTTP status; a reusable helper turns them
into HTTPException so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes and codes not tied to a domain exception
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_INTERNAL_ERROR = 500

CODE_INTERNAL_ERROR = "INTERNAL_ERROR"


class AuctionSchedulerError(Exception):
    """Base for scheduler errors that are returned to the caller as-is (never retried here)."""

    code = "SCHEDULER_ERROR"
    status_code = STATUS_INTERNAL_ERROR
    default_message = "Auction scheduler error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code}


# Validation errors: rejected before any mutation


class MissingMasterIdError(AuctionSchedulerError):
    code = "MISSING_MASTER_ID"
    status_code = STATUS_BAD_REQUEST
    default_message = "master_id is required"


# State-precondition errors: the expected prior state does not hold


class AlreadyInitializedError(AuctionSchedulerError):
    code = "ALREADY_INITIALIZED"
    status_code = STATUS_BAD_REQUEST
    default_message = "Auctions already initialized for today"


class NoLiveAuctionError(AuctionSchedulerError):
    code = "NO_LIVE_AUCTION"
    status_code = STATUS_NOT_FOUND
    default_message = "No LIVE auction found for today"


class NoUpcomingAuctionError(AuctionSchedulerError):
    code = "NO_UPCOMING_AUCTION"
    status_code = STATUS_NOT_FOUND
    default_message = "No UPCOMING auction found"


# Stored data that cannot be interpreted (e.g. a hand-edited time_slot)


class InvalidTimeSlotError(AuctionSchedulerError):
    code = "INVALID_TIME_SLOT"
    status_code = STATUS_INTERNAL_ERROR
    default_message = "Invalid time slot"


# Cron jobs cannot be paused or resumed when the scheduler was never started (SCHEDULER_ENABLED=false)


class SchedulerNotRunningError(AuctionSchedulerError):
    code = "SCHEDULER_NOT_RUNNING"
    status_code = STATUS_CONFLICT
    default_message = "Scheduler is not running; set SCHEDULER_ENABLED=true and restart"


# States the external scheduler should surface as "needs attention" rather than routine
NEEDS_ATTENTION_ERRORS = (NoLiveAuctionError, NoUpcomingAuctionError)


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code) for exceptions that are not AuctionSchedulerError.
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

def _is_value_error(exc: Exception) -> bool:
    return isinstance(exc, ValueError)


# List of (predicate, status_code, code). First match wins.
SCHEDULER_ERROR_RULES: list[tuple[Callable[[Exception], bool], int, str]] = [
    (_is_value_error, STATUS_BAD_REQUEST, "INVALID_REQUEST"),
]


def scheduler_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from a scheduler operation into an HTTPException.
    Domain errors keep their own code and status; SCHEDULER_ERROR_RULES cover known foreign
    exceptions; anything else is an opaque 500 with the exception message.
    """
    if isinstance(exc, AuctionSchedulerError):
        return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
    for predicate, status_code, code in SCHEDULER_ERROR_RULES:
        if predicate(exc):
            return HTTPException(
                status_code=status_code,
                detail={"success": False, "error": str(exc), "code": code},
            )
    return HTTPException(
        status_code=STATUS_INTERNAL_ERROR,
        detail={
            "success": False,
            "error": f"Internal server error: {exc}",
            "code": CODE_INTERNAL_ERROR,
        },
    )
