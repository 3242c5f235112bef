# backend/studio_booking/core/enums.py
"""
Core enums for the studio booking core.

Values are stored verbatim in the database, so they must never be renamed.
"""

from enum import Enum


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    STUDIO_CONFIRMED = "studio_confirmed"
    ENGINEER_CONFIRMED = "engineer_confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


class HoldStatus(str, Enum):
    """Payment hold progression; only ever moves forward."""

    NONE = "none"
    HELD = "held"
    CAPTURED = "captured"

    @property
    def rank(self) -> int:
        return _HOLD_RANK[self]


_HOLD_RANK = {HoldStatus.NONE: 0, HoldStatus.HELD: 1, HoldStatus.CAPTURED: 2}


class OwnerType(str, Enum):
    """Kind of resource an availability rule belongs to."""

    ROOM = "room"
    ENGINEER = "engineer"


class RecipientRole(str, Enum):
    """Payout recipients of a booking."""

    STUDIO = "studio"
    ENGINEER = "engineer"


class ReconciliationStatus(str, Enum):
    """Outcome of applying a single payment event."""

    APPLIED = "applied"
    NOOP = "noop"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
