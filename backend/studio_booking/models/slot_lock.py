# backend/studio_booking/models/slot_lock.py
"""Short-lived checkout holds on a room (and optional engineer) window."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.sql import func
import ulid

from ..core.time_utils import to_utc, utc_now
from ..database import Base


class SlotLock(Base):
    """
    Exclusive hold on ``[start_at, end_at)`` while the holder pays.

    A lock whose ``expires_at`` has passed is inert: it is ignored by every
    read and purged before every acquisition.
    """

    __tablename__ = "slot_locks"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_slot_locks_time_order"),
        CheckConstraint("expires_at > created_at", name="ck_slot_locks_expiry_after_creation"),
        Index("ix_slot_locks_room_window", "room_id", "start_at", "end_at"),
        Index("ix_slot_locks_engineer_window", "engineer_id", "start_at", "end_at"),
        Index("ix_slot_locks_expires_at", "expires_at"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    room_id = Column(
        String(26), ForeignKey("studio_rooms.id", ondelete="CASCADE"), nullable=False
    )
    engineer_id = Column(
        String(26), ForeignKey("engineer_profiles.id", ondelete="CASCADE"), nullable=True
    )
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    locked_by = Column(String(26), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def is_expired(self, now: datetime | None = None) -> bool:
        return to_utc(self.expires_at) <= to_utc(now or utc_now())

    def __repr__(self) -> str:
        return (
            f"<SlotLock {self.id} room={self.room_id} engineer={self.engineer_id} "
            f"{self.start_at}-{self.end_at} by={self.locked_by}>"
        )
