# backend/studio_booking/models/booking.py
"""
Booking model for the studio booking core.

A booking is the committed reservation of a room (and optionally an
engineer) for a window. It snapshots the full fee breakdown at creation so
later rate changes never alter what the artist was charged.

All transitions go through conditional updates on ``status`` and
``version`` (see BookingRepository.conditional_update).
"""

import logging
from typing import Any, Dict

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..core.enums import BookingStatus, HoldStatus
from ..database import Base

logger = logging.getLogger(__name__)


class Booking(Base):
    """Committed reservation with its fee snapshot and payment state."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Parties and resources
    artist_id = Column(String(26), nullable=False, index=True)
    studio_id = Column(String(26), ForeignKey("studio_profiles.id"), nullable=False, index=True)
    room_id = Column(String(26), ForeignKey("studio_rooms.id"), nullable=False)
    engineer_id = Column(String(26), ForeignKey("engineer_profiles.id"), nullable=True)

    # Window (UTC)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)

    # Fee snapshot (integer cents)
    room_cost_cents = Column(Integer, nullable=False)
    engineer_cost_cents = Column(Integer, nullable=False, default=0)
    subtotal_cents = Column(Integer, nullable=False)
    app_fee_cents = Column(Integer, nullable=False)
    app_fee_percent = Column(Float, nullable=False)
    studio_payout_cents = Column(Integer, nullable=False)
    engineer_payout_cents = Column(Integer, nullable=False, default=0)
    processor_fee_estimate_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False)

    # Payment state
    hold_status = Column(String(20), nullable=False, default=HoldStatus.NONE.value)
    payment_intent_id = Column(String(255), nullable=True, index=True)
    transfer_ids = Column(JSON, nullable=False, default=dict)

    overtime_minutes = Column(Integer, nullable=False, default=0)
    tip_cents = Column(Integer, nullable=True)

    # Lifecycle timestamps
    studio_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    engineer_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    room = relationship("StudioRoom")
    studio = relationship("StudioProfile")
    engineer = relationship("EngineerProfile")
    tip = relationship("Tip", back_populates="booking", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'studio_confirmed', 'engineer_confirmed', "
            "'in_progress', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "hold_status IN ('none', 'held', 'captured')", name="ck_bookings_hold_status"
        ),
        CheckConstraint("start_at < end_at", name="ck_bookings_time_order"),
        CheckConstraint("overtime_minutes >= 0", name="ck_bookings_overtime_non_negative"),
        CheckConstraint("tip_cents IS NULL OR tip_cents >= 0", name="ck_bookings_tip_non_negative"),
        CheckConstraint(
            "studio_payout_cents + engineer_payout_cents + app_fee_cents = subtotal_cents",
            name="ck_bookings_fee_split",
        ),
        Index("ix_bookings_room_window", "room_id", "start_at", "end_at"),
        Index("ix_bookings_engineer_window", "engineer_id", "start_at", "end_at"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if not self.hold_status:
            self.hold_status = HoldStatus.NONE.value
        if self.transfer_ids is None:
            self.transfer_ids = {}
        if self.version is None:
            self.version = 1
        if self.overtime_minutes is None:
            self.overtime_minutes = 0

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: artist={self.artist_id}, room={self.room_id}, "
            f"engineer={self.engineer_id}, {self.start_at}-{self.end_at}, "
            f"status={self.status}, hold={self.hold_status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def hold_status_enum(self) -> HoldStatus:
        return HoldStatus(self.hold_status)

    def transfer_map(self) -> Dict[str, str]:
        return dict(self.transfer_ids or {})
