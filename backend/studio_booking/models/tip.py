# backend/studio_booking/models/tip.py
"""Gratuity left by the artist after a completed session."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Tip(Base):
    """At most one tip per booking, enforced by the unique booking_id."""

    __tablename__ = "tips"
    __table_args__ = (CheckConstraint("amount_cents > 0", name="ck_tips_amount_positive"),)

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    payer_id = Column(String(26), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="tip")

    def __repr__(self) -> str:
        return f"<Tip booking={self.booking_id} amount={self.amount_cents}>"
