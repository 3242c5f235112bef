# backend/studio_booking/models/catalog.py
"""
Catalog records the booking core reads but does not own.

Studios, rooms and engineers are maintained by the marketplace's profile
services. The core only needs their rates, locality and payout accounts.
A studio profile's id is its owner's user id, and an engineer profile's id
is the engineer's user id.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class StudioProfile(Base):
    """A studio business, keyed by its owner's user id."""

    __tablename__ = "studio_profiles"

    id = Column(String(26), primary_key=True)
    name = Column(String(200), nullable=False)
    city = Column(String(120), nullable=True)
    timezone = Column(String(64), nullable=True)
    stripe_connect_id = Column(String(255), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    rooms = relationship("StudioRoom", back_populates="studio", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<StudioProfile {self.id} {self.name!r} city={self.city}>"


class StudioRoom(Base):
    """A bookable room inside a studio."""

    __tablename__ = "studio_rooms"
    __table_args__ = (
        CheckConstraint("hourly_rate_cents >= 0", name="ck_studio_rooms_rate_non_negative"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    studio_id = Column(
        String(26), ForeignKey("studio_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    hourly_rate_cents = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    studio = relationship("StudioProfile", back_populates="rooms")

    def __repr__(self) -> str:
        return f"<StudioRoom {self.id} studio={self.studio_id} rate={self.hourly_rate_cents}>"


class EngineerProfile(Base):
    """An audio engineer that can be booked alongside a room."""

    __tablename__ = "engineer_profiles"
    __table_args__ = (
        CheckConstraint("hourly_rate_cents >= 0", name="ck_engineer_profiles_rate_non_negative"),
    )

    id = Column(String(26), primary_key=True)
    display_name = Column(String(200), nullable=True)
    hourly_rate_cents = Column(Integer, nullable=False)
    stripe_connect_id = Column(String(255), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<EngineerProfile {self.id} rate={self.hourly_rate_cents}>"
