# backend/studio_booking/models/availability_rule.py
"""Weekly opening hours for rooms and engineers."""

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ResourceAvailabilityRule(Base):
    """
    A recurring weekly window in which a room or engineer can be booked.

    ``weekday`` uses 0 = Sunday. Minutes are minutes after local midnight in
    the owning studio's timezone.
    """

    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint("owner_type IN ('room', 'engineer')", name="ck_availability_rules_owner"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_availability_rules_weekday"),
        CheckConstraint(
            "start_minute >= 0 AND end_minute <= 1439", name="ck_availability_rules_minute_range"
        ),
        CheckConstraint("start_minute < end_minute", name="ck_availability_rules_order"),
        Index("ix_availability_rules_owner_weekday", "owner_type", "owner_id", "weekday"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_type = Column(String(20), nullable=False)
    owner_id = Column(String(26), nullable=False)
    weekday = Column(Integer, nullable=False)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def covers(self, start_minute: int, end_minute: int) -> bool:
        return self.start_minute <= start_minute and self.end_minute >= end_minute

    def __repr__(self) -> str:
        return (
            f"<ResourceAvailabilityRule {self.owner_type}:{self.owner_id} "
            f"day={self.weekday} {self.start_minute}-{self.end_minute}>"
        )
