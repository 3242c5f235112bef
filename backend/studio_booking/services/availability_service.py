# backend/studio_booking/services/availability_service.py
"""
Availability & Conflict Checker for the studio booking core.

Answers "can this room (and engineer) be booked for this window?" by
checking, in order:
- the room's weekly opening hours
- the engineer's weekly hours, when an engineer is requested
- existing non-cancelled bookings on the room
- existing non-cancelled bookings for the engineer

The first failing check decides the reason. This service only reads.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.enums import OwnerType
from ..core.exceptions import ValidationException
from ..core.policy import BookingPolicy
from ..core.time_utils import local_window, to_utc
from ..repositories import RepositoryFactory
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.booking_repository import BookingRepository
from ..repositories.catalog_repository import CatalogRepository
from .base import BaseService

logger = logging.getLogger(__name__)

REASON_CROSS_MIDNIGHT = "Bookings must start and end on the same day"
REASON_ROOM_CLOSED = "Room not available at this time"
REASON_ENGINEER_OFF = "Engineer not available at this time"
REASON_ROOM_BOOKED = "Time slot already booked"
REASON_ENGINEER_BOOKED = "Engineer already booked"


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    reason: Optional[str] = None
    resource: Optional[str] = None

    @classmethod
    def ok(cls) -> "AvailabilityResult":
        return cls(True, None)

    @classmethod
    def blocked(cls, reason: str, resource: str) -> "AvailabilityResult":
        return cls(False, reason, resource)


class AvailabilityService(BaseService):
    """
    Service for checking room and engineer availability.

    Weekly rules are evaluated in the studio's local timezone; bookings are
    compared as half-open UTC intervals.
    """

    def __init__(
        self,
        db: Session,
        policy: Optional[BookingPolicy] = None,
        availability_repository: Optional[AvailabilityRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
        catalog_repository: Optional[CatalogRepository] = None,
    ):
        super().__init__(db, policy)
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.catalog_repository = (
            catalog_repository or RepositoryFactory.create_catalog_repository(db)
        )

    @BaseService.measure_operation("is_available")
    def is_available(
        self,
        room_id: str,
        engineer_id: Optional[str],
        start_at: datetime,
        end_at: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Check whether the window is bookable.

        Args:
            room_id: Room to check
            engineer_id: Optional engineer to check alongside the room
            start_at: Window start (inclusive)
            end_at: Window end (exclusive)
            exclude_booking_id: Booking to ignore, used when extending it

        Returns:
            AvailabilityResult with the first failing reason, if any

        Raises:
            ValidationException: If the window is empty or inverted
        """
        start_at, end_at = to_utc(start_at), to_utc(end_at)
        if start_at >= end_at:
            raise ValidationException(
                "Start time must be before end time",
                details={"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
            )

        room = self.catalog_repository.get_room(room_id)
        tz_name = room.studio.timezone if room is not None and room.studio else None
        window = local_window(start_at, end_at, tz_name or self.policy.default_timezone)

        if not window.same_day:
            return self._blocked(room_id, engineer_id, REASON_CROSS_MIDNIGHT, "room")

        if room is None or not self._rules_cover(OwnerType.ROOM, room_id, window):
            return self._blocked(room_id, engineer_id, REASON_ROOM_CLOSED, "room")

        if engineer_id and not self._rules_cover(OwnerType.ENGINEER, engineer_id, window):
            return self._blocked(room_id, engineer_id, REASON_ENGINEER_OFF, "engineer")

        if self.booking_repository.find_room_conflict(
            room_id, start_at, end_at, exclude_booking_id
        ):
            return self._blocked(room_id, engineer_id, REASON_ROOM_BOOKED, "room")

        if engineer_id and self.booking_repository.find_engineer_conflict(
            engineer_id, start_at, end_at, exclude_booking_id
        ):
            return self._blocked(room_id, engineer_id, REASON_ENGINEER_BOOKED, "engineer")

        return AvailabilityResult.ok()

    def _rules_cover(self, owner_type: OwnerType, owner_id: str, window) -> bool:
        rules = self.availability_repository.get_rules(owner_type, owner_id, window.weekday)
        return any(rule.covers(window.start_minute, window.end_minute) for rule in rules)

    def _blocked(
        self, room_id: str, engineer_id: Optional[str], reason: str, resource: str
    ) -> AvailabilityResult:
        self.logger.info(
            "availability_blocked",
            extra={"room_id": room_id, "engineer_id": engineer_id, "reason": reason},
        )
        return AvailabilityResult.blocked(reason, resource)
