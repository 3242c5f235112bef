# backend/studio_booking/repositories/booking_repository.py
"""
Booking Repository for the studio booking core.

Holds the overlap queries used for conflict checking and the conditional
update that every lifecycle transition goes through.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, HoldStatus
from ..core.exceptions import RepositoryException
from ..core.time_utils import to_utc
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    # Conflict queries

    def find_room_conflict(
        self,
        room_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> Optional[Booking]:
        """First non-cancelled booking on the room overlapping ``[start_at, end_at)``."""
        query = self._overlapping(start_at, end_at, exclude_booking_id).filter(
            Booking.room_id == room_id
        )
        return self._execute_first(query)

    def find_engineer_conflict(
        self,
        engineer_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> Optional[Booking]:
        """First non-cancelled booking for the engineer overlapping ``[start_at, end_at)``."""
        query = self._overlapping(start_at, end_at, exclude_booking_id).filter(
            Booking.engineer_id == engineer_id
        )
        return self._execute_first(query)

    def _overlapping(
        self, start_at: datetime, end_at: datetime, exclude_booking_id: Optional[str]
    ):
        query = self._build_query().filter(
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.start_at < to_utc(end_at),
            Booking.end_at > to_utc(start_at),
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.order_by(Booking.start_at)

    # Lookups

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[Booking]:
        query = self._build_query().filter(Booking.payment_intent_id == payment_intent_id)
        return self._execute_first(query)

    def reload(self, booking: Booking) -> Booking:
        """Refresh a booking after a bulk UPDATE so callers see committed values."""
        self.db.refresh(booking)
        return booking

    # Writes

    def conditional_update(
        self,
        booking_id: str,
        *,
        expected_statuses: Optional[Iterable[BookingStatus]] = None,
        expected_version: Optional[int] = None,
        **values: Any,
    ) -> int:
        """
        Compare-and-swap update of a booking row.

        The row is only touched when its status is one of ``expected_statuses``
        and its version equals ``expected_version`` (when given). The version
        is always incremented. Returns the number of rows changed (0 or 1).
        """
        stmt = update(Booking).where(Booking.id == booking_id)
        if expected_statuses is not None:
            stmt = stmt.where(Booking.status.in_([s.value for s in expected_statuses]))
        if expected_version is not None:
            stmt = stmt.where(Booking.version == expected_version)
        stmt = stmt.values(version=Booking.version + 1, **values).execution_options(
            synchronize_session=False
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self._raise_translated(e, "Failed to update booking")
        changed = int(result.rowcount or 0)
        self.logger.debug(
            "booking_conditional_update",
            extra={"booking_id": booking_id, "rows": changed, "fields": sorted(values)},
        )
        return changed

    def raise_hold_status(self, booking_id: str, target: HoldStatus, **values: Any) -> int:
        """
        Move ``hold_status`` forward to ``target``.

        Rows already at or beyond ``target`` are left untouched so a late
        "held" event can never downgrade a captured payment.
        """
        lower = [h.value for h in HoldStatus if h.rank < target.rank]
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.hold_status.in_(lower))
            .values(hold_status=target.value, version=Booking.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self._raise_translated(e, "Failed to update hold status")
        return int(result.rowcount or 0)

    def merge_transfer_ids(
        self, booking_id: str, entries: Dict[str, str], *, max_attempts: int = 3
    ) -> Optional[bool]:
        """
        Merge ``entries`` into the booking's transfer map.

        Read-modify-write guarded by the version column; a concurrent writer
        forces a re-read. Returns True when the map changed, False when every
        entry was already present, and None when the booking does not exist.
        """
        for _ in range(max_attempts):
            booking = self.get_by_id(booking_id)
            if booking is None:
                return None
            self.db.refresh(booking)
            current = booking.transfer_map()
            merged = {**current, **entries}
            if merged == current:
                return False
            changed = self.conditional_update(
                booking_id, expected_version=booking.version, transfer_ids=merged
            )
            if changed:
                return True
        raise RepositoryException("Booking changed concurrently while merging transfer ids")
