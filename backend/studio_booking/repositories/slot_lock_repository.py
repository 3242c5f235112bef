# backend/studio_booking/repositories/slot_lock_repository.py
"""
Slot lock data access.

Every read that decides a reservation filters ``expires_at > now`` so
expired locks never block anyone, even before they are purged.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.time_utils import to_utc
from ..models.slot_lock import SlotLock
from .base_repository import BaseRepository


class SlotLockRepository(BaseRepository[SlotLock]):
    """Repository for checkout slot locks."""

    def __init__(self, db: Session):
        super().__init__(db, SlotLock)

    def purge_expired(self, now: datetime) -> int:
        """Delete every lock whose expiry has passed. Returns the number removed."""
        try:
            return (
                self.db.query(SlotLock)
                .filter(SlotLock.expires_at <= to_utc(now))
                .delete(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self._raise_translated(e, "Failed to purge expired slot locks")

    def find_conflicting(
        self,
        room_id: str,
        engineer_id: Optional[str],
        start_at: datetime,
        end_at: datetime,
        now: datetime,
        *,
        exclude_user_id: Optional[str] = None,
    ) -> List[SlotLock]:
        """
        Active locks overlapping ``[start_at, end_at)`` on the room or engineer.

        Intervals are half-open: a lock ending exactly at ``start_at`` does not
        conflict.
        """
        resource_filter = SlotLock.room_id == room_id
        if engineer_id:
            resource_filter = or_(resource_filter, SlotLock.engineer_id == engineer_id)

        query = self._build_query().filter(
            and_(
                resource_filter,
                SlotLock.expires_at > to_utc(now),
                SlotLock.start_at < to_utc(end_at),
                SlotLock.end_at > to_utc(start_at),
            )
        )
        if exclude_user_id:
            query = query.filter(SlotLock.locked_by != exclude_user_id)
        return self._execute_query(query.order_by(SlotLock.created_at))

    def find_for_user_window(
        self, user_id: str, room_id: str, start_at: datetime, end_at: datetime
    ) -> List[SlotLock]:
        """Locks (expired or not) held by ``user_id`` for exactly this room window."""
        query = self._build_query().filter(
            SlotLock.locked_by == user_id,
            SlotLock.room_id == room_id,
            SlotLock.start_at == to_utc(start_at),
            SlotLock.end_at == to_utc(end_at),
        )
        return self._execute_query(query.order_by(SlotLock.expires_at.desc()))

    def get_owned(self, lock_id: str, user_id: str) -> Optional[SlotLock]:
        query = self._build_query().filter(SlotLock.id == lock_id, SlotLock.locked_by == user_id)
        return self._execute_first(query)

    def list_active_for_user(self, user_id: str, now: datetime) -> List[SlotLock]:
        query = self._build_query().filter(
            SlotLock.locked_by == user_id, SlotLock.expires_at > to_utc(now)
        )
        return self._execute_query(query.order_by(SlotLock.start_at))

    def delete_for_user_overlapping(
        self, user_id: str, room_id: str, start_at: datetime, end_at: datetime
    ) -> int:
        """Remove the user's locks on the room that overlap the window."""
        try:
            return (
                self.db.query(SlotLock)
                .filter(
                    SlotLock.locked_by == user_id,
                    SlotLock.room_id == room_id,
                    SlotLock.start_at < to_utc(end_at),
                    SlotLock.end_at > to_utc(start_at),
                )
                .delete(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self._raise_translated(e, "Failed to delete slot locks")
