# backend/studio_booking/services/slot_lock_service.py
"""
Slot Lock Manager for the studio booking core.

Issues short-lived exclusive holds on a room (and optional engineer) window
while the artist completes checkout. Acquisition is a check-then-insert that
runs inside the per-resource reservation guard, so two concurrent requests
for overlapping windows on the same room or engineer can never both succeed.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    NotFoundException,
    SlotConflictException,
    StoreUnavailableException,
    ValidationException,
)
from ..core.policy import BookingPolicy
from ..core.reservation_guard import reservation_guard, resource_keys
from ..core.time_utils import to_utc, utc_now
from ..models.slot_lock import SlotLock
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.slot_lock_repository import SlotLockRepository
from .availability_service import AvailabilityService
from .base import BaseService

logger = logging.getLogger(__name__)


class SlotLockService(BaseService):
    """Service for acquiring, releasing and expiring checkout slot locks."""

    def __init__(
        self,
        db: Session,
        policy: Optional[BookingPolicy] = None,
        slot_lock_repository: Optional[SlotLockRepository] = None,
        availability_service: Optional[AvailabilityService] = None,
    ):
        super().__init__(db, policy)
        self.repository = slot_lock_repository or RepositoryFactory.create_slot_lock_repository(db)
        self.availability_service = availability_service or AvailabilityService(db, self.policy)

    @BaseService.measure_operation("acquire_lock")
    def acquire_lock(
        self,
        room_id: str,
        engineer_id: Optional[str],
        start_at: datetime,
        end_at: datetime,
        user_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> SlotLock:
        """
        Lock ``[start_at, end_at)`` on the room (and engineer) for ``user_id``.

        Expired locks are purged first and never conflict. The window must
        also pass the availability check (opening hours and bookings).

        Raises:
            ValidationException: Empty or inverted window
            SlotConflictException: The room or engineer is unavailable or locked
        """
        start_at, end_at = to_utc(start_at), to_utc(end_at)
        if start_at >= end_at:
            raise ValidationException("Start time must be before end time")

        try:
            with reservation_guard(self.db, resource_keys(room_id, engineer_id)):
                with self.transaction():
                    current = to_utc(now or utc_now())
                    purged = self.repository.purge_expired(current)
                    prometheus_metrics.inc_slot_locks_expired(purged)

                    availability = self.availability_service.is_available(
                        room_id, engineer_id, start_at, end_at
                    )
                    if not availability.available:
                        raise SlotConflictException(
                            availability.reason, resource=availability.resource
                        )

                    conflicts = self.repository.find_conflicting(
                        room_id, engineer_id, start_at, end_at, current
                    )
                    if conflicts:
                        blocking = conflicts[0]
                        resource = "room" if blocking.room_id == room_id else "engineer"
                        raise SlotConflictException(
                            "Time slot is already locked by another user"
                            if blocking.locked_by != user_id
                            else "You already hold a lock overlapping this time slot",
                            resource=resource,
                            details={"expires_at": to_utc(blocking.expires_at).isoformat()},
                        )

                    lock = self.repository.create(
                        room_id=room_id,
                        engineer_id=engineer_id,
                        start_at=start_at,
                        end_at=end_at,
                        locked_by=user_id,
                        created_at=current,
                        expires_at=current + self.policy.slot_lock_ttl,
                    )
        except SlotConflictException as exc:
            prometheus_metrics.record_slot_lock_attempt("conflict")
            self.logger.info(
                "slot_lock_conflict",
                extra={
                    "room_id": room_id,
                    "engineer_id": engineer_id,
                    "user_id": user_id,
                    "resource": exc.details.get("resource"),
                },
            )
            raise
        except StoreUnavailableException:
            prometheus_metrics.record_slot_lock_attempt("unavailable")
            raise

        prometheus_metrics.record_slot_lock_attempt("acquired")
        self.logger.info(
            "slot_lock_acquired",
            extra={
                "lock_id": lock.id,
                "room_id": room_id,
                "engineer_id": engineer_id,
                "user_id": user_id,
            },
        )
        return lock

    @BaseService.measure_operation("release_lock")
    def release_lock(self, lock_id: str, user_id: str) -> None:
        """
        Remove a lock owned by ``user_id``.

        Raises:
            NotFoundException: No lock with this id is owned by the user
        """
        with self.transaction():
            lock = self.repository.get_owned(lock_id, user_id)
            if lock is None:
                raise NotFoundException("Slot lock not found", details={"lock_id": lock_id})
            self.repository.delete(lock.id)
        self.logger.info("slot_lock_released", extra={"lock_id": lock_id, "user_id": user_id})

    @BaseService.measure_operation("expire_stale_locks")
    def expire_stale_locks(self, now: Optional[datetime] = None) -> int:
        """Purge every expired lock. Intended for the caller's periodic sweep."""
        with self.transaction():
            purged = self.repository.purge_expired(to_utc(now or utc_now()))
        prometheus_metrics.inc_slot_locks_expired(purged)
        if purged:
            self.logger.info("slot_locks_expired", extra={"count": purged})
        return purged

    @BaseService.measure_operation("get_active_locks_for_user")
    def get_active_locks_for_user(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[SlotLock]:
        return self.repository.list_active_for_user(user_id, to_utc(now or utc_now()))
