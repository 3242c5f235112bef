# backend/studio_booking/services/payment_reconciliation_service.py
"""
Payment reconciliation for the studio booking core.

Applies payment-provider events to bookings and payout profiles. Providers
retry deliveries and do not guarantee ordering, so every handler is an
idempotent, order-independent upsert:

- hold events only move ``hold_status`` forward (never down from captured)
- capture events are a no-op once captured
- transfer ids are merged into the booking's map, never replaced
- replays of an already-recorded event id are reported as duplicates

Unknown event types and events for unknown bookings are logged and ignored;
they are never an error for the sender.
"""

from dataclasses import dataclass
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..core.enums import HoldStatus, ReconciliationStatus
from ..core.exceptions import RepositoryIntegrityError, UnknownEventException
from ..core.policy import BookingPolicy
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..repositories.catalog_repository import CatalogRepository
from ..repositories.slot_lock_repository import SlotLockRepository
from ..repositories.webhook_event_repository import WebhookEventRepository
from ..schemas.payment_events import (
    ACCOUNT_UPDATED,
    HOLD_EVENT_TYPES,
    PAYMENT_CAPTURED,
    TRANSFER_CREATED,
    PaymentEvent,
)
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    status: ReconciliationStatus
    event_type: str
    booking_id: Optional[str] = None
    detail: Optional[str] = None


class PaymentReconciliationService(BaseService):
    """Applies normalized payment events to booking and profile state."""

    def __init__(
        self,
        db: Session,
        policy: Optional[BookingPolicy] = None,
        booking_repository: Optional[BookingRepository] = None,
        slot_lock_repository: Optional[SlotLockRepository] = None,
        catalog_repository: Optional[CatalogRepository] = None,
        webhook_event_repository: Optional[WebhookEventRepository] = None,
    ):
        super().__init__(db, policy)
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.slot_lock_repository = (
            slot_lock_repository or RepositoryFactory.create_slot_lock_repository(db)
        )
        self.catalog_repository = (
            catalog_repository or RepositoryFactory.create_catalog_repository(db)
        )
        self.webhook_event_repository = (
            webhook_event_repository or RepositoryFactory.create_webhook_event_repository(db)
        )
        self._handlers: Dict[str, Callable[[PaymentEvent], ReconciliationResult]] = {
            ACCOUNT_UPDATED: self._apply_account_updated,
            PAYMENT_CAPTURED: self._apply_capture,
            TRANSFER_CREATED: self._apply_transfer,
        }
        for event_type in HOLD_EVENT_TYPES:
            self._handlers[event_type] = self._apply_hold

    @BaseService.measure_operation("apply_event")
    def apply_event(self, event: PaymentEvent) -> ReconciliationResult:
        """
        Apply one payment event.

        Returns:
            ReconciliationResult with status applied, noop, duplicate or ignored

        Raises:
            StoreUnavailableException: The store could not be reached
        """
        if event.id and self.webhook_event_repository.find_by_source_and_event_id(
            event.source, event.id
        ):
            duplicate = ReconciliationResult(ReconciliationStatus.DUPLICATE, event.type)
            return self._done(event, duplicate)

        try:
            with self.transaction():
                result = self._dispatch(event)
                self._record(event, result)
        except UnknownEventException as exc:
            self.logger.info(
                "payment_event_unhandled",
                extra={"event_id": event.id, "event_type": event.type, "code": exc.code},
            )
            result = ReconciliationResult(
                ReconciliationStatus.IGNORED, event.type, detail=exc.message
            )
            try:
                with self.transaction():
                    self._record(event, result)
            except RepositoryIntegrityError:
                result = ReconciliationResult(ReconciliationStatus.DUPLICATE, event.type)
        except RepositoryIntegrityError:
            # Another worker recorded the same event id first
            result = ReconciliationResult(
                ReconciliationStatus.DUPLICATE, event.type, booking_id=event.booking_id
            )

        return self._done(event, result)

    def _dispatch(self, event: PaymentEvent) -> ReconciliationResult:
        handler = self._handlers.get(event.type)
        if handler is None:
            raise UnknownEventException(event.type)
        return handler(event)

    def _record(self, event: PaymentEvent, result: ReconciliationResult) -> None:
        if not event.id:
            return
        self.webhook_event_repository.record(
            source=event.source,
            event_id=event.id,
            event_type=event.type,
            payload=event.payload,
            status=result.status.value,
            related_booking_id=result.booking_id,
        )

    def _done(self, event: PaymentEvent, result: ReconciliationResult) -> ReconciliationResult:
        prometheus_metrics.record_payment_event(event.type, result.status.value)
        self.logger.info(
            "payment_event_reconciled",
            extra={
                "event_id": event.id,
                "event_type": event.type,
                "booking_id": result.booking_id,
                "result": result.status.value,
            },
        )
        return result

    # Lookups

    def _find_booking(self, event: PaymentEvent) -> Optional[Booking]:
        booking = None
        if event.booking_id:
            booking = self.booking_repository.get_by_id(event.booking_id)
        if booking is None and event.payment_intent_id:
            booking = self.booking_repository.get_by_payment_intent(event.payment_intent_id)
        if booking is not None:
            self.db.refresh(booking)
        return booking

    def _booking_missing(self, event: PaymentEvent) -> ReconciliationResult:
        self.logger.warning(
            "payment_event_booking_not_found",
            extra={
                "event_id": event.id,
                "event_type": event.type,
                "booking_id": event.booking_id,
                "payment_intent_id": event.payment_intent_id,
            },
        )
        return ReconciliationResult(
            ReconciliationStatus.IGNORED,
            event.type,
            booking_id=event.booking_id,
            detail="booking not found",
        )

    @staticmethod
    def _outcome(changed: bool, event: PaymentEvent, booking_id: str) -> ReconciliationResult:
        status = ReconciliationStatus.APPLIED if changed else ReconciliationStatus.NOOP
        return ReconciliationResult(status, event.type, booking_id=booking_id)

    # Handlers

    def _apply_hold(self, event: PaymentEvent) -> ReconciliationResult:
        """Funds are authorized: mark held, remember the intent, drop the payer's locks."""
        booking = self._find_booking(event)
        if booking is None:
            return self._booking_missing(event)

        changed = False
        if event.payment_intent_id and not booking.payment_intent_id:
            changed |= bool(
                self.booking_repository.conditional_update(
                    booking.id, payment_intent_id=event.payment_intent_id
                )
            )
        changed |= bool(self.booking_repository.raise_hold_status(booking.id, HoldStatus.HELD))

        removed = self.slot_lock_repository.delete_for_user_overlapping(
            event.user_id or booking.artist_id,
            booking.room_id,
            booking.start_at,
            booking.end_at,
        )
        return self._outcome(changed or removed > 0, event, booking.id)

    def _apply_capture(self, event: PaymentEvent) -> ReconciliationResult:
        booking = self._find_booking(event)
        if booking is None:
            return self._booking_missing(event)

        values = {}
        if event.payment_intent_id and not booking.payment_intent_id:
            values["payment_intent_id"] = event.payment_intent_id
        changed = self.booking_repository.raise_hold_status(
            booking.id, HoldStatus.CAPTURED, **values
        )
        return self._outcome(bool(changed), event, booking.id)

    def _apply_transfer(self, event: PaymentEvent) -> ReconciliationResult:
        if not event.booking_id or not event.transfer_id:
            return self._booking_missing(event)
        role = event.recipient_role or "unknown"
        merged = self.booking_repository.merge_transfer_ids(
            event.booking_id, {role: event.transfer_id}
        )
        if merged is None:
            return self._booking_missing(event)
        return self._outcome(merged, event, event.booking_id)

    def _apply_account_updated(self, event: PaymentEvent) -> ReconciliationResult:
        """Sync a studio's or engineer's payout account and verification flag."""
        profile = None
        if event.account_owner_id:
            if event.account_owner_type == "studio":
                profile = self.catalog_repository.get_studio(event.account_owner_id)
            else:
                profile = self.catalog_repository.get_engineer(event.account_owner_id)
        if profile is None and event.account_id:
            profile = self.catalog_repository.get_studio_by_account(
                event.account_id
            ) or self.catalog_repository.get_engineer_by_account(event.account_id)
        if profile is None:
            self.logger.warning(
                "payment_event_account_owner_not_found",
                extra={"event_id": event.id, "account_id": event.account_id},
            )
            return ReconciliationResult(
                ReconciliationStatus.IGNORED, event.type, detail="account owner not found"
            )

        verified = bool(event.details_submitted and event.charges_enabled)
        if profile.stripe_connect_id == event.account_id and bool(profile.is_verified) == verified:
            return ReconciliationResult(ReconciliationStatus.NOOP, event.type)

        profile.stripe_connect_id = event.account_id
        profile.is_verified = verified
        self.db.flush()
        return ReconciliationResult(ReconciliationStatus.APPLIED, event.type)
