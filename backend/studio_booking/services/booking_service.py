# backend/studio_booking/services/booking_service.py
"""
Booking Lifecycle Service for the studio booking core.

Owns the canonical status of a booking:

    pending -> studio_confirmed / engineer_confirmed -> in_progress -> completed
    (any non-terminal state) -> cancelled

Every transition is a compare-and-swap on ``status`` and ``version``. Two
concurrent transitions on the same booking therefore cannot both apply;
the loser gets InvalidStateException and nothing is written.

Calls to the payment gateway (hold, capture, transfers) are made after the
database transaction commits, never inside it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from fractions import Fraction
import logging
from typing import Iterable, Optional, Set

from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, HoldStatus, RecipientRole
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    DuplicateTipException,
    ExtensionConflictException,
    InvalidStateException,
    NotFoundException,
    RepositoryIntegrityError,
    ServiceException,
    SlotExpiredException,
    SlotInvalidException,
    ValidationException,
)
from ..core.policy import BookingPolicy
from ..core.reservation_guard import reservation_guard, resource_keys
from ..core.time_utils import to_utc, utc_now
from ..models.booking import Booking
from ..models.slot_lock import SlotLock
from ..models.tip import Tip
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..repositories.catalog_repository import CatalogRepository
from ..repositories.slot_lock_repository import SlotLockRepository
from ..repositories.tip_repository import TipRepository
from .availability_service import AvailabilityService
from .base import BaseService
from .fee_calculator import compute_fees, compute_overtime_fees, processor_fee_estimate
from .stripe_gateway import PaymentGateway, PaymentHold, PaymentRequest, TransferInstruction

logger = logging.getLogger(__name__)

ARTIST = "artist"
STUDIO = "studio"
ENGINEER = "engineer"

ACTIVE_STATUSES = frozenset(s for s in BookingStatus if not s.is_terminal)


@dataclass(frozen=True)
class ExtensionResult:
    booking: Booking
    overtime_cost_cents: int


def _duration_hours(start_at: datetime, end_at: datetime) -> Fraction:
    """Exact duration in hours."""
    return Fraction((end_at - start_at) // timedelta(microseconds=1), 3_600_000_000)


class BookingService(BaseService):
    """
    Service layer for booking creation and lifecycle transitions.

    Collaborators are injected so tests can swap the payment gateway and
    policy; repositories come from RepositoryFactory by default.
    """

    def __init__(
        self,
        db: Session,
        policy: Optional[BookingPolicy] = None,
        gateway: Optional[PaymentGateway] = None,
        booking_repository: Optional[BookingRepository] = None,
        slot_lock_repository: Optional[SlotLockRepository] = None,
        tip_repository: Optional[TipRepository] = None,
        catalog_repository: Optional[CatalogRepository] = None,
        availability_service: Optional[AvailabilityService] = None,
    ):
        super().__init__(db, policy)
        self.gateway = gateway
        self.repository = booking_repository or RepositoryFactory.create_booking_repository(db)
        self.slot_lock_repository = (
            slot_lock_repository or RepositoryFactory.create_slot_lock_repository(db)
        )
        self.tip_repository = tip_repository or RepositoryFactory.create_tip_repository(db)
        self.catalog_repository = (
            catalog_repository or RepositoryFactory.create_catalog_repository(db)
        )
        self.availability_service = availability_service or AvailabilityService(
            db,
            self.policy,
            booking_repository=self.repository,
            catalog_repository=self.catalog_repository,
        )

    # ------------------------------------------------------------------
    # Slot validation and creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("validate_booking_slot")
    def validate_booking_slot(
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
        Confirm the user still holds the slot and nobody booked it meanwhile.

        Raises:
            SlotExpiredException: The user's lock for this window has expired
            SlotInvalidException: No lock for this window, or it is for another engineer
            BookingConflictException: A booking now overlaps the room or engineer
        """
        start_at, end_at = to_utc(start_at), to_utc(end_at)
        current = to_utc(now or utc_now())

        locks = self.slot_lock_repository.find_for_user_window(user_id, room_id, start_at, end_at)
        if not locks:
            raise SlotInvalidException()

        active = [lock for lock in locks if not lock.is_expired(current)]
        if not active:
            raise SlotExpiredException()

        lock = next((l for l in active if (l.engineer_id or None) == (engineer_id or None)), None)
        if lock is None:
            raise SlotInvalidException(
                "Booking slot does not match the requested engineer",
                details={"engineer_id": engineer_id},
            )

        if self.repository.find_room_conflict(room_id, start_at, end_at):
            raise BookingConflictException("Time slot is no longer available")
        if engineer_id and self.repository.find_engineer_conflict(engineer_id, start_at, end_at):
            raise BookingConflictException("Engineer is no longer available for this time slot")

        return lock

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        user_id: str,
        room_id: str,
        engineer_id: Optional[str],
        start_at: datetime,
        end_at: datetime,
        *,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Turn the user's slot lock into a pending booking with its fee snapshot.

        The lock is consumed in the same transaction that inserts the booking.

        Raises:
            ValidationException: Empty or inverted window
            SlotExpiredException, SlotInvalidException: See validate_booking_slot
            BookingConflictException: The window was booked concurrently
            NotFoundException: Room, studio or engineer no longer exists
        """
        start_at, end_at = to_utc(start_at), to_utc(end_at)
        if start_at >= end_at:
            raise ValidationException("Start time must be before end time")
        current = to_utc(now or utc_now())

        try:
            with reservation_guard(self.db, resource_keys(room_id, engineer_id)):
                with self.transaction():
                    lock = self.validate_booking_slot(
                        room_id, engineer_id, start_at, end_at, user_id, now=current
                    )

                    room = self.catalog_repository.get_room(room_id)
                    if room is None:
                        raise NotFoundException("Room not found", details={"room_id": room_id})
                    studio = room.studio
                    if studio is None:
                        raise NotFoundException("Studio not found", details={"room_id": room_id})
                    engineer = None
                    if engineer_id:
                        engineer = self.catalog_repository.get_engineer(engineer_id)
                        if engineer is None:
                            raise NotFoundException(
                                "Engineer not found", details={"engineer_id": engineer_id}
                            )

                    is_pilot = self.policy.pilot_cities.is_pilot_city_active(studio.city, current)
                    fees = compute_fees(
                        room.hourly_rate_cents,
                        engineer.hourly_rate_cents if engineer else None,
                        _duration_hours(start_at, end_at),
                        is_pilot,
                        self.policy.app_fee_percent,
                        processor_fee_percent=self.policy.processor_fee_percent,
                        processor_fee_fixed_cents=self.policy.processor_fee_fixed_cents,
                    )

                    booking = self.repository.create(
                        artist_id=user_id,
                        studio_id=studio.id,
                        room_id=room_id,
                        engineer_id=engineer_id,
                        start_at=start_at,
                        end_at=end_at,
                        status=BookingStatus.PENDING.value,
                        hold_status=HoldStatus.NONE.value,
                        transfer_ids={},
                        **fees.as_booking_fields(),
                    )
                    self.slot_lock_repository.delete(lock.id)
        except RepositoryIntegrityError as exc:
            raise BookingConflictException("Time slot is no longer available") from exc

        prometheus_metrics.record_booking_transition("create", "applied")
        self.logger.info(
            "booking_created",
            extra={
                "booking_id": booking.id,
                "artist_id": user_id,
                "room_id": room_id,
                "engineer_id": engineer_id,
                "subtotal_cents": booking.subtotal_cents,
                "app_fee_cents": booking.app_fee_cents,
            },
        )
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str, user_id: str) -> Booking:
        """Return a booking visible to any of its parties."""
        return self._get_for_actor(booking_id, user_id, {ARTIST, STUDIO, ENGINEER})

    def _get_for_actor(self, booking_id: str, user_id: str, roles: Iterable[str]) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        self.db.refresh(booking)

        allowed: Set[Optional[str]] = set()
        roles = set(roles)
        if ARTIST in roles:
            allowed.add(booking.artist_id)
        if STUDIO in roles:
            allowed.add(booking.studio_id)
        if ENGINEER in roles and booking.engineer_id:
            allowed.add(booking.engineer_id)
        if user_id not in allowed:
            # Scoped lookup: other users cannot tell the booking exists
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        booking: Booking,
        transition: str,
        expected: Iterable[BookingStatus],
        **values,
    ) -> None:
        expected = frozenset(expected)
        if booking.status_enum not in expected:
            prometheus_metrics.record_booking_transition(transition, "rejected")
            raise InvalidStateException(
                f"Cannot {transition.replace('_', ' ')} a booking that is {booking.status}",
                current_status=booking.status,
            )
        changed = self.repository.conditional_update(
            booking.id,
            expected_statuses=expected,
            expected_version=booking.version,
            **values,
        )
        if not changed:
            prometheus_metrics.record_booking_transition(transition, "rejected")
            raise InvalidStateException(
                "Booking was modified concurrently, please retry",
                current_status=booking.status,
                details={"booking_id": booking.id},
            )
        prometheus_metrics.record_booking_transition(transition, "applied")

    def _finish(self, booking: Booking, event: str, user_id: str) -> Booking:
        with self.transaction():
            booking = self.repository.reload(booking)
        self.logger.info(
            event,
            extra={"booking_id": booking.id, "user_id": user_id, "status": booking.status},
        )
        return booking

    @BaseService.measure_operation("confirm_as_studio")
    def confirm_as_studio(self, booking_id: str, user_id: str) -> Booking:
        with self.transaction():
            booking = self._get_for_actor(booking_id, user_id, {STUDIO})
            self._transition(
                booking,
                "studio_confirm",
                {BookingStatus.PENDING, BookingStatus.ENGINEER_CONFIRMED},
                status=BookingStatus.STUDIO_CONFIRMED.value,
                studio_confirmed_at=utc_now(),
            )
        return self._finish(booking, "booking_studio_confirmed", user_id)

    @BaseService.measure_operation("confirm_as_engineer")
    def confirm_as_engineer(self, booking_id: str, user_id: str) -> Booking:
        with self.transaction():
            booking = self._get_for_actor(booking_id, user_id, {ENGINEER})
            self._transition(
                booking,
                "engineer_confirm",
                {BookingStatus.PENDING, BookingStatus.STUDIO_CONFIRMED},
                status=BookingStatus.ENGINEER_CONFIRMED.value,
                engineer_confirmed_at=utc_now(),
            )
        return self._finish(booking, "booking_engineer_confirmed", user_id)

    @BaseService.measure_operation("start_session")
    def start_session(self, booking_id: str, user_id: str) -> Booking:
        """
        Mark the session as running and capture the held payment.

        Requires the studio's confirmation, the engineer's confirmation when
        one is booked, and a payment hold.
        """
        with self.transaction():
            booking = self._get_for_actor(booking_id, user_id, {STUDIO})
            if booking.studio_confirmed_at is None:
                raise InvalidStateException(
                    "Studio has not confirmed this booking", current_status=booking.status
                )
            if booking.engineer_id and booking.engineer_confirmed_at is None:
                raise InvalidStateException(
                    "Engineer has not confirmed this booking", current_status=booking.status
                )
            if booking.hold_status_enum == HoldStatus.NONE:
                raise InvalidStateException(
                    "Payment has not been authorized for this booking",
                    current_status=booking.status,
                )
            self._transition(
                booking,
                "start",
                {BookingStatus.STUDIO_CONFIRMED, BookingStatus.ENGINEER_CONFIRMED},
                status=BookingStatus.IN_PROGRESS.value,
                started_at=utc_now(),
            )

        booking = self._finish(booking, "booking_started", user_id)
        if booking.hold_status_enum == HoldStatus.HELD and booking.payment_intent_id:
            self._capture_payment(booking)
        return booking

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, booking_id: str, user_id: str) -> Booking:
        with self.transaction():
            booking = self._get_for_actor(booking_id, user_id, {STUDIO, ENGINEER})
            self._transition(
                booking,
                "complete",
                {BookingStatus.IN_PROGRESS},
                status=BookingStatus.COMPLETED.value,
                completed_at=utc_now(),
            )

        booking = self._finish(booking, "booking_completed", user_id)
        self._pay_out(booking)
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, user_id: str, reason: Optional[str] = None
    ) -> Booking:
        """Cancel from any non-terminal state. Refund policy is decided elsewhere."""
        with self.transaction():
            booking = self._get_for_actor(booking_id, user_id, {ARTIST, STUDIO, ENGINEER})
            self._transition(
                booking,
                "cancel",
                ACTIVE_STATUSES,
                status=BookingStatus.CANCELLED.value,
                cancelled_at=utc_now(),
                cancelled_by=user_id,
                cancellation_reason=reason,
            )
        return self._finish(booking, "booking_cancelled", user_id)

    @BaseService.measure_operation("extend_booking")
    def extend_booking(
        self,
        booking_id: str,
        additional_minutes: int,
        user_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> ExtensionResult:
        """
        Extend a running session by ``additional_minutes`` of overtime.

        The added window must be free of other bookings and of other users'
        active locks. Overtime is charged at the policy multiplier and the
        extra platform fee is split like the original booking.

        Raises:
            ValidationException: Non-positive minutes
            NotFoundException: Booking missing or caller is not its artist
            InvalidStateException: Booking is not in progress
            ExtensionConflictException: The added window is not available
        """
        if additional_minutes <= 0:
            raise ValidationException(
                "Extension must be at least one minute",
                details={"additional_minutes": additional_minutes},
            )
        current = to_utc(now or utc_now())

        booking = self._get_for_actor(booking_id, user_id, {ARTIST})
        keys = resource_keys(booking.room_id, booking.engineer_id)

        with reservation_guard(self.db, keys):
            with self.transaction():
                booking = self._get_for_actor(booking_id, user_id, {ARTIST})
                if booking.status_enum != BookingStatus.IN_PROGRESS:
                    raise InvalidStateException(
                        "Only sessions in progress can be extended",
                        current_status=booking.status,
                    )

                window_start = to_utc(booking.end_at)
                window_end = window_start + timedelta(minutes=additional_minutes)

                availability = self.availability_service.is_available(
                    booking.room_id,
                    booking.engineer_id,
                    window_start,
                    window_end,
                    exclude_booking_id=booking.id,
                )
                if not availability.available:
                    raise ExtensionConflictException(availability.reason or "Not available")

                if self.slot_lock_repository.find_conflicting(
                    booking.room_id,
                    booking.engineer_id,
                    window_start,
                    window_end,
                    current,
                    exclude_user_id=booking.artist_id,
                ):
                    raise ExtensionConflictException("Time slot is locked by another user")

                room = self.catalog_repository.get_room(booking.room_id, active_only=False)
                if room is None:
                    raise NotFoundException("Room not found", details={"room_id": booking.room_id})
                engineer = (
                    self.catalog_repository.get_engineer(booking.engineer_id)
                    if booking.engineer_id
                    else None
                )

                overtime = compute_overtime_fees(
                    room.hourly_rate_cents,
                    engineer.hourly_rate_cents if engineer else None,
                    additional_minutes,
                    booking.app_fee_percent,
                    self.policy.overtime_multiplier,
                )
                subtotal = booking.subtotal_cents + overtime.cost_cents
                processor_fee = processor_fee_estimate(
                    subtotal,
                    self.policy.processor_fee_percent,
                    self.policy.processor_fee_fixed_cents,
                )

                self._transition(
                    booking,
                    "extend",
                    {BookingStatus.IN_PROGRESS},
                    end_at=window_end,
                    overtime_minutes=booking.overtime_minutes + additional_minutes,
                    room_cost_cents=booking.room_cost_cents + overtime.room_cost_cents,
                    engineer_cost_cents=booking.engineer_cost_cents + overtime.engineer_cost_cents,
                    subtotal_cents=subtotal,
                    app_fee_cents=booking.app_fee_cents + overtime.app_fee_cents,
                    studio_payout_cents=booking.studio_payout_cents + overtime.studio_payout_cents,
                    engineer_payout_cents=(
                        booking.engineer_payout_cents + overtime.engineer_payout_cents
                    ),
                    processor_fee_estimate_cents=processor_fee,
                    total_cents=booking.total_cents + overtime.cost_cents + overtime.app_fee_cents,
                )

        booking = self._finish(booking, "booking_extended", user_id)
        return ExtensionResult(booking=booking, overtime_cost_cents=overtime.cost_cents)

    @BaseService.measure_operation("add_tip")
    def add_tip(self, booking_id: str, amount_cents: int, payer_id: str) -> Tip:
        """
        Attach a tip to a completed booking. At most one tip per booking.

        Raises:
            ValidationException: Non-positive amount
            NotFoundException: Booking missing or payer is not its artist
            InvalidStateException: Booking is not completed
            DuplicateTipException: A tip already exists
        """
        if amount_cents <= 0:
            raise ValidationException(
                "Tip amount must be positive", details={"amount_cents": amount_cents}
            )

        try:
            with self.transaction():
                booking = self._get_for_actor(booking_id, payer_id, {ARTIST})
                if booking.status_enum != BookingStatus.COMPLETED:
                    raise InvalidStateException(
                        "Tips can only be added to completed bookings",
                        current_status=booking.status,
                    )
                if self.tip_repository.get_for_booking(booking.id) is not None:
                    raise DuplicateTipException(booking.id)

                tip = self.tip_repository.create(
                    booking_id=booking.id, payer_id=payer_id, amount_cents=amount_cents
                )
                self._transition(
                    booking, "tip", {BookingStatus.COMPLETED}, tip_cents=amount_cents
                )
        except RepositoryIntegrityError as exc:
            raise DuplicateTipException(booking_id) from exc

        self.logger.info(
            "booking_tip_added",
            extra={"booking_id": booking_id, "payer_id": payer_id, "amount_cents": amount_cents},
        )
        return tip

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def build_payment_request(self, booking: Booking) -> PaymentRequest:
        """
        Describe the charge for a booking: hold the total, keep the app fee,
        pay each party its payout.

        Raises:
            BusinessRuleException: A payout recipient has no connected account
        """
        transfers = []
        if booking.studio_payout_cents > 0:
            studio = self.catalog_repository.get_studio(booking.studio_id)
            if studio is None or not studio.stripe_connect_id:
                raise BusinessRuleException(
                    "Studio has not connected a payout account",
                    code="PAYOUT_ACCOUNT_MISSING",
                    details={"studio_id": booking.studio_id},
                )
            transfers.append(
                TransferInstruction(
                    RecipientRole.STUDIO.value,
                    studio.stripe_connect_id,
                    booking.studio_payout_cents,
                )
            )
        if booking.engineer_id and booking.engineer_payout_cents > 0:
            engineer = self.catalog_repository.get_engineer(booking.engineer_id)
            if engineer is None or not engineer.stripe_connect_id:
                raise BusinessRuleException(
                    "Engineer has not connected a payout account",
                    code="PAYOUT_ACCOUNT_MISSING",
                    details={"engineer_id": booking.engineer_id},
                )
            transfers.append(
                TransferInstruction(
                    RecipientRole.ENGINEER.value,
                    engineer.stripe_connect_id,
                    booking.engineer_payout_cents,
                )
            )

        return PaymentRequest(
            booking_id=booking.id,
            user_id=booking.artist_id,
            amount_cents=booking.total_cents,
            application_fee_cents=booking.app_fee_cents,
            currency=self.policy.currency,
            transfers=transfers,
        )

    @BaseService.measure_operation("request_payment_hold")
    def request_payment_hold(self, booking_id: str, user_id: str) -> PaymentHold:
        """
        Ask the gateway to authorize (hold) the booking total.

        The hold itself is confirmed asynchronously by the provider's events.
        """
        gateway = self._require_gateway()
        with self.transaction():
            booking = self._get_for_actor(booking_id, user_id, {ARTIST})
            if booking.status_enum.is_terminal:
                raise InvalidStateException(
                    "Cannot take payment for a closed booking", current_status=booking.status
                )
            if booking.hold_status_enum != HoldStatus.NONE:
                raise InvalidStateException(
                    "Payment is already authorized for this booking",
                    current_status=booking.status,
                )
            request = self.build_payment_request(booking)

        hold = gateway.create_payment_hold(request)

        with self.transaction():
            self.repository.conditional_update(
                booking.id,
                expected_statuses=ACTIVE_STATUSES,
                payment_intent_id=hold.payment_intent_id,
            )
        self.logger.info(
            "booking_payment_hold_requested",
            extra={"booking_id": booking.id, "payment_intent_id": hold.payment_intent_id},
        )
        return hold

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise ServiceException("Payment gateway is not configured")
        return self.gateway

    def _capture_payment(self, booking: Booking) -> None:
        if self.gateway is None:
            self.logger.debug("capture_skipped_no_gateway", extra={"booking_id": booking.id})
            return
        try:
            self.gateway.capture_payment(
                booking.payment_intent_id, idempotency_key=f"capture:{booking.id}"
            )
        except ServiceException as exc:
            # The session already started; capture is retried out of band
            self.logger.error(
                "booking_capture_failed",
                extra={"booking_id": booking.id, "error": exc.message},
            )

    def _pay_out(self, booking: Booking) -> None:
        if self.gateway is None:
            self.logger.debug("payout_skipped_no_gateway", extra={"booking_id": booking.id})
            return
        try:
            with self.transaction():
                request = self.build_payment_request(booking)
            if request.uses_destination_charge or not request.transfers:
                return
            transfer_ids = self.gateway.create_transfers(request)
        except (BusinessRuleException, ServiceException) as exc:
            self.logger.error(
                "booking_payout_failed",
                extra={"booking_id": booking.id, "error": exc.message},
            )
            return

        if transfer_ids:
            with self.transaction():
                self.repository.merge_transfer_ids(booking.id, transfer_ids)
                self.repository.reload(booking)
