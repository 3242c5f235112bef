# backend/studio_booking/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.policy import BookingPolicy
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.payment_reconciliation_service import PaymentReconciliationService
from ...services.slot_lock_service import SlotLockService
from ...services.stripe_gateway import PaymentGateway, StripePaymentGateway
from .database import get_db


@lru_cache(maxsize=1)
def get_booking_policy() -> BookingPolicy:
    """Policy built once from settings."""
    return BookingPolicy.from_settings()


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    """Singleton Stripe gateway."""
    return StripePaymentGateway()


def get_availability_service(
    db: Session = Depends(get_db),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> AvailabilityService:
    return AvailabilityService(db, policy)


def get_slot_lock_service(
    db: Session = Depends(get_db),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> SlotLockService:
    return SlotLockService(db, policy)


def get_booking_service(
    db: Session = Depends(get_db),
    policy: BookingPolicy = Depends(get_booking_policy),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingService:
    """Get BookingService instance with policy and payment gateway."""
    return BookingService(db, policy, gateway=gateway)


def get_payment_reconciliation_service(
    db: Session = Depends(get_db),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> PaymentReconciliationService:
    return PaymentReconciliationService(db, policy)
