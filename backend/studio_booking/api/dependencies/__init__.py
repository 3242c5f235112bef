# backend/studio_booking/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_user_id
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_policy,
    get_booking_service,
    get_payment_gateway,
    get_payment_reconciliation_service,
    get_slot_lock_service,
)

__all__ = [
    # Auth
    "get_current_user_id",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_policy",
    "get_booking_service",
    "get_payment_gateway",
    "get_payment_reconciliation_service",
    "get_slot_lock_service",
]
