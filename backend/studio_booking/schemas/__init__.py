# backend/studio_booking/schemas/__init__.py
"""Pydantic request/response schemas."""

from .availability import AvailabilityCheckRequest, AvailabilityCheckResponse
from .booking import (
    BookingCancel,
    BookingCreate,
    BookingExtend,
    BookingExtensionResponse,
    BookingResponse,
    PaymentHoldResponse,
    TipCreate,
    TipResponse,
)
from .payment_events import PaymentEvent, WebhookResponse
from .slot_lock import SlotLockCreate, SlotLockReleaseResponse, SlotLockResponse

__all__ = [
    "AvailabilityCheckRequest",
    "AvailabilityCheckResponse",
    "BookingCancel",
    "BookingCreate",
    "BookingExtend",
    "BookingExtensionResponse",
    "BookingResponse",
    "PaymentEvent",
    "PaymentHoldResponse",
    "SlotLockCreate",
    "SlotLockReleaseResponse",
    "SlotLockResponse",
    "TipCreate",
    "TipResponse",
    "WebhookResponse",
]
