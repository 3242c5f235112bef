# backend/studio_booking/schemas/booking.py
"""
Booking schemas for the studio booking core.

Money is always integer cents. Responses are built from ORM objects
(``from_attributes``); instants are serialized as UTC.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.enums import BookingStatus, HoldStatus
from .base import StandardizedModel, StrictRequestModel
from .slot_lock import TimeWindowRequest


class BookingCreate(TimeWindowRequest):
    """
    Create a booking from the caller's slot lock.

    The window and engineer must match the lock exactly.
    """


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(
        None, max_length=1000, description="Why the booking is cancelled"
    )

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        """Clean up the cancellation reason."""
        return v.strip() if v else v


class BookingExtend(StrictRequestModel):
    additional_minutes: int = Field(
        ..., ge=1, le=720, description="Overtime to add to the running session"
    )


class TipCreate(StrictRequestModel):
    amount_cents: int = Field(..., gt=0, description="Tip amount in cents")


class BookingResponse(StandardizedModel):
    """Complete booking as seen by any of its parties."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)

    id: str
    artist_id: str
    studio_id: str
    room_id: str
    engineer_id: Optional[str] = None
    start_at: datetime
    end_at: datetime
    status: BookingStatus
    hold_status: HoldStatus

    room_cost_cents: int
    engineer_cost_cents: int
    subtotal_cents: int
    app_fee_cents: int
    app_fee_percent: float
    studio_payout_cents: int
    engineer_payout_cents: int
    processor_fee_estimate_cents: int
    total_cents: int

    payment_intent_id: Optional[str] = None
    transfer_ids: Dict[str, str] = Field(default_factory=dict)
    overtime_minutes: int = 0
    tip_cents: Optional[int] = None

    studio_confirmed_at: Optional[datetime] = None
    engineer_confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    version: int

    @field_validator("transfer_ids", mode="before")
    @classmethod
    def _default_transfer_ids(cls, v: Optional[Dict[str, str]]) -> Dict[str, str]:
        return dict(v or {})


class BookingExtensionResponse(StandardizedModel):
    booking: BookingResponse
    overtime_cost_cents: int


class TipResponse(StandardizedModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)

    id: str
    booking_id: str
    payer_id: str
    amount_cents: int
    created_at: Optional[datetime] = None


class PaymentHoldResponse(StandardizedModel):
    """Client-side handle for completing the payment authorization."""

    booking_id: str
    payment_intent_id: str
    client_secret: Optional[str] = None
    status: str
