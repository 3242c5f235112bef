# backend/studio_booking/schemas/payment_events.py
"""
Provider-neutral payment events consumed by the reconciliation service.

The Stripe gateway normalizes raw webhook payloads into ``PaymentEvent`` so
reconciliation logic never reaches into provider-specific JSON.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# Event kinds understood by the reconciler
CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_HELD = "payment_intent.amount_capturable_updated"
PAYMENT_CAPTURED = "payment_intent.succeeded"
TRANSFER_CREATED = "transfer.created"
ACCOUNT_UPDATED = "account.updated"

HOLD_EVENT_TYPES = frozenset({CHECKOUT_COMPLETED, PAYMENT_HELD})


class PaymentEvent(BaseModel):
    """A single payment-provider notification, reduced to the fields we act on."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Provider event id, used for replay detection")
    type: str = Field(..., description="Provider event type")
    source: str = Field(default="stripe")
    booking_id: Optional[str] = None
    user_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    transfer_id: Optional[str] = None
    recipient_role: Optional[str] = None
    account_id: Optional[str] = None
    account_owner_type: Optional[str] = None
    account_owner_id: Optional[str] = None
    details_submitted: bool = False
    charges_enabled: bool = False
    payload: Dict[str, Any] = Field(default_factory=dict, repr=False)


class WebhookResponse(BaseModel):
    """Response for webhook processing."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    status: str = Field(..., description="Processing result (applied, noop, duplicate, ignored)")
    event_type: str = Field(..., description="Provider event type")
    booking_id: Optional[str] = Field(None, description="Booking the event was applied to")
    message: Optional[str] = Field(None, description="Additional information")
