# backend/studio_booking/services/stripe_gateway.py
"""
Payment gateway boundary.

``PaymentGateway`` is what the booking services depend on. The Stripe
implementation holds funds with a manual-capture PaymentIntent, captures
when the session starts, and pays studios and engineers out with transfers.

Charge shapes:
- one payout recipient: destination charge. The recipient is paid on
  capture and the platform keeps ``amount - payout`` as application fee.
- two payout recipients: the platform holds the charge under a
  ``transfer_group`` and pays each recipient with a transfer on completion.

Gateway calls are always made outside database transactions.
"""

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import stripe

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ServiceException, ValidationException
from ..schemas.payment_events import (
    ACCOUNT_UPDATED,
    CHECKOUT_COMPLETED,
    PAYMENT_CAPTURED,
    PAYMENT_HELD,
    TRANSFER_CREATED,
    PaymentEvent,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferInstruction:
    recipient_role: str
    destination_account_id: str
    amount_cents: int


@dataclass(frozen=True)
class PaymentRequest:
    """What the booking core asks the provider to do for one booking."""

    booking_id: str
    user_id: str
    amount_cents: int
    application_fee_cents: int
    currency: str = "usd"
    transfers: List[TransferInstruction] = field(default_factory=list)

    @property
    def uses_destination_charge(self) -> bool:
        return len(self.transfers) == 1

    @property
    def metadata(self) -> Dict[str, str]:
        return {"booking_id": self.booking_id, "user_id": self.user_id}


@dataclass(frozen=True)
class PaymentHold:
    payment_intent_id: str
    client_secret: Optional[str]
    status: str


class PaymentGateway(Protocol):
    def create_payment_hold(self, request: PaymentRequest) -> PaymentHold:
        ...

    def capture_payment(
        self, payment_intent_id: str, *, idempotency_key: Optional[str] = None
    ) -> str:
        ...

    def create_transfers(self, request: PaymentRequest) -> Dict[str, str]:
        ...


class StripePaymentGateway:
    """PaymentGateway backed by the Stripe SDK."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.logger = logging.getLogger(self.__class__.__name__)
        secret = self.config.get_stripe_secret_key()
        if secret:
            stripe.api_key = secret
            stripe.max_network_retries = 1
        else:
            self.logger.warning("Stripe secret key not configured")

    def create_payment_hold(self, request: PaymentRequest) -> PaymentHold:
        """Create a manual-capture PaymentIntent for the booking total."""
        kwargs: Dict[str, Any] = {
            "amount": request.amount_cents,
            "currency": request.currency,
            "capture_method": "manual",
            "metadata": {
                **request.metadata,
                "app_fee_cents": str(request.application_fee_cents),
            },
            "idempotency_key": f"hold:{request.booking_id}",
        }
        if request.uses_destination_charge:
            transfer = request.transfers[0]
            kwargs["transfer_data"] = {"destination": transfer.destination_account_id}
            kwargs["application_fee_amount"] = request.amount_cents - transfer.amount_cents
        else:
            kwargs["transfer_group"] = request.booking_id

        try:
            intent = stripe.PaymentIntent.create(**kwargs)
        except stripe.StripeError as e:
            self.logger.error(
                "stripe_payment_hold_failed",
                extra={"booking_id": request.booking_id, "error": str(e)},
            )
            raise ServiceException(f"Failed to create payment hold: {str(e)}") from e

        self.logger.info(
            "stripe_payment_hold_created",
            extra={"booking_id": request.booking_id, "payment_intent_id": intent["id"]},
        )
        return PaymentHold(
            payment_intent_id=intent["id"],
            client_secret=intent.get("client_secret"),
            status=intent.get("status", "requires_payment_method"),
        )

    def capture_payment(
        self, payment_intent_id: str, *, idempotency_key: Optional[str] = None
    ) -> str:
        """Capture a held PaymentIntent and return its new status."""
        try:
            intent = stripe.PaymentIntent.capture(
                payment_intent_id, idempotency_key=idempotency_key
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error capturing payment intent: {str(e)}")
            raise ServiceException(f"Failed to capture payment: {str(e)}") from e
        return str(intent.get("status", "succeeded"))

    def create_transfers(self, request: PaymentRequest) -> Dict[str, str]:
        """Pay every recipient of a platform-held charge. Returns role -> transfer id."""
        transfer_ids: Dict[str, str] = {}
        for transfer in request.transfers:
            if transfer.amount_cents <= 0:
                continue
            try:
                created = stripe.Transfer.create(
                    amount=transfer.amount_cents,
                    currency=request.currency,
                    destination=transfer.destination_account_id,
                    transfer_group=request.booking_id,
                    metadata={
                        "booking_id": request.booking_id,
                        "recipient_type": transfer.recipient_role,
                    },
                    idempotency_key=f"transfer:{request.booking_id}:{transfer.recipient_role}",
                )
            except stripe.StripeError as e:
                self.logger.error(
                    "stripe_transfer_failed",
                    extra={
                        "booking_id": request.booking_id,
                        "recipient_type": transfer.recipient_role,
                        "error": str(e),
                    },
                )
                raise ServiceException(f"Failed to create transfer: {str(e)}") from e
            transfer_ids[transfer.recipient_role] = created["id"]
        return transfer_ids


def construct_stripe_event(
    payload: bytes, signature: Optional[str], config: Optional[Settings] = None
) -> Dict[str, Any]:
    """
    Verify a webhook signature and parse the event.

    Raises:
        ValidationException: Missing or invalid signature, or malformed payload
        ServiceException: Webhook secret not configured
    """
    config = config or default_settings
    secret = config.stripe_webhook_secret.get_secret_value()
    if not secret:
        raise ServiceException("Webhook secret not configured")
    if not signature:
        raise ValidationException("Missing Stripe signature", code="INVALID_SIGNATURE")
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Invalid webhook signature: {str(e)}")
        raise ValidationException("Invalid signature", code="INVALID_SIGNATURE") from e
    except ValueError as e:
        logger.warning(f"Invalid webhook payload: {str(e)}")
        raise ValidationException("Invalid payload", code="INVALID_PAYLOAD") from e
    return json.loads(payload)


def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    return dict(obj.get("metadata") or {})


def _expandable_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.get("id") if isinstance(value, dict) else None


def normalize_stripe_event(event: Dict[str, Any]) -> PaymentEvent:
    """Reduce a Stripe event payload to a PaymentEvent."""
    event_type = str(event.get("type") or "")
    obj: Dict[str, Any] = dict((event.get("data") or {}).get("object") or {})
    metadata = _metadata(obj)
    fields: Dict[str, Any] = {
        "id": str(event.get("id") or ""),
        "type": event_type,
        "booking_id": metadata.get("booking_id"),
        "user_id": metadata.get("user_id"),
        "payload": obj,
    }

    if event_type == CHECKOUT_COMPLETED:
        fields["payment_intent_id"] = _expandable_id(obj.get("payment_intent"))
    elif event_type in (PAYMENT_HELD, PAYMENT_CAPTURED):
        fields["payment_intent_id"] = obj.get("id")
    elif event_type == TRANSFER_CREATED:
        fields["transfer_id"] = obj.get("id")
        fields["recipient_role"] = metadata.get("recipient_type") or "unknown"
    elif event_type == ACCOUNT_UPDATED:
        fields["account_id"] = obj.get("id")
        fields["account_owner_type"] = metadata.get("user_type")
        fields["account_owner_id"] = metadata.get("user_id")
        fields["details_submitted"] = bool(obj.get("details_submitted"))
        fields["charges_enabled"] = bool(obj.get("charges_enabled"))

    return PaymentEvent(**fields)
