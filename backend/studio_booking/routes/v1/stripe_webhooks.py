# backend/studio_booking/routes/v1/stripe_webhooks.py
"""
Stripe Webhook Endpoint

Verifies the signature, normalizes the event and hands it to payment
reconciliation. Stripe retries any non-2xx response, so every verified
event is acknowledged with 200 even when it is ignored; only signature
and payload errors are rejected.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...api.dependencies import get_payment_reconciliation_service
from ...core.exceptions import ValidationException
from ...schemas.payment_events import WebhookResponse
from ...services.payment_reconciliation_service import PaymentReconciliationService
from ...services.stripe_gateway import construct_stripe_event, normalize_stripe_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stripe-webhooks"])


@router.post("/stripe", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    reconciliation_service: PaymentReconciliationService = Depends(
        get_payment_reconciliation_service
    ),
) -> WebhookResponse:
    """
    Handle Stripe webhook events.

    Processes events like:
    - checkout.session.completed / payment_intent.amount_capturable_updated
    - payment_intent.succeeded
    - transfer.created
    - account.updated

    Raises:
        HTTPException: 400 if the signature or payload is invalid
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        raw_event = construct_stripe_event(payload, signature)
    except ValidationException as e:
        logger.warning(f"Rejected Stripe webhook: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": e.message, "code": e.code},
        )

    event = normalize_stripe_event(raw_event)
    logger.info(f"Processing Stripe webhook event: {event.type}")

    result = await asyncio.to_thread(reconciliation_service.apply_event, event)
    return WebhookResponse(
        status=result.status.value,
        event_type=result.event_type,
        booking_id=result.booking_id,
        message=result.detail,
    )
