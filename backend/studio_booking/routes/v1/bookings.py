# backend/studio_booking/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Create a booking from the caller's slot lock
    GET /{booking_id} - Booking details for any of its parties
    POST /{booking_id}/confirm-studio - Studio owner confirms
    POST /{booking_id}/confirm-engineer - Booked engineer confirms
    POST /{booking_id}/start - Studio starts the session (captures payment)
    POST /{booking_id}/complete - Studio or engineer completes (pays out)
    POST /{booking_id}/cancel - Any party cancels
    POST /{booking_id}/extend - Artist adds overtime to a running session
    POST /{booking_id}/tip - Artist tips after completion
    POST /{booking_id}/payment-hold - Artist requests the payment authorization
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, status

from ...api.dependencies import get_booking_service, get_current_user_id
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingExtend,
    BookingExtensionResponse,
    BookingResponse,
    PaymentHoldResponse,
    TipCreate,
    TipResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def booking_id_path() -> Any:
    return Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    )


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "No slot lock for this window"},
        409: {"description": "Window was booked meanwhile"},
        410: {"description": "Slot lock expired"},
    },
)
async def create_booking(
    booking_data: BookingCreate,
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Consume the caller's slot lock and create a pending booking."""
    booking = await asyncio.to_thread(
        booking_service.create_booking,
        user_id,
        booking_data.room_id,
        booking_data.engineer_id,
        booking_data.start_at,
        booking_data.end_at,
    )
    return BookingResponse.model_validate(booking)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    booking = await asyncio.to_thread(booking_service.get_booking, booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/confirm-studio", response_model=BookingResponse)
async def confirm_as_studio(
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    booking = await asyncio.to_thread(booking_service.confirm_as_studio, booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/confirm-engineer", response_model=BookingResponse)
async def confirm_as_engineer(
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    booking = await asyncio.to_thread(booking_service.confirm_as_engineer, booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/start", response_model=BookingResponse)
async def start_session(
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    booking = await asyncio.to_thread(booking_service.start_session, booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    booking = await asyncio.to_thread(booking_service.complete_booking, booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = booking_id_path(),
    cancel_data: Optional[BookingCancel] = Body(None),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking."""
    reason = cancel_data.reason if cancel_data else None
    booking = await asyncio.to_thread(
        booking_service.cancel_booking, booking_id, user_id, reason
    )
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/extend",
    response_model=BookingExtensionResponse,
    responses={409: {"description": "Added window is not available"}},
)
async def extend_booking(
    extend_data: BookingExtend,
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingExtensionResponse:
    result = await asyncio.to_thread(
        booking_service.extend_booking, booking_id, extend_data.additional_minutes, user_id
    )
    return BookingExtensionResponse(
        booking=BookingResponse.model_validate(result.booking),
        overtime_cost_cents=result.overtime_cost_cents,
    )


@router.post(
    "/{booking_id}/tip",
    response_model=TipResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Booking already has a tip"}},
)
async def add_tip(
    tip_data: TipCreate,
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> TipResponse:
    tip = await asyncio.to_thread(
        booking_service.add_tip, booking_id, tip_data.amount_cents, user_id
    )
    return TipResponse.model_validate(tip)


@router.post("/{booking_id}/payment-hold", response_model=PaymentHoldResponse)
async def request_payment_hold(
    booking_id: str = booking_id_path(),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentHoldResponse:
    """Authorize the booking total; the hold is confirmed by the provider's webhook."""
    hold = await asyncio.to_thread(booking_service.request_payment_hold, booking_id, user_id)
    return PaymentHoldResponse(
        booking_id=booking_id,
        payment_intent_id=hold.payment_intent_id,
        client_secret=hold.client_secret,
        status=hold.status,
    )
