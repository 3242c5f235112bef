# backend/studio_booking/routes/v1/availability.py
"""
Availability routes - API v1

Endpoints:
    POST /check - Check whether a room (and engineer) window can be booked
"""

import asyncio

from fastapi import APIRouter, Depends

from ...api.dependencies import get_availability_service, get_current_user_id
from ...schemas.availability import AvailabilityCheckRequest, AvailabilityCheckResponse
from ...services.availability_service import AvailabilityService

router = APIRouter(tags=["availability-v1"])


@router.post("/check", response_model=AvailabilityCheckResponse)
async def check_availability(
    check_data: AvailabilityCheckRequest,
    _user_id: str = Depends(get_current_user_id),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityCheckResponse:
    """Read-only check; a blocked window is reported with its reason, not as an error."""
    result = await asyncio.to_thread(
        availability_service.is_available,
        check_data.room_id,
        check_data.engineer_id,
        check_data.start_at,
        check_data.end_at,
        check_data.exclude_booking_id,
    )
    return AvailabilityCheckResponse(
        available=result.available, reason=result.reason, resource=result.resource
    )
