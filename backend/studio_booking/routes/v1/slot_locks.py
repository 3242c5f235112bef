# backend/studio_booking/routes/v1/slot_locks.py
"""
Slot lock routes - API v1

Checkout holds on a room (and optional engineer) window.

Endpoints:
    POST / - Acquire a slot lock for the caller
    DELETE /{lock_id} - Release one of the caller's locks
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Path, status

from ...api.dependencies import get_current_user_id, get_slot_lock_service
from ...schemas.slot_lock import SlotLockCreate, SlotLockReleaseResponse, SlotLockResponse
from ...services.slot_lock_service import SlotLockService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["slot-locks-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


@router.post(
    "",
    response_model=SlotLockResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Window is locked or booked"}},
)
async def acquire_slot_lock(
    lock_data: SlotLockCreate,
    user_id: str = Depends(get_current_user_id),
    slot_lock_service: SlotLockService = Depends(get_slot_lock_service),
) -> SlotLockResponse:
    """Hold a window for the caller while they complete checkout."""
    lock = await asyncio.to_thread(
        slot_lock_service.acquire_lock,
        lock_data.room_id,
        lock_data.engineer_id,
        lock_data.start_at,
        lock_data.end_at,
        user_id,
    )
    return SlotLockResponse.model_validate(lock)


@router.delete(
    "/{lock_id}",
    response_model=SlotLockReleaseResponse,
    responses={404: {"description": "Lock not found"}},
)
async def release_slot_lock(
    lock_id: str = Path(..., description="Slot lock ULID", pattern=ULID_PATH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    slot_lock_service: SlotLockService = Depends(get_slot_lock_service),
) -> SlotLockReleaseResponse:
    """Release a lock owned by the caller."""
    await asyncio.to_thread(slot_lock_service.release_lock, lock_id, user_id)
    return SlotLockReleaseResponse(lock_id=lock_id)
