# backend/studio_booking/schemas/slot_lock.py
"""Slot lock request/response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from .base import StandardizedModel, StrictRequestModel, normalize_instant


class TimeWindowRequest(StrictRequestModel):
    """Room (and optional engineer) plus a half-open UTC window."""

    room_id: str = Field(..., min_length=1, description="Room to reserve")
    engineer_id: Optional[str] = Field(None, description="Engineer to reserve with the room")
    start_at: datetime = Field(..., description="Window start (UTC)")
    end_at: datetime = Field(..., description="Window end (UTC, exclusive)")

    @field_validator("start_at", "end_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return normalize_instant(v)

    @field_validator("engineer_id")
    @classmethod
    def _blank_engineer_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class SlotLockCreate(TimeWindowRequest):
    """Request a checkout hold on a window."""


class SlotLockResponse(StandardizedModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)

    id: str
    room_id: str
    engineer_id: Optional[str] = None
    start_at: datetime
    end_at: datetime
    locked_by: str
    expires_at: datetime


class SlotLockReleaseResponse(StandardizedModel):
    lock_id: str
    released: bool = True
