# backend/studio_booking/schemas/availability.py
"""Availability check schemas."""

from typing import Optional

from pydantic import Field

from .base import StandardizedModel
from .slot_lock import TimeWindowRequest


class AvailabilityCheckRequest(TimeWindowRequest):
    exclude_booking_id: Optional[str] = Field(
        None, description="Booking to ignore when checking overlaps (used for extensions)"
    )


class AvailabilityCheckResponse(StandardizedModel):
    """Result of an availability check; ``reason`` is set when unavailable."""

    available: bool
    reason: Optional[str] = None
    resource: Optional[str] = Field(None, description="room or engineer, when blocked")
