# backend/studio_booking/models/__init__.py
"""
SQLAlchemy models for the studio booking core.

Importing this package registers every table on ``Base.metadata``.
"""

from .availability_rule import ResourceAvailabilityRule
from .booking import Booking
from .catalog import EngineerProfile, StudioProfile, StudioRoom
from .slot_lock import SlotLock
from .tip import Tip
from .webhook_event import WebhookEvent

__all__ = [
    "Booking",
    "EngineerProfile",
    "ResourceAvailabilityRule",
    "SlotLock",
    "StudioProfile",
    "StudioRoom",
    "Tip",
    "WebhookEvent",
]
