# backend/studio_booking/repositories/__init__.py
"""
Repository layer: data access for the booking core.

Repositories flush but never commit; services own transactions.
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .catalog_repository import CatalogRepository
from .factory import RepositoryFactory
from .slot_lock_repository import SlotLockRepository
from .tip_repository import TipRepository
from .webhook_event_repository import WebhookEventRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "CatalogRepository",
    "RepositoryFactory",
    "SlotLockRepository",
    "TipRepository",
    "WebhookEventRepository",
]
