# backend/studio_booking/repositories/factory.py
"""
Repository Factory for the studio booking core.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .catalog_repository import CatalogRepository
    from .slot_lock_repository import SlotLockRepository
    from .tip_repository import TipRepository
    from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services never construct them directly
    and tests can substitute implementations.
    """

    @staticmethod
    def create_slot_lock_repository(db: Session) -> "SlotLockRepository":
        """Create repository for checkout slot locks."""
        from .slot_lock_repository import SlotLockRepository

        return SlotLockRepository(db)

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        """Create repository for weekly availability rules."""
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_tip_repository(db: Session) -> "TipRepository":
        """Create repository for tips."""
        from .tip_repository import TipRepository

        return TipRepository(db)

    @staticmethod
    def create_catalog_repository(db: Session) -> "CatalogRepository":
        """Create repository for studios, rooms and engineers."""
        from .catalog_repository import CatalogRepository

        return CatalogRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> "WebhookEventRepository":
        """Create repository for the webhook ledger."""
        from .webhook_event_repository import WebhookEventRepository

        return WebhookEventRepository(db)
