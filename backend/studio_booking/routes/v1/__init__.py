# backend/studio_booking/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import availability, bookings, metrics, slot_locks, stripe_webhooks

__all__ = [
    "availability",
    "bookings",
    "metrics",
    "slot_locks",
    "stripe_webhooks",
]
