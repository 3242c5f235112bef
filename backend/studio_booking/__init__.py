"""Booking core for the studio marketplace.

Slot locks, fees, booking lifecycle and payment reconciliation.
"""

__version__ = "0.1.0"
