"""
Adapters layer - Storage implementations of the service protocols.
"""

from .memory_store import AvailabilityPage, InMemoryBookingStore

__all__ = ["AvailabilityPage", "InMemoryBookingStore"]
