"""
Domain-specific exception hierarchy for the booking engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .models import Recommendation


class SlotMatchError(Exception):
    """Base class for all application-level errors."""


class InvalidTimeRange(SlotMatchError):
    """Raised when a requested range does not start strictly before it ends."""


class NoProviderAvailable(SlotMatchError):
    """Raised when no provider can take a request; carries alternatives."""

    def __init__(self, message: str, recommendations: Sequence["Recommendation"] = ()):
        super().__init__(message)
        self.recommendations = list(recommendations)


class ConflictOnCreate(SlotMatchError):
    """Raised by a store when a new commitment collides with a confirmed one."""


class LookupFailure(SlotMatchError):
    """Raised when the storage collaborator itself cannot answer."""


class OverlappingAvailability(SlotMatchError):
    """Raised when a provider declares availability overlapping an existing window."""
