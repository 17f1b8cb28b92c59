"""
Service layer helpers that orchestrate storage adapters and domain logic.
"""

from .booking_service import BookingService
from .matching import AvailabilityMatcher, ConflictDetector
from .outcomes import Assigned, BookingOutcome, Invalid, NoMatch, raise_for_outcome
from .protocols import AvailabilityLookup, CommitmentLookup, CommitmentStore
from .recommendation import RecommendationEngine
from .selection import SelectionStrategy

__all__ = [
    "Assigned",
    "AvailabilityLookup",
    "AvailabilityMatcher",
    "BookingOutcome",
    "BookingService",
    "CommitmentLookup",
    "CommitmentStore",
    "ConflictDetector",
    "Invalid",
    "NoMatch",
    "RecommendationEngine",
    "SelectionStrategy",
    "raise_for_outcome",
]
