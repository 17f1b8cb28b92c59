"""
Domain layer - Pure business logic without external dependencies.
"""

from .intervals import contains, overlaps, subtract
from .models import (
    AvailabilityWindow,
    Candidate,
    Commitment,
    CommitmentStatus,
    Recommendation,
    TimeRange,
)
from .recommendations import RecommendationCalculator, RecommendationPolicy
from .selection import SelectionMode, pick_candidate, rank_candidates

__all__ = [
    "AvailabilityWindow",
    "Candidate",
    "Commitment",
    "CommitmentStatus",
    "Recommendation",
    "RecommendationCalculator",
    "RecommendationPolicy",
    "SelectionMode",
    "TimeRange",
    "contains",
    "overlaps",
    "pick_candidate",
    "rank_candidates",
    "subtract",
]
