"""
Domain models for time ranges, provider availability and commitments.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from pendulum import DateTime


def elapsed(earlier: DateTime, later: DateTime) -> timedelta:
    """Return ``later - earlier`` as a plain timedelta."""
    return timedelta(seconds=(later - earlier).total_seconds())


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration(self) -> timedelta:
        """Return the length of the range."""
        return elapsed(self.start, self.end)

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('DD.MM.YYYY HH:mm')}"


class CommitmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AvailabilityWindow:
    """A period during which a provider declared they can take work."""
    provider_id: str
    range: TimeRange
    provider_name: str = ""
    id: str = ""


@dataclass(frozen=True)
class Commitment:
    """
    A booking that assigns a provider to a requester.

    Only confirmed commitments block a provider's time.
    """
    id: str
    requester_id: str
    provider_id: str
    range: TimeRange
    status: CommitmentStatus = CommitmentStatus.CONFIRMED
    created_at: DateTime | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.status is CommitmentStatus.CONFIRMED


@dataclass(frozen=True)
class Candidate:
    """A provider eligible for a request, before selection."""
    provider_id: str
    display_name: str


@dataclass(frozen=True)
class Recommendation:
    """A free range offered instead of the requested one."""
    provider_id: str
    display_name: str
    range: TimeRange
    duration: timedelta
    distance: timedelta
