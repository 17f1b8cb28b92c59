"""
Tagged outcomes of a booking request.

``BookingOutcome`` is one of ``Assigned``, ``NoMatch`` or ``Invalid``; callers
match on the type instead of probing optional fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

from ..domain.exceptions import InvalidTimeRange, NoProviderAvailable
from ..domain.models import Candidate, Commitment, Recommendation
from .wire import (
    INVALID_RANGE_MESSAGE,
    NO_PROVIDER_MESSAGE,
    BookingConfirmation,
    NoMatchPayload,
    ProviderSummary,
    RecommendationPayload,
    ValidationErrorPayload,
)


@dataclass(frozen=True)
class Assigned:
    """A provider was selected and the commitment persisted."""
    commitment: Commitment
    provider: Candidate

    def to_payload(self) -> Dict[str, Any]:
        return BookingConfirmation(
            bookingId=self.commitment.id,
            provider=ProviderSummary(
                id=self.provider.provider_id,
                name=self.provider.display_name,
            ),
            startTime=self.commitment.range.start.to_iso8601_string(),
            endTime=self.commitment.range.end.to_iso8601_string(),
            status=self.commitment.status.value,
        ).model_dump()


@dataclass(frozen=True)
class NoMatch:
    """Nobody could take the request; alternatives are attached (maybe none)."""
    recommendations: Tuple[Recommendation, ...] = field(default_factory=tuple)
    message: str = NO_PROVIDER_MESSAGE

    def to_payload(self) -> Dict[str, Any]:
        return NoMatchPayload(
            error=self.message,
            recommendations=[
                RecommendationPayload(
                    providerId=r.provider_id,
                    providerName=r.display_name,
                    startTime=r.range.start.to_iso8601_string(),
                    endTime=r.range.end.to_iso8601_string(),
                )
                for r in self.recommendations
            ],
        ).model_dump()


@dataclass(frozen=True)
class Invalid:
    """The request was rejected before any lookup."""
    reason: str = INVALID_RANGE_MESSAGE
    status_code: int = 400

    def to_payload(self) -> Dict[str, Any]:
        return ValidationErrorPayload(message=self.reason, statusCode=self.status_code).model_dump()


BookingOutcome = Union[Assigned, NoMatch, Invalid]


def raise_for_outcome(outcome: BookingOutcome) -> Assigned:
    """
    Turn a failed outcome into the matching exception.

    Returns the outcome unchanged when it is ``Assigned``.
    """
    if isinstance(outcome, Invalid):
        raise InvalidTimeRange(outcome.reason)
    if isinstance(outcome, NoMatch):
        raise NoProviderAvailable(outcome.message, outcome.recommendations)
    return outcome
