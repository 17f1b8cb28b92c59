"""
Application service for booking requests.

The service validates a request, asks the matcher for free providers, lets
the selection strategy pick one and persists the commitment. When nobody is
free it falls back to the recommendation engine. Storage is reached only
through the protocols in ``protocols`` so the in-memory adapter and any real
database can be swapped freely.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import pendulum
from pendulum import DateTime
from pydantic import ValidationError

from ..config import MatchingConfig
from ..domain.exceptions import ConflictOnCreate, InvalidTimeRange
from ..domain.models import TimeRange
from ..domain.recommendations import RecommendationPolicy
from ..domain.selection import SelectionMode
from .matching import AvailabilityMatcher, ConflictDetector
from .outcomes import Assigned, BookingOutcome, Invalid, NoMatch
from .protocols import AvailabilityLookup, CommitmentLookup, CommitmentStore
from .recommendation import RecommendationEngine
from .selection import SelectionStrategy
from .wire import INVALID_RANGE_MESSAGE, BookingRequest

logger = logging.getLogger(__name__)

# One initial attempt plus one retry after losing a race at create time.
MAX_ASSIGN_ATTEMPTS = 2


class BookingService:
    """
    Orchestrates matching, selection, persistence and recommendations.

    Per request: Validating -> Matching -> (Assigning | Recommending) -> Done.
    Outcomes are returned as data; only ``LookupFailure`` raised by the store
    escapes.
    """

    def __init__(
        self,
        availability_lookup: AvailabilityLookup,
        commitment_lookup: CommitmentLookup,
        commitment_store: CommitmentStore,
        policy: RecommendationPolicy | None = None,
        mode: SelectionMode = SelectionMode.MOST,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._store = commitment_store
        self.matcher = AvailabilityMatcher(
            availability_lookup,
            ConflictDetector(commitment_lookup),
        )
        self.selection = SelectionStrategy(commitment_lookup, mode)
        self.recommender = RecommendationEngine(
            availability_lookup,
            commitment_lookup,
            policy or RecommendationPolicy(),
            clock=clock,
        )

    @classmethod
    def from_store(
        cls,
        store: Any,
        config: MatchingConfig,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> "BookingService":
        """Build a service around a store implementing all three protocols."""
        return cls(
            availability_lookup=store,
            commitment_lookup=store,
            commitment_store=store,
            policy=config.recommendation_policy(),
            mode=config.selection_strategy,
            clock=clock,
        )

    async def handle_request(
        self,
        requester_id: str,
        payload: Any,
        timezone: str = "UTC",
    ) -> BookingOutcome:
        """
        Handle a wire-format request ``{"startTime": ..., "endTime": ...}``.

        Unparseable timestamps are reported as ``Invalid`` like any other
        validation problem.
        """
        try:
            request = BookingRequest.model_validate(payload)
            time_range = request.to_time_range(timezone)
        except ValidationError as exc:
            errors = "; ".join(_describe(error) for error in exc.errors())
            return Invalid(reason=f"Invalid booking request: {errors}")
        except InvalidTimeRange as exc:
            return Invalid(reason=str(exc))

        return await self.book(requester_id, time_range)

    async def request_booking(
        self,
        requester_id: str,
        start: DateTime,
        end: DateTime,
    ) -> BookingOutcome:
        """Validate ``[start, end)`` and book it."""
        if start >= end:
            logger.debug("Rejected booking request %s - %s", start, end)
            return Invalid(reason=INVALID_RANGE_MESSAGE)

        return await self.book(requester_id, TimeRange(start=start, end=end))

    async def book(self, requester_id: str, request: TimeRange) -> BookingOutcome:
        """Match, select and persist; recommend alternatives when nobody is free."""
        for attempt in range(1, MAX_ASSIGN_ATTEMPTS + 1):
            candidates = await self.matcher.find_candidates(request)
            if not candidates:
                break

            selected = await self.selection.select(candidates)

            try:
                commitment = await self._store.create(
                    requester_id,
                    selected.provider_id,
                    request,
                )
            except ConflictOnCreate as exc:
                logger.warning(
                    "Lost booking race for %s at %s (attempt %d/%d): %s",
                    selected.provider_id,
                    request,
                    attempt,
                    MAX_ASSIGN_ATTEMPTS,
                    exc,
                )
                continue

            logger.info(
                "Booked %s for %s at %s",
                selected.provider_id,
                requester_id,
                request,
            )
            return Assigned(commitment=commitment, provider=selected)

        recommendations = await self.recommender.recommend(request)
        logger.info(
            "No provider for %s; offering %d alternatives",
            request,
            len(recommendations),
        )
        return NoMatch(recommendations=tuple(recommendations))

    async def recommend(self, request: TimeRange):
        """Return alternatives for ``request`` without trying to book it."""
        return await self.recommender.recommend(request)


def _describe(error: Mapping[str, Any]) -> str:
    location = ".".join(str(loc) for loc in error["loc"])
    return f"{location}: {error['msg']}" if location else error["msg"]
