"""
Recommendation engine: fetches what the calculator needs in two lookups.
"""

from __future__ import annotations

import logging
from typing import Callable, List

import pendulum
from pendulum import DateTime

from ..domain.models import Recommendation, TimeRange
from ..domain.recommendations import RecommendationCalculator, RecommendationPolicy
from .protocols import AvailabilityLookup, CommitmentLookup

logger = logging.getLogger(__name__)


class RecommendationEngine:
    """
    Suggests the closest free ranges when nobody can take a request.

    The policy is passed in explicitly so the engine never reads ambient
    configuration. ``clock`` supplies "now" and can be pinned in tests.
    """

    def __init__(
        self,
        availability_lookup: AvailabilityLookup,
        commitment_lookup: CommitmentLookup,
        policy: RecommendationPolicy,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._availability = availability_lookup
        self._commitments = commitment_lookup
        self._calculator = RecommendationCalculator(policy)
        self._clock = clock

    @property
    def policy(self) -> RecommendationPolicy:
        return self._calculator.policy

    async def recommend(self, request: TimeRange) -> List[Recommendation]:
        search = self._calculator.search_window(request, self._clock())
        if search is None:
            logger.debug("Search window for %s is empty", request)
            return []

        windows = await self._availability.find_starting_within(search)
        windows = [w for w in windows if search.start <= w.range.start < search.end]
        if not windows:
            return []

        provider_ids = list(dict.fromkeys(w.provider_id for w in windows))
        commitments = await self._commitments.find_within(
            provider_ids,
            self._calculator.fetch_range(search, windows),
        )

        recommendations = self._calculator.find_recommendations(request, windows, commitments)

        logger.debug(
            "Found %d recommendations across %d windows for %s",
            len(recommendations),
            len(windows),
            request,
        )
        return recommendations
