"""
Finding providers who can take a requested range.

Both classes issue a single batched collaborator call regardless of how many
providers are involved and filter the answer in memory.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Set

from ..domain.intervals import contains, overlaps
from ..domain.models import Candidate, TimeRange
from .protocols import AvailabilityLookup, CommitmentLookup

logger = logging.getLogger(__name__)


class ConflictDetector:
    """Flags providers holding a confirmed commitment that overlaps a range."""

    def __init__(self, commitment_lookup: CommitmentLookup) -> None:
        self._commitments = commitment_lookup

    async def find_conflicting(
        self,
        provider_ids: Iterable[str],
        time_range: TimeRange,
    ) -> Set[str]:
        ids = list(dict.fromkeys(provider_ids))
        if not ids:
            return set()

        commitments = await self._commitments.find_conflicting(ids, time_range)

        wanted = set(ids)
        conflicting = {
            commitment.provider_id
            for commitment in commitments
            if commitment.is_confirmed
            and commitment.provider_id in wanted
            and overlaps(commitment.range, time_range)
        }

        logger.debug(
            "Conflict check for %s: %d of %d providers busy",
            time_range,
            len(conflicting),
            len(ids),
        )
        return conflicting


class AvailabilityMatcher:
    """
    Returns the providers whose availability covers a request and who are free.

    Candidates keep the order in which the availability lookup reported them.
    An empty result is a normal outcome, not an error.
    """

    def __init__(
        self,
        availability_lookup: AvailabilityLookup,
        conflict_detector: ConflictDetector,
    ) -> None:
        self._availability = availability_lookup
        self._conflicts = conflict_detector

    async def find_candidates(self, request: TimeRange) -> List[Candidate]:
        windows = await self._availability.find_covering(request)

        # Distinct providers in discovery order
        discovered: Dict[str, Candidate] = {}
        for window in windows:
            if not contains(window.range, request):
                continue
            if window.provider_id not in discovered:
                discovered[window.provider_id] = Candidate(
                    provider_id=window.provider_id,
                    display_name=window.provider_name,
                )

        if not discovered:
            logger.debug("No availability covers %s", request)
            return []

        busy = await self._conflicts.find_conflicting(discovered.keys(), request)

        return [
            candidate
            for provider_id, candidate in discovered.items()
            if provider_id not in busy
        ]
